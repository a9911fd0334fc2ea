"""
Rate limiter со скользящим окном.

Для каждого клиента хранится список меток времени последних запросов
(в миллисекундах). Запрос пропускается, если в окне window_ms меньше
max_requests меток.

Особенности:
    - Хранение в памяти (состояние живёт вместе с экземпляром)
    - Отклонённые запросы не учитываются в квоте
    - Очистка неактивных клиентов, когда их больше gc_threshold
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    """Монотонные часы в миллисекундах."""
    return time.monotonic() * 1000


class SlidingWindowRateLimiter:
    """
    Скользящее окно запросов на клиента.

    Проверка и добавление метки выполняются под одной блокировкой,
    поэтому два параллельных запроса не могут занять последний слот вдвоём.

    Args:
        window_ms: длина окна в миллисекундах
        max_requests: максимум запросов в окне
        gc_threshold: число клиентов, после которого запускается очистка
        clock: источник времени в миллисекундах
    """

    def __init__(
        self,
        window_ms: int = 60_000,
        max_requests: int = 10,
        gc_threshold: int = 1000,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.window_ms = window_ms
        self.max_requests = max_requests
        self.gc_threshold = gc_threshold
        self._clock = clock
        self._lock = threading.Lock()
        # {client_id: [timestamp_ms, ...]}, самые свежие в конце
        self._ledger: dict[str, list[float]] = {}

    def admit(self, client_id: str, now: Optional[float] = None) -> bool:
        """
        Решает, пропустить ли запрос клиента.

        Args:
            client_id: идентификатор клиента (IP или "unknown")
            now: текущее время в мс (по умолчанию из clock)

        Returns:
            bool: True — запрос учтён и пропущен, False — лимит исчерпан
        """
        if now is None:
            now = self._clock()
        window_start = now - self.window_ms

        with self._lock:
            recent = [ts for ts in self._ledger.get(client_id, []) if ts > window_start]

            admitted = len(recent) < self.max_requests
            if admitted:
                recent.append(now)
            self._ledger[client_id] = recent

            if len(self._ledger) > self.gc_threshold:
                self._collect_garbage(window_start)

        if not admitted:
            logger.warning(f"Rate limit: клиент {client_id} превысил {self.max_requests} запросов")

        return admitted

    def _collect_garbage(self, window_start: float) -> None:
        """Удаляет клиентов без меток внутри текущего окна. Вызывать под _lock."""
        stale = [
            client_id
            for client_id, stamps in self._ledger.items()
            if not any(ts > window_start for ts in stamps)
        ]
        for client_id in stale:
            del self._ledger[client_id]

        if stale:
            logger.info(
                f"Rate limit: удалено неактивных клиентов={len(stale)}, "
                f"осталось={len(self._ledger)}"
            )

    def stats(self) -> dict:
        """
        Статистика лимитера для /health.

        Returns:
            dict: {tracked_clients, window_ms, max_requests}
        """
        with self._lock:
            tracked = len(self._ledger)

        return {
            "tracked_clients": tracked,
            "window_ms": self.window_ms,
            "max_requests": self.max_requests,
        }
