"""
Опрос асинхронной OCR операции с ограниченным числом попыток.

Состояния:
    SUBMITTING -> POLLING -> SUCCEEDED | FAILED | TIMED_OUT

Ожидание между попытками идёт через внедряемую функцию sleep, поэтому
в тестах потолок в 30 попыток проверяется без реального времени.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from pydantic import ValidationError

from vision_ocr.errors import OcrFault, OcrTimeout
from vision_ocr.schemas import OcrOperation, OcrStatus, RecognizedDocument
from vision_ocr.services.read_client import operation_id_from_location

logger = logging.getLogger(__name__)


class ReadService(Protocol):
    async def submit(self, image_url: str) -> str: ...

    async def get_result(self, operation_id: str) -> dict[str, Any]: ...


class PollState(str, Enum):
    SUBMITTING = "submitting"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class OcrPoller:
    """
    Отправляет изображение в OCR сервис и ждёт терминального статуса.

    Args:
        service: клиент Read API (submit / get_result)
        poll_interval: пауза перед каждой попыткой, секунды
        max_attempts: максимум запросов статуса
        sleep: асинхронная функция ожидания
    """

    def __init__(
        self,
        service: ReadService,
        poll_interval: float = 1.0,
        max_attempts: int = 30,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._service = service
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def run(self, image_url: str) -> RecognizedDocument:
        """
        Распознаёт текст на изображении по URL.

        Args:
            image_url: публичный URL изображения

        Returns:
            RecognizedDocument: страницы со строками и словами

        Raises:
            OcrFault: сервис вернул failed или некорректный ответ
            OcrTimeout: статус не стал терминальным за max_attempts попыток
        """
        start = time.perf_counter()
        state = PollState.SUBMITTING
        attempts = 0
        operation = None

        operation_location = await self._service.submit(image_url)
        operation_id = operation_id_from_location(operation_location)
        logger.info(f"OCR операция создана: {operation_id}")
        state = PollState.POLLING

        while state is PollState.POLLING:
            if attempts >= self.max_attempts:
                state = PollState.TIMED_OUT
                break

            await self._sleep(self.poll_interval)
            attempts += 1
            operation = self._parse_operation(
                operation_id, await self._service.get_result(operation_id)
            )

            if operation.status == OcrStatus.SUCCEEDED.value:
                state = PollState.SUCCEEDED
            elif operation.status == OcrStatus.FAILED.value:
                state = PollState.FAILED
            else:
                logger.debug(f"OCR {operation_id}: {operation.status}, попытка {attempts}")

        if state is PollState.FAILED:
            logger.error(f"OCR операция {operation_id} завершилась ошибкой")
            raise OcrFault("analysis failed")

        if state is PollState.TIMED_OUT:
            logger.error(f"OCR операция {operation_id} не завершилась за {attempts} попыток")
            raise OcrTimeout(f"analysis did not finish after {self.max_attempts} attempts")

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.info(f"OCR завершён: {operation_id}, попыток={attempts}, {elapsed_ms}ms")
        return operation.result or RecognizedDocument()

    @staticmethod
    def _parse_operation(operation_id: str, payload: dict[str, Any]) -> OcrOperation:
        """
        Разбирает ответ get_result.

        notStarted, running и неизвестный статус считаются "ещё выполняется".
        Ответ без статуса трактуется как notStarted.
        """
        status = str(payload.get("status", OcrStatus.NOT_STARTED.value))
        result = None

        if status == OcrStatus.SUCCEEDED.value:
            try:
                result = RecognizedDocument.model_validate(payload.get("analyzeResult") or {})
            except ValidationError as e:
                raise OcrFault("OCR service returned a malformed result") from e

        return OcrOperation(operation_id=operation_id, status=status, result=result)
