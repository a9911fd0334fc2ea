"""
Проверка Origin по статическому allow-list и выбор CORS заголовков.
"""

import logging
from typing import Iterable, Optional

from vision_ocr.schemas import OriginDecision

logger = logging.getLogger(__name__)

ALLOWED_METHODS = "POST,OPTIONS"
ALLOWED_HEADERS = "Content-Type"


class OriginGuard:
    """
    Политика Origin:
        - Origin есть и в списке -> пропускаем, CORS заголовки для него
        - Origin есть, но не в списке -> отклоняем, без заголовков
        - Origin нет (серверный клиент, curl) -> пропускаем, без заголовков
    """

    def __init__(self, allowed_origins: Iterable[str]):
        self.allowed_origins = frozenset(allowed_origins)

    def evaluate(self, origin: Optional[str]) -> OriginDecision:
        if not origin:
            return OriginDecision(allow=True, emit_cors_headers=False)

        if origin not in self.allowed_origins:
            logger.warning(f"Origin отклонён: {origin}")
            return OriginDecision(allow=False, emit_cors_headers=False)

        return OriginDecision(
            allow=True,
            emit_cors_headers=True,
            headers={
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Methods": ALLOWED_METHODS,
                "Access-Control-Allow-Headers": ALLOWED_HEADERS,
            },
        )
