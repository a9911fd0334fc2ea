"""
Пайплайн обработки запроса — координирует все этапы:

    Origin -> Rate limit -> Валидация -> Upload -> OCR -> Сборка текста
           -> Удаление изображения (всегда) -> Ответ

Каждый исход превращается в PipelineResponse; наружу исключения не уходят.
Все зависимости внедряются, так что вариации (CORS, лимиты, размер)
задаются конфигурацией.
"""

import base64
import binascii
import logging
import time
from typing import Optional

from pydantic import ValidationError

from vision_ocr.errors import (
    ImageValidationError,
    OcrGatewayError,
    OriginRejectedError,
    PayloadTooLargeError,
    RateLimitedError,
)
from vision_ocr.schemas import InboundRequest, OcrRequestBody, PipelineResponse
from vision_ocr.services.image_store import TransientImageStore
from vision_ocr.services.ocr_poller import OcrPoller
from vision_ocr.services.origin_guard import OriginGuard
from vision_ocr.services.rate_limiter import SlidingWindowRateLimiter
from vision_ocr.services.text_assembler import flatten

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024
UNKNOWN_CLIENT = "unknown"
NO_IMAGE_MESSAGE = "No image found in request body."


def resolve_client_id(request: InboundRequest) -> str:
    """
    Идентификатор клиента для rate limiting.

    Приоритет:
        1. Первый адрес из X-Forwarded-For
        2. Адрес соединения
        3. "unknown"
    """
    forwarded = request.header("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client_host or UNKNOWN_CLIENT


def _too_large(size: int, max_bytes: int) -> PayloadTooLargeError:
    return PayloadTooLargeError(
        f"Image too large: {size} bytes, maximum is {max_bytes} bytes."
    )


def decode_image(encoded: str, max_bytes: Optional[int] = None) -> bytes:
    """
    Декодирует base64 изображение.

    Допускает data URL префикс ("data:image/png;base64,") и переносы строк.
    Если задан max_bytes, размер оценивается по длине строки до декодирования.

    Args:
        encoded: изображение в base64
        max_bytes: предел размера декодированного изображения

    Raises:
        ImageValidationError: строка не является base64
        PayloadTooLargeError: оценка размера больше max_bytes
    """
    if encoded.startswith("data:") and "," in encoded:
        encoded = encoded.split(",", 1)[1]
    encoded = "".join(encoded.split())

    # Не больше двух символов "=" в конце, так что оценка занижена максимум на 2
    estimated_size = len(encoded) * 3 // 4 - 2
    if max_bytes is not None and estimated_size > max_bytes:
        raise _too_large(estimated_size, max_bytes)

    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageValidationError("Image is not valid base64.") from e

    if not data:
        raise ImageValidationError(NO_IMAGE_MESSAGE)
    return data


class RequestPipeline:
    """
    Оркестратор запроса.

    Args:
        origin_guard: проверка Origin и CORS заголовки
        rate_limiter: скользящее окно на клиента
        store: временное хранилище изображений
        poller: OCR с опросом статуса
        max_image_bytes: предел размера декодированного изображения
    """

    def __init__(
        self,
        origin_guard: OriginGuard,
        rate_limiter: SlidingWindowRateLimiter,
        store: TransientImageStore,
        poller: OcrPoller,
        max_image_bytes: int = MAX_IMAGE_BYTES,
    ):
        self.origin_guard = origin_guard
        self.rate_limiter = rate_limiter
        self.store = store
        self.poller = poller
        self.max_image_bytes = max_image_bytes

    async def handle(self, request: InboundRequest) -> PipelineResponse:
        """
        Обрабатывает запрос целиком.

        Args:
            request: входящий запрос

        Returns:
            PipelineResponse: статус, текст (или сообщение об ошибке), заголовки
        """
        start = time.perf_counter()

        # 1. Origin
        decision = self.origin_guard.evaluate(request.header("Origin"))
        if not decision.allow:
            return self._to_response(OriginRejectedError("Origin not allowed."))
        cors_headers = dict(decision.headers)

        # Pre-flight: заголовки решены, дальше не идём
        if request.method == "OPTIONS":
            return PipelineResponse(status_code=200, body="", headers=cors_headers)

        client_id = resolve_client_id(request)

        try:
            # 2. Rate limit
            if not self.rate_limiter.admit(client_id):
                raise RateLimitedError("Too many requests. Please try again later.")

            # 3. Валидация
            image_bytes = self._validate(request)
            logger.info(f"Запрос от {client_id}: изображение {len(image_bytes)} байт")

            # 4-6. Upload -> OCR -> текст, удаление в любом случае
            text = await self._recognize(image_bytes)

        except OcrGatewayError as e:
            logger.info(f"Запрос от {client_id} завершён: {e.status_code} {e.message}")
            return self._to_response(e, cors_headers)
        except Exception as e:
            logger.exception(f"Непредвиденная ошибка обработки запроса от {client_id}: {e}")
            return self._to_response(OcrGatewayError("Internal server error"), cors_headers)

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.info(f"Запрос от {client_id} выполнен: {len(text)} символов за {elapsed_ms}ms")
        return PipelineResponse(status_code=200, body=text, headers=cors_headers)

    def _validate(self, request: InboundRequest) -> bytes:
        """
        Проверяет метод, наличие image и размер после декодирования.

        Raises:
            ImageValidationError: не POST, нет image, не base64
            PayloadTooLargeError: изображение больше max_image_bytes
        """
        if request.method != "POST" or not isinstance(request.body, dict):
            raise ImageValidationError(NO_IMAGE_MESSAGE)

        try:
            body = OcrRequestBody.model_validate(request.body)
        except ValidationError as e:
            raise ImageValidationError(NO_IMAGE_MESSAGE) from e

        image_bytes = decode_image(body.image, max_bytes=self.max_image_bytes)
        if len(image_bytes) > self.max_image_bytes:
            raise _too_large(len(image_bytes), self.max_image_bytes)
        return image_bytes

    async def _recognize(self, image_bytes: bytes) -> str:
        async with self.store.hold(image_bytes) as stored:
            document = await self.poller.run(stored.url)
            return flatten(document)

    @staticmethod
    def _to_response(
        error: OcrGatewayError,
        headers: Optional[dict[str, str]] = None,
    ) -> PipelineResponse:
        if error.status_code >= 500:
            body = f"Error: {error.message}"
        else:
            body = error.message
        return PipelineResponse(
            status_code=error.status_code,
            body=body,
            headers=dict(headers or {}),
        )
