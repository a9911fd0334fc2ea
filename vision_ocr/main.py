"""
Vision OCR Gateway — FastAPI приложение.

Принимает изображение в base64, прогоняет его через пайплайн
(Origin -> rate limit -> валидация -> хранилище -> Read API -> текст)
и возвращает распознанный текст как text/plain.

Эндпоинты:
    POST    /api/ocr — распознавание текста
    OPTIONS /api/ocr — CORS pre-flight
    GET     /health  — проверка работоспособности и текущие лимиты

Запуск:
    uvicorn vision_ocr.main:app --host 0.0.0.0 --port 8000
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse
from minio import Minio

from vision_ocr.config import Settings, settings
from vision_ocr.schemas import InboundRequest
from vision_ocr.services.image_store import TransientImageStore
from vision_ocr.services.ocr_poller import OcrPoller
from vision_ocr.services.origin_guard import OriginGuard
from vision_ocr.services.pipeline import RequestPipeline
from vision_ocr.services.rate_limiter import SlidingWindowRateLimiter
from vision_ocr.services.read_client import ReadApiClient

# Настройка логгера
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [Vision-OCR] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# Пайплайн пропускает дальше только POST и OPTIONS, остальное отвечает 400
ACCEPTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def build_pipeline(config: Settings, read_client: ReadApiClient) -> RequestPipeline:
    """
    Собирает пайплайн из настроек.

    Args:
        config: настройки сервиса
        read_client: клиент Read API (закрывается владельцем)

    Returns:
        RequestPipeline: готовый к работе пайплайн
    """
    storage_client = Minio(
        config.storage_endpoint,
        access_key=config.storage_access_key,
        secret_key=config.storage_secret_key,
        secure=config.storage_secure,
    )

    return RequestPipeline(
        origin_guard=OriginGuard(config.allowed_origins),
        rate_limiter=SlidingWindowRateLimiter(
            window_ms=config.rate_limit_window_ms,
            max_requests=config.rate_limit_max_requests,
            gc_threshold=config.rate_limit_gc_threshold,
        ),
        store=TransientImageStore(
            client=storage_client,
            bucket=config.storage_bucket,
            public_base_url=config.images_url,
        ),
        poller=OcrPoller(
            read_client,
            poll_interval=config.poll_interval_seconds,
            max_attempts=config.poll_max_attempts,
        ),
        max_image_bytes=config.max_image_size_mb * 1024 * 1024,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    read_client = ReadApiClient(
        endpoint=settings.vision_endpoint,
        subscription_key=settings.vision_key,
        api_version=settings.read_api_version,
        timeout=settings.http_timeout_seconds,
    )
    app.state.pipeline = build_pipeline(settings, read_client)

    logger.info(f"Vision OCR Gateway {VERSION} запущен")
    logger.info(f"   Read API: {settings.vision_endpoint} ({settings.read_api_version})")
    logger.info(f"   Хранилище: {settings.storage_endpoint}/{settings.storage_bucket}")
    logger.info(f"   Разрешённые Origin: {settings.allowed_origins or 'нет'}")

    try:
        yield
    finally:
        await read_client.aclose()


# FastAPI приложение
app = FastAPI(
    title="Vision OCR Gateway",
    description="Распознавание текста на изображениях через облачный Read API",
    version=VERSION,
    lifespan=lifespan,
)


def get_pipeline(request: Request) -> RequestPipeline:
    """Пайплайн, собранный в lifespan."""
    return request.app.state.pipeline


@app.get("/health")
async def health_check(pipeline: RequestPipeline = Depends(get_pipeline)) -> dict:
    """
    Проверка работоспособности сервиса.

    Returns:
        dict: статус, статистика rate limiter и действующие лимиты
    """
    return {
        "status": "ok",
        "service": "vision-ocr-gateway",
        "version": VERSION,
        "rate_limiter": pipeline.rate_limiter.stats(),
        "config": {
            "max_image_bytes": pipeline.max_image_bytes,
            "poll_interval_seconds": pipeline.poller.poll_interval,
            "poll_max_attempts": pipeline.poller.max_attempts,
        },
    }


@app.api_route("/api/ocr", methods=ACCEPTED_METHODS)
async def perform_ocr(
    request: Request,
    pipeline: RequestPipeline = Depends(get_pipeline),
) -> PlainTextResponse:
    """
    Распознаёт текст на изображении из тела {"image": "<base64>"}.

    Returns:
        PlainTextResponse: текст (200) или короткое сообщение об ошибке
    """
    inbound = InboundRequest(
        method=request.method,
        headers=dict(request.headers),
        body=await _read_json_body(request),
        client_host=request.client.host if request.client else None,
    )

    result = await pipeline.handle(inbound)

    return PlainTextResponse(
        content=result.body,
        status_code=result.status_code,
        headers=result.headers,
    )


async def _read_json_body(request: Request) -> Optional[Any]:
    """
    Читает JSON тело запроса.

    Пустое или невалидное тело -> None (пайплайн ответит 400).
    """
    raw = await request.body()
    if not raw:
        return None

    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Тело запроса не является JSON")
        return None


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Запуск Vision OCR Gateway на порту {settings.port}")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        log_level="info",
    )
