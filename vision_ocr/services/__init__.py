"""
Сервисы Vision OCR Gateway.

Модули:
    - rate_limiter: скользящее окно запросов на клиента
    - origin_guard: allow-list Origin и CORS заголовки
    - image_store: временное хранилище изображений (MinIO)
    - read_client: HTTP клиент Read API
    - ocr_poller: отправка на OCR и опрос статуса
    - text_assembler: сборка текста из результата
    - pipeline: координация всех этапов запроса
"""

from vision_ocr.services.image_store import TransientImageStore
from vision_ocr.services.ocr_poller import OcrPoller
from vision_ocr.services.origin_guard import OriginGuard
from vision_ocr.services.pipeline import RequestPipeline
from vision_ocr.services.rate_limiter import SlidingWindowRateLimiter
from vision_ocr.services.read_client import ReadApiClient
from vision_ocr.services.text_assembler import flatten

__all__ = [
    "RequestPipeline",
    "SlidingWindowRateLimiter",
    "OriginGuard",
    "TransientImageStore",
    "ReadApiClient",
    "OcrPoller",
    "flatten",
]
