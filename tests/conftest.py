"""
Общие фикстуры и фейки для тестов Vision OCR Gateway.

Обязательные переменные окружения выставляются до импорта vision_ocr.main,
иначе Settings() не создастся.
"""

import os

os.environ.setdefault("OCR_VISION_KEY", "test-key")
os.environ.setdefault("OCR_VISION_ENDPOINT", "https://vision.test")
os.environ.setdefault("OCR_STORAGE_ENDPOINT", "storage.test:9000")
os.environ.setdefault("OCR_STORAGE_ACCESS_KEY", "access")
os.environ.setdefault("OCR_STORAGE_SECRET_KEY", "secret")
os.environ.setdefault("OCR_IMAGES_URL", "https://storage.test/images/")

import struct
import zlib
from typing import Any, Optional

import pytest

from vision_ocr.schemas import ReadLine, ReadPage, RecognizedDocument
from vision_ocr.services.image_store import TransientImageStore
from vision_ocr.services.ocr_poller import OcrPoller
from vision_ocr.services.origin_guard import OriginGuard
from vision_ocr.services.pipeline import MAX_IMAGE_BYTES, RequestPipeline
from vision_ocr.services.rate_limiter import SlidingWindowRateLimiter

ALLOWED_ORIGIN = "https://app.example.com"
IMAGES_URL = "https://storage.test/images/"
OPERATION_LOCATION = "https://vision.test/vision/v3.2/read/analyzeResults/op-123"


class FakeStorageClient:
    """Минимальная замена Minio: хранит объекты в словаре."""

    def __init__(self, fail_put: bool = False, fail_remove: bool = False):
        self.fail_put = fail_put
        self.fail_remove = fail_remove
        self.objects: dict[str, bytes] = {}
        self.put_calls: list[dict] = []
        self.removed: list[str] = []

    def put_object(self, bucket_name, object_name, data, length, content_type="application/octet-stream"):
        self.put_calls.append(
            {"bucket": bucket_name, "name": object_name, "length": length, "content_type": content_type}
        )
        if self.fail_put:
            raise ConnectionError("storage unreachable")
        self.objects[object_name] = data.read()

    def remove_object(self, bucket_name, object_name):
        self.removed.append(object_name)
        if self.fail_remove:
            raise ConnectionError("storage unreachable")
        self.objects.pop(object_name, None)


def document_from_lines(lines: list[str]) -> RecognizedDocument:
    """Документ из одной страницы с готовыми строками."""
    return RecognizedDocument(pages=[ReadPage(lines=[ReadLine(text=line) for line in lines])])


def _png_chunk(chunk_type: bytes, payload: bytes) -> bytes:
    crc = zlib.crc32(chunk_type + payload) & 0xFFFFFFFF
    return struct.pack(">I", len(payload)) + chunk_type + payload + struct.pack(">I", crc)


def png_header(width: int, height: int) -> bytes:
    """PNG только с IHDR и IEND: размеры есть, пикселей нет (45 байт)."""
    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + _png_chunk(b"IHDR", ihdr) + _png_chunk(b"IEND", b"")


def read_payload(status: str, lines: Optional[list[list[str]]] = None) -> dict[str, Any]:
    """Ответ analyzeResults; lines — строки как списки слов."""
    payload: dict[str, Any] = {"status": status}
    if lines is not None:
        payload["analyzeResult"] = {
            "readResults": [
                {
                    "page": 1,
                    "lines": [
                        {"text": " ".join(words), "words": [{"text": w} for w in words]}
                        for words in lines
                    ],
                }
            ]
        }
    return payload


class FakeReadService:
    """
    Фейковый Read API.

    Возвращает ответы из списка по очереди; последний повторяется.
    """

    def __init__(self, responses: list[dict[str, Any]], error: Optional[Exception] = None):
        self.responses = responses
        self.error = error
        self.submitted: list[str] = []
        self.polled: list[str] = []

    async def submit(self, image_url: str) -> str:
        self.submitted.append(image_url)
        return OPERATION_LOCATION

    async def get_result(self, operation_id: str) -> dict[str, Any]:
        self.polled.append(operation_id)
        if self.error is not None:
            raise self.error
        index = min(len(self.polled), len(self.responses)) - 1
        return self.responses[index]


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def storage_client() -> FakeStorageClient:
    return FakeStorageClient()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_pipeline(storage_client, sleep):
    """Фабрика пайплайна с фейковыми зависимостями."""

    def _make(
        read_service: FakeReadService,
        max_requests: int = 10,
        max_image_bytes: int = MAX_IMAGE_BYTES,
        clock=None,
    ) -> RequestPipeline:
        limiter_kwargs = {"clock": clock} if clock is not None else {}
        return RequestPipeline(
            origin_guard=OriginGuard([ALLOWED_ORIGIN]),
            rate_limiter=SlidingWindowRateLimiter(max_requests=max_requests, **limiter_kwargs),
            store=TransientImageStore(storage_client, bucket="images", public_base_url=IMAGES_URL),
            poller=OcrPoller(read_service, poll_interval=1.0, max_attempts=30, sleep=sleep),
            max_image_bytes=max_image_bytes,
        )

    return _make
