"""
Временное хранилище изображений (S3 / MinIO).

Изображение живёт в хранилище ровно столько, сколько нужно OCR сервису,
чтобы скачать его по публичному URL. Удаление гарантирует hold():

    async with store.hold(image_bytes) as stored:
        document = await poller.run(stored.url)

Клиент MinIO синхронный, поэтому вызовы уходят в threadpool.
"""

import io
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from minio import Minio
from PIL import Image, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

from vision_ocr.errors import StorageFault
from vision_ocr.schemas import StoredImage

logger = logging.getLogger(__name__)

BLOB_PREFIX = "image-"
DEFAULT_EXTENSION = ".bin"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Pillow называет JPEG "JPEG", а расширение принято ".jpg"
_EXTENSION_OVERRIDES = {"JPEG": ".jpg", "TIFF": ".tif"}


def _now_ms() -> int:
    return int(time.time() * 1000)


def detect_image_type(data: bytes) -> tuple[str, str]:
    """
    Определяет расширение и content-type по сигнатуре изображения.

    Pillow читает только заголовок, полного декодирования нет.
    Любая ошибка разбора (неизвестный формат, битый заголовок,
    DecompressionBombError) даёт .bin: изображение всё равно уходит в OCR.

    Args:
        data: байты изображения

    Returns:
        tuple: (расширение с точкой, MIME тип)
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            image_format = img.format
    except UnidentifiedImageError:
        return DEFAULT_EXTENSION, DEFAULT_CONTENT_TYPE
    except Exception as e:
        logger.warning(f"Не удалось определить формат изображения: {e}")
        return DEFAULT_EXTENSION, DEFAULT_CONTENT_TYPE

    if not image_format:
        return DEFAULT_EXTENSION, DEFAULT_CONTENT_TYPE

    extension = _EXTENSION_OVERRIDES.get(image_format, f".{image_format.lower()}")
    content_type = Image.MIME.get(image_format, DEFAULT_CONTENT_TYPE)
    return extension, content_type


class TransientImageStore:
    """
    Загрузка и удаление временных изображений.

    Args:
        client: клиент MinIO
        bucket: имя бакета (контейнера)
        public_base_url: публичный URL бакета, к нему дописывается имя объекта
        clock: источник времени в мс для имени объекта
    """

    def __init__(
        self,
        client: Minio,
        bucket: str,
        public_base_url: str,
        clock: Callable[[], int] = _now_ms,
    ):
        self._client = client
        self.bucket = bucket
        self.public_base_url = public_base_url
        self._clock = clock

    def _make_blob_name(self, extension: str) -> str:
        # Метка времени + случайный суффикс: два запроса в одну миллисекунду не пересекутся
        return f"{BLOB_PREFIX}{self._clock()}-{uuid.uuid4().hex[:8]}{extension}"

    async def upload(self, data: bytes) -> StoredImage:
        """
        Загружает изображение одним объектом.

        Args:
            data: байты изображения

        Returns:
            StoredImage: имя объекта и его публичный URL

        Raises:
            StorageFault: если запись не удалась
        """
        extension, content_type = detect_image_type(data)
        blob_name = self._make_blob_name(extension)

        try:
            await run_in_threadpool(
                self._client.put_object,
                bucket_name=self.bucket,
                object_name=blob_name,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except Exception as e:
            logger.error(f"Ошибка загрузки {blob_name}: {e}")
            raise StorageFault("Image upload failed") from e

        stored = StoredImage(blob_name=blob_name, url=f"{self.public_base_url}{blob_name}")
        logger.info(f"Изображение загружено: {blob_name} ({len(data)} байт, {content_type})")
        return stored

    async def delete(self, blob_name: str) -> None:
        """
        Удаляет объект. Отсутствующий объект ошибкой не считается.

        Raises:
            StorageFault: если хранилище вернуло ошибку
        """
        try:
            await run_in_threadpool(
                self._client.remove_object,
                bucket_name=self.bucket,
                object_name=blob_name,
            )
        except Exception as e:
            raise StorageFault(f"Image delete failed: {blob_name}") from e

        logger.info(f"Изображение удалено: {blob_name}")

    @asynccontextmanager
    async def hold(self, data: bytes) -> AsyncIterator[StoredImage]:
        """
        Загружает изображение и гарантированно удаляет его при выходе.

        Ошибка удаления логируется и не подменяет результат тела блока.

        Raises:
            StorageFault: если не удалась загрузка (удалять нечего)
        """
        stored = await self.upload(data)
        try:
            yield stored
        finally:
            try:
                await self.delete(stored.blob_name)
            except StorageFault as e:
                logger.warning(f"Не удалось удалить {stored.blob_name}: {e.__cause__ or e}")
