"""
HTTP клиент асинхронного Read API (Computer Vision).

Протокол:
    POST {endpoint}/vision/{version}/read/analyze  {"url": ...}
        -> 202, заголовок Operation-Location
    GET  {endpoint}/vision/{version}/read/analyzeResults/{operation_id}
        -> {"status": ..., "analyzeResult": {"readResults": [...]}}
"""

import logging
from typing import Any, Optional

import httpx

from vision_ocr.errors import OcrFault

logger = logging.getLogger(__name__)

SUBSCRIPTION_KEY_HEADER = "Ocp-Apim-Subscription-Key"


def operation_id_from_location(operation_location: str) -> str:
    """
    Извлекает id операции — последний сегмент пути Operation-Location.

    Raises:
        OcrFault: если сегмент пустой
    """
    operation_id = operation_location.rstrip("/").split("/")[-1]
    if not operation_id:
        raise OcrFault("OCR service returned an empty operation reference")
    return operation_id


class ReadApiClient:
    """
    Клиент Read API поверх httpx.AsyncClient.

    Args:
        endpoint: базовый URL ресурса Computer Vision
        subscription_key: ключ подписки
        api_version: версия API (v3.2)
        client: готовый httpx.AsyncClient (в тестах — с MockTransport)
        timeout: таймаут запросов, если клиент создаётся здесь
    """

    def __init__(
        self,
        endpoint: str,
        subscription_key: str,
        api_version: str = "v3.2",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.base_url = f"{endpoint.rstrip('/')}/vision/{api_version}/read"
        self._headers = {SUBSCRIPTION_KEY_HEADER: subscription_key}
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def submit(self, image_url: str) -> str:
        """
        Отправляет URL изображения на анализ.

        Returns:
            str: значение заголовка Operation-Location

        Raises:
            OcrFault: ошибка HTTP или нет Operation-Location
        """
        try:
            response = await self._client.post(
                f"{self.base_url}/analyze",
                json={"url": image_url},
                headers=self._headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise OcrFault(f"OCR submit failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise OcrFault("OCR service unavailable") from e

        operation_location = response.headers.get("Operation-Location")
        if not operation_location:
            raise OcrFault("OCR service returned no operation reference")

        return operation_location

    async def get_result(self, operation_id: str) -> dict[str, Any]:
        """
        Запрашивает статус операции.

        Returns:
            dict: JSON ответа (status, analyzeResult)

        Raises:
            OcrFault: ошибка HTTP или невалидный JSON
        """
        try:
            response = await self._client.get(
                f"{self.base_url}/analyzeResults/{operation_id}",
                headers=self._headers,
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise OcrFault(f"OCR status check failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise OcrFault("OCR service unavailable") from e
        except ValueError as e:
            raise OcrFault("OCR service returned malformed JSON") from e
