"""
Иерархия ошибок Vision OCR Gateway.

Каждая ошибка знает свой HTTP статус. Пайплайн переводит их в ответ
в одном месте (RequestPipeline._to_response).

    OcrGatewayError
    ├── ImageValidationError     400
    │   └── PayloadTooLargeError 413
    ├── OriginRejectedError      403
    ├── RateLimitedError         429
    ├── StorageFault             500
    └── OcrFault                 500
        └── OcrTimeout           500
"""


class OcrGatewayError(Exception):
    """
    Базовая ошибка сервиса.

    Attributes:
        message: короткое сообщение для клиента (без стектрейсов и id)
        status_code: HTTP статус ответа
    """

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ImageValidationError(OcrGatewayError):
    """Нет тела запроса, нет поля image или оно не base64."""

    status_code = 400


class PayloadTooLargeError(ImageValidationError):
    """Декодированное изображение больше допустимого размера."""

    status_code = 413


class OriginRejectedError(OcrGatewayError):
    """Origin запроса не входит в allow-list."""

    status_code = 403


class RateLimitedError(OcrGatewayError):
    """Клиент исчерпал лимит запросов в текущем окне."""

    status_code = 429


class StorageFault(OcrGatewayError):
    """Ошибка загрузки или удаления объекта в хранилище."""


class OcrFault(OcrGatewayError):
    """OCR сервис сообщил об ошибке или вернул некорректный ответ."""


class OcrTimeout(OcrFault):
    """Операция не завершилась за отведённое число попыток опроса."""
