"""
Схемы данных Vision OCR Gateway.

Включает:
    - Pydantic модели тела запроса и ответа Read API (страницы -> строки -> слова)
    - Внутренние dataclass'ы пайплайна (запрос, ответ, решение по Origin,
      загруженное изображение)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Pydantic модели
# =============================================================================


class OcrRequestBody(BaseModel):
    """
    Тело POST запроса.

    Attributes:
        image: изображение в base64
    """

    model_config = ConfigDict(extra="ignore")

    image: str = Field(min_length=1, description="Изображение в base64")


class OcrStatus(str, Enum):
    """Статусы операции Read API."""

    NOT_STARTED = "notStarted"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ReadWord(BaseModel):
    """Одно распознанное слово."""

    model_config = ConfigDict(extra="ignore")

    text: str = ""


class ReadLine(BaseModel):
    """
    Строка текста.

    Attributes:
        text: строка целиком (уже собранная сервисом)
        words: слова строки в порядке чтения
    """

    model_config = ConfigDict(extra="ignore")

    text: str = ""
    words: list[ReadWord] = []


class ReadPage(BaseModel):
    """
    Результат распознавания одной страницы ("read result").

    Attributes:
        page: номер страницы (начинается с 1)
        lines: строки страницы в порядке чтения
    """

    model_config = ConfigDict(extra="ignore")

    page: int = 1
    lines: list[ReadLine] = []


class RecognizedDocument(BaseModel):
    """
    Распознанный документ: упорядоченные страницы.

    Соответствует полю analyzeResult ответа Read API.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    pages: list[ReadPage] = Field(default=[], alias="readResults")


class OcrOperation(BaseModel):
    """
    Состояние асинхронной операции Read API.

    Attributes:
        operation_id: идентификатор операции (хвост Operation-Location)
        status: статус как его вернул сервис
        result: распознанный документ (только для succeeded)
    """

    operation_id: str
    status: str
    result: Optional[RecognizedDocument] = None


# =============================================================================
# Внутренние dataclass'ы пайплайна
# =============================================================================


@dataclass(frozen=True)
class StoredImage:
    """
    Изображение, временно загруженное в хранилище.

    Принадлежит ровно одному запросу: живёт от upload до delete.

    Attributes:
        blob_name: уникальное имя объекта
        url: публичный URL, который передаётся в OCR сервис
    """

    blob_name: str
    url: str


@dataclass(frozen=True)
class OriginDecision:
    """
    Решение OriginGuard.

    Attributes:
        allow: пропускать ли запрос дальше
        emit_cors_headers: добавлять ли CORS заголовки в ответ
        headers: сами CORS заголовки (пусто, если emit_cors_headers=False)
    """

    allow: bool
    emit_cors_headers: bool
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class InboundRequest:
    """
    Входящий запрос, отвязанный от HTTP фреймворка.

    Attributes:
        method: HTTP метод
        headers: заголовки (ключи приводятся к нижнему регистру)
        body: распарсенное JSON тело или None
        client_host: адрес соединения (если известен)
    """

    method: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[Any] = None
    client_host: Optional[str] = None

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = {k.lower(): v for k, v in self.headers.items()}

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


@dataclass
class PipelineResponse:
    """
    Ответ пайплайна: статус, текстовое тело и заголовки.
    """

    status_code: int
    body: str = ""
    headers: dict[str, str] = field(default_factory=dict)
