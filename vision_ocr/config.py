"""
Конфигурация Vision OCR Gateway.

Все значения читаются из .env файла (или переменных окружения).
Единый префикс: OCR_

Ключи Computer Vision, доступ к хранилищу и публичный URL изображений
обязательны — без них сервис не стартует.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Настройки Vision OCR Gateway.

    Читает переменные с префиксом OCR_ из .env файла.
    """

    model_config = SettingsConfigDict(
        env_prefix="OCR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Сервер ---
    port: int = 8000

    # --- Computer Vision (Read API) ---
    vision_key: str
    vision_endpoint: str
    read_api_version: str = "v3.2"
    http_timeout_seconds: float = 30.0

    # --- Объектное хранилище (S3 / MinIO) ---
    storage_endpoint: str
    storage_access_key: str
    storage_secret_key: str
    storage_bucket: str = "images"
    storage_secure: bool = True

    # Публичный базовый URL загруженных изображений (к нему дописывается имя)
    images_url: str

    # --- CORS ---
    # JSON список в env: OCR_ALLOWED_ORIGINS='["https://example.com"]'
    allowed_origins: list[str] = []

    # --- Rate limiting ---
    rate_limit_window_ms: int = 60_000
    rate_limit_max_requests: int = 10
    rate_limit_gc_threshold: int = 1000

    # --- Лимиты ---
    max_image_size_mb: int = 10

    # --- Polling ---
    poll_interval_seconds: float = 1.0
    poll_max_attempts: int = 30


# Глобальный экземпляр настроек
settings = Settings()
