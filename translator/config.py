"""
Конфигурация сервиса перевода японского текста с изображений.

Все значения читаются из .env файла (или переменных окружения).
Префикс параметров сервиса: TRANSLATOR_

Учётные данные внешних провайдеров читаются без префикса:
    - GOOGLE_APPLICATION_CREDENTIALS_JSON — JSON сервисного аккаунта Google
    - OPENAI_API_KEY — ключ OpenAI
"""

import json
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Настройки сервиса перевода.

    Читает переменные с префиксом TRANSLATOR_ из .env файла.
    """

    model_config = SettingsConfigDict(
        env_prefix="TRANSLATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Сервер ---
    port: int = 8000

    # --- Загрузка: лимиты ---
    max_file_size_mb: int = 10
    allowed_content_types: list[str] = ["image/jpeg", "image/jpg", "image/png"]
    # Проверять, что байты действительно декодируются как JPEG/PNG
    verify_image_content: bool = True

    # --- Rate limit ---
    rate_limit_cooldown_seconds: int = 60
    rate_limit_max_entries: int = 10_000
    # Отклонять запросы без X-Forwarded-For / X-Real-IP вместо общего "unknown"
    reject_unidentified_clients: bool = False

    # --- Перевод ---
    target_language: str = "en"
    openai_model: str = "gpt-4o"
    openai_temperature: float = 0.3
    openai_max_tokens: int = 2000

    # --- Внешние вызовы ---
    external_timeout_seconds: float = 60.0
    # Одновременных запросов к Translation API в рамках одного изображения
    fragment_concurrency: int = 16

    # --- Учётные данные ---
    google_credentials_json: Optional[str] = Field(
        default=None,
        validation_alias="GOOGLE_APPLICATION_CREDENTIALS_JSON",
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias="OPENAI_API_KEY",
    )

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


def load_google_credentials(credentials_json: Optional[str]) -> dict:
    """
    Разбирает JSON сервисного аккаунта Google.

    В переменных окружения private_key обычно хранится с экранированными
    переносами строк (\\n), их нужно вернуть в настоящие переносы.

    Args:
        credentials_json: содержимое GOOGLE_APPLICATION_CREDENTIALS_JSON

    Returns:
        dict: информация сервисного аккаунта

    Raises:
        ValueError: если учётные данные не заданы или JSON некорректен
    """
    if not credentials_json:
        raise ValueError("Google credentials not configured")

    try:
        info = json.loads(credentials_json)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid Google credentials format: {e}") from e

    if not isinstance(info, dict):
        raise ValueError("Invalid Google credentials format: expected JSON object")

    if info.get("private_key"):
        info["private_key"] = info["private_key"].replace("\\n", "\n")

    return info


# Глобальный экземпляр настроек
settings = Settings()
