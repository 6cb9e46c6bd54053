"""
Полный перевод текста через OpenAI Chat Completions.

Весь распознанный текст отправляется одним запросом с фиксированной
инструкцией (профессиональный переводчик академических и литературных
текстов). Параметры модели задаются конфигурацией, а не запросом.

Политика ошибок:
    - пустой ответ модели -> пустая строка перевода
    - исключение API -> ExternalServiceError(service="completion")
"""

import asyncio
import logging
from typing import Optional

import httpx
from openai import AsyncOpenAI

from translator.errors import ExternalServiceError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a professional Japanese-to-English translator specializing in "
    "academic and literary texts. Provide natural, accurate translations while "
    "preserving the original meaning and nuance."
)

USER_PROMPT_TEMPLATE = "Translate this Japanese text into natural English:\n\n{text}"


def build_messages(text: str) -> list[dict]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_PROMPT_TEMPLATE.format(text=text)},
    ]


class LlmTranslator:
    """
    Переводчик полного текста на базе LLM.

    Args:
        api_key: ключ OpenAI
        model: имя модели
        temperature: температура сэмплирования
        max_tokens: ограничение длины ответа
        timeout_seconds: таймаут запроса
        client: готовый AsyncOpenAI (для тестов)
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o",
        temperature: float = 0.3,
        max_tokens: int = 2000,
        timeout_seconds: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._timeout_seconds = timeout_seconds
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self._api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise ExternalServiceError(
                    ExternalServiceError.COMPLETION,
                    detail="OpenAI credentials not configured (OPENAI_API_KEY)",
                )
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                http_client=httpx.AsyncClient(
                    timeout=httpx.Timeout(self._timeout_seconds)
                ),
                max_retries=0,
            )
            logger.info(f"OpenAI клиент инициализирован, модель {self.model}")
        return self._client

    async def translate(self, text: str) -> str:
        """
        Переводит полный текст.

        Args:
            text: японский текст

        Returns:
            str: перевод (пустая строка, если модель ничего не вернула)

        Raises:
            ExternalServiceError: при ошибке API или таймауте
        """
        client = self._get_client()

        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=self.model,
                    messages=build_messages(text),
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ExternalServiceError(
                ExternalServiceError.COMPLETION,
                cause=e,
                detail=f"Completion timeout after {self._timeout_seconds}s",
            ) from e
        except Exception as e:
            raise ExternalServiceError(ExternalServiceError.COMPLETION, cause=e) from e

        if not response.choices:
            logger.warning("LLM вернула ответ без choices, перевод пустой")
            return ""

        content = response.choices[0].message.content or ""
        if not content:
            logger.warning("LLM вернула пустой перевод")
        return content
