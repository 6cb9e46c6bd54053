"""
Перевод отдельных фрагментов через Google Cloud Translation (v2).

Используется только в режиме ruby: каждый фрагмент переводится
отдельным запросом, запросы выполняются параллельно.

Ошибка перевода одного фрагмента не прерывает обработку:
вместо перевода подставляется исходный текст, translation_ok=False.
"""

import asyncio
import logging
import threading
from typing import Optional

from google.cloud import translate_v2
from starlette.concurrency import run_in_threadpool

from translator.errors import ExternalServiceError
from translator.schemas import TextBox, TranslatedTextBox
from translator.services.google_auth import build_google_credentials

logger = logging.getLogger(__name__)


class FragmentTranslator:
    """
    Параллельный перевод текстовых блоков.

    Семафор ограничивает число ожидающих корутин, а не потоков SDK:
    после таймаута поток с вызовом translate продолжает работать
    до ответа сервера, а слот семафора уже освобождён. При частых
    таймаутах реальное число запросов в полёте может превышать
    concurrency (сверху его ограничивает пул потоков starlette).

    Args:
        credentials_json: JSON сервисного аккаунта Google
        target_language: код целевого языка
        timeout_seconds: таймаут перевода одного фрагмента
        concurrency: максимум одновременных запросов
        client: готовый translate_v2.Client (для тестов)
    """

    def __init__(
        self,
        credentials_json: Optional[str],
        target_language: str = "en",
        timeout_seconds: float = 60.0,
        concurrency: int = 16,
        client: Optional[translate_v2.Client] = None,
    ):
        self._credentials_json = credentials_json
        self.target_language = target_language
        self._timeout_seconds = timeout_seconds
        self._concurrency = max(1, concurrency)
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self._credentials_json)

    def _get_client(self) -> translate_v2.Client:
        with self._client_lock:
            if self._client is None:
                try:
                    credentials, _ = build_google_credentials(self._credentials_json)
                except ValueError as e:
                    raise ExternalServiceError(
                        ExternalServiceError.TRANSLATE,
                        cause=e,
                        detail=f"Google credentials error: {e}",
                    ) from e
                self._client = translate_v2.Client(credentials=credentials)
                logger.info("Google Translation клиент инициализирован")
            return self._client

    def _translate_sync(self, text: str) -> str:
        client = self._get_client()
        result = client.translate(
            text,
            target_language=self.target_language,
            format_="text",
        )
        return result["translatedText"]

    async def translate_text(self, text: str) -> str:
        """
        Переводит один фрагмент.

        Raises:
            Exception: любая ошибка SDK или таймаут
        """
        return await asyncio.wait_for(
            run_in_threadpool(self._translate_sync, text),
            timeout=self._timeout_seconds,
        )

    async def translate_boxes(self, boxes: list[TextBox]) -> list[TranslatedTextBox]:
        """
        Переводит все блоки параллельно.

        Результаты собираются по индексу блока, порядок завершения
        запросов не важен.

        Args:
            boxes: текстовые блоки в порядке OCR

        Returns:
            list[TranslatedTextBox]: блоки с переводом в том же порядке
        """
        semaphore = asyncio.Semaphore(self._concurrency)

        async def translate_one(index: int, box: TextBox) -> TranslatedTextBox:
            async with semaphore:
                try:
                    translated = await self.translate_text(box.text)
                    ok = True
                except Exception as e:
                    logger.warning(
                        f"Ошибка перевода фрагмента #{index} ({box.text!r}): {e}"
                    )
                    translated = box.text
                    ok = False

            return TranslatedTextBox(
                **box.model_dump(),
                translated_text=translated,
                translation_ok=ok,
            )

        return list(
            await asyncio.gather(
                *(translate_one(i, box) for i, box in enumerate(boxes))
            )
        )
