"""
Пайплайн обработки запроса на перевод.

Этапы (каждый — шлюз, ошибка любого этапа завершает запрос):
    1. Rate limit по идентификатору клиента
    2. Валидация файла
    3. OCR (Google Vision)
    4. Проверка наличия японского текста
    5. Построение текстовых блоков
    6. Перевод фрагментов (только режим ruby, параллельно)
    7. Полный перевод (LLM)
    8. Сборка ответа

Автоматических повторов нет: ошибка внешнего сервиса фатальна для запроса,
кроме ошибок перевода отдельных фрагментов.
"""

import logging
import time

from translator.config import Settings
from translator.errors import (
    NoTargetScriptError,
    NoTextDetectedError,
    PipelineError,
    PipelineStage,
    RateLimitedError,
)
from translator.schemas import ClientRequest, TranslateResponse
from translator.services.fragment_translator import FragmentTranslator
from translator.services.llm_translator import LlmTranslator
from translator.services.rate_limiter import RateLimiter
from translator.services.response_builder import build_response
from translator.services.script_detector import contains_japanese
from translator.services.text_boxes import build_text_boxes
from translator.services.upload_validator import validate_upload
from translator.services.vision_ocr import VisionOcrClient

logger = logging.getLogger(__name__)


class TranslationPipeline:
    """
    Координатор всех этапов обработки.

    Внешние сервисы передаются снаружи, что позволяет подменять их в тестах.

    Args:
        settings: настройки сервиса
        rate_limiter: общий для процесса ограничитель запросов
        ocr: адаптер OCR
        fragment_translator: перевод отдельных фрагментов
        llm_translator: полный перевод
    """

    def __init__(
        self,
        settings: Settings,
        rate_limiter: RateLimiter,
        ocr: VisionOcrClient,
        fragment_translator: FragmentTranslator,
        llm_translator: LlmTranslator,
    ):
        self.settings = settings
        self.rate_limiter = rate_limiter
        self.ocr = ocr
        self.fragment_translator = fragment_translator
        self.llm_translator = llm_translator

    @classmethod
    def from_settings(cls, settings: Settings) -> "TranslationPipeline":
        timeout = settings.external_timeout_seconds
        return cls(
            settings=settings,
            rate_limiter=RateLimiter(
                cooldown_seconds=settings.rate_limit_cooldown_seconds,
                max_entries=settings.rate_limit_max_entries,
            ),
            ocr=VisionOcrClient(
                settings.google_credentials_json,
                timeout_seconds=timeout,
            ),
            fragment_translator=FragmentTranslator(
                settings.google_credentials_json,
                target_language=settings.target_language,
                timeout_seconds=timeout,
                concurrency=settings.fragment_concurrency,
            ),
            llm_translator=LlmTranslator(
                settings.openai_api_key,
                model=settings.openai_model,
                temperature=settings.openai_temperature,
                max_tokens=settings.openai_max_tokens,
                timeout_seconds=timeout,
            ),
        )

    async def run(self, request: ClientRequest) -> TranslateResponse:
        """
        Выполняет полный пайплайн для одного запроса.

        Args:
            request: входящий запрос

        Returns:
            TranslateResponse: результат перевода

        Raises:
            PipelineError: при остановке на любом этапе
        """
        total_start = time.perf_counter()
        stage = PipelineStage.RECEIVED
        mode = "ruby" if request.ruby_mode else "default"

        logger.info("=" * 60)
        logger.info("НОВЫЙ ЗАПРОС ПЕРЕВОДА")
        logger.info(f"   Клиент: {request.client_id}")
        logger.info(f"   Файл: {request.filename} ({request.content_type})")
        logger.info(f"   Режим: {mode}")
        logger.info("=" * 60)

        try:
            # 1. Rate limit
            decision = self.rate_limiter.check(request.client_id)
            if not decision.allowed:
                raise RateLimitedError(decision.wait_seconds)
            stage = PipelineStage.RATE_CHECKED

            # 2. Валидация
            validate_upload(
                request.image_bytes,
                request.content_type,
                max_size_bytes=self.settings.max_file_size_bytes,
                allowed_content_types=self.settings.allowed_content_types,
                verify_content=self.settings.verify_image_content,
            )
            stage = PipelineStage.VALIDATED
            logger.info(f"   Файл принят: {len(request.image_bytes)} байт")

            # 3. OCR
            ocr_start = time.perf_counter()
            ocr_result = await self.ocr.detect_text(request.image_bytes)
            ocr_duration = int((time.perf_counter() - ocr_start) * 1000)
            stage = PipelineStage.OCR_DONE
            logger.info(
                f"   OCR: {ocr_duration}ms, фрагментов: {len(ocr_result.fragments)}, "
                f"символов: {len(ocr_result.full_text)}"
            )

            if ocr_result.is_empty:
                raise NoTextDetectedError()

            # 4. Японский текст
            if not contains_japanese(ocr_result.full_text):
                raise NoTargetScriptError()
            stage = PipelineStage.SCRIPT_CHECKED

            # 5. Текстовые блоки
            text_boxes = build_text_boxes(ocr_result.fragments)
            stage = PipelineStage.FRAGMENTS_BUILT

            # 6. Перевод фрагментов (режим ruby)
            translated_boxes = None
            fragments_duration = 0
            if request.ruby_mode:
                fragments_start = time.perf_counter()
                translated_boxes = await self.fragment_translator.translate_boxes(text_boxes)
                fragments_duration = int((time.perf_counter() - fragments_start) * 1000)
                failed = sum(1 for box in translated_boxes if not box.translation_ok)
                stage = PipelineStage.FRAGMENT_TRANSLATED
                logger.info(
                    f"   Перевод фрагментов: {fragments_duration}ms, "
                    f"успешно {len(translated_boxes) - failed}/{len(translated_boxes)}"
                )

            # 7. Полный перевод
            llm_start = time.perf_counter()
            english_text = await self.llm_translator.translate(ocr_result.full_text)
            llm_duration = int((time.perf_counter() - llm_start) * 1000)
            stage = PipelineStage.FULLTEXT_TRANSLATED
            logger.info(f"   Полный перевод: {llm_duration}ms, символов: {len(english_text)}")

            # 8. Сборка ответа
            response = build_response(
                ruby_mode=request.ruby_mode,
                content_type=request.content_type,
                image_bytes=request.image_bytes,
                japanese_text=ocr_result.full_text,
                english_text=english_text,
                text_boxes=text_boxes,
                translated_boxes=translated_boxes,
            )
            stage = PipelineStage.ASSEMBLED

        except PipelineError as e:
            if e.stage is None:
                e.stage = stage
            logger.warning(f"   Запрос остановлен после этапа {e.stage.value}: {e}")
            raise

        total_duration = int((time.perf_counter() - total_start) * 1000)

        logger.info("-" * 60)
        logger.info("ПЕРЕВОД ЗАВЕРШЁН")
        logger.info(f"   Время по этапам:")
        logger.info(f"      OCR:        {ocr_duration}ms")
        if request.ruby_mode:
            logger.info(f"      Фрагменты:  {fragments_duration}ms")
        logger.info(f"      LLM:        {llm_duration}ms")
        logger.info(f"      ИТОГО:      {total_duration}ms")
        logger.info("=" * 60)

        return response
