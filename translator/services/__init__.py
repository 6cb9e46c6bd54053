"""
Сервисы пайплайна перевода.

Модули:
    - rate_limiter: ограничение частоты запросов по клиенту
    - upload_validator: проверка загруженного файла
    - vision_ocr: OCR через Google Vision
    - script_detector: проверка наличия японского текста
    - text_boxes: прямоугольники текстовых блоков
    - fragment_translator: перевод фрагментов (Google Translation)
    - llm_translator: полный перевод (OpenAI)
    - response_builder: сборка ответа
    - pipeline: координация всех этапов
"""

from translator.services.fragment_translator import FragmentTranslator
from translator.services.llm_translator import LlmTranslator
from translator.services.pipeline import TranslationPipeline
from translator.services.rate_limiter import RateLimiter
from translator.services.response_builder import build_response
from translator.services.script_detector import contains_japanese
from translator.services.text_boxes import build_text_boxes, compute_rect
from translator.services.upload_validator import validate_upload
from translator.services.vision_ocr import VisionOcrClient

__all__ = [
    "TranslationPipeline",
    "RateLimiter",
    "validate_upload",
    "VisionOcrClient",
    "contains_japanese",
    "compute_rect",
    "build_text_boxes",
    "FragmentTranslator",
    "LlmTranslator",
    "build_response",
]
