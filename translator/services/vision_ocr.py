"""
OCR через Google Cloud Vision (text_detection).

Формат ответа Vision:
    - text_annotations[0] — транскрипция всего изображения (геометрия не нужна)
    - text_annotations[1:] — отдельные фрагменты с полигоном из 4 вершин

Ошибки сети, авторизации и квоты не превращаются в пустой результат,
а поднимаются как ExternalServiceError(service="ocr").
"""

import asyncio
import logging
import threading
from typing import Any, Iterable, Optional

from google.cloud import vision
from starlette.concurrency import run_in_threadpool

from translator.errors import ExternalServiceError
from translator.schemas import OcrFragment, OcrResult, Vertex
from translator.services.google_auth import build_google_credentials

logger = logging.getLogger(__name__)


class VisionOcrClient:
    """
    Адаптер Google Vision API.

    Клиент SDK создаётся лениво при первом вызове: без учётных данных
    сервис стартует, а ошибка возникает только при обращении к OCR.

    Args:
        credentials_json: JSON сервисного аккаунта Google
        timeout_seconds: таймаут одного вызова API
        client: готовый ImageAnnotatorClient (для тестов)
    """

    def __init__(
        self,
        credentials_json: Optional[str],
        timeout_seconds: float = 60.0,
        client: Optional[vision.ImageAnnotatorClient] = None,
    ):
        self._credentials_json = credentials_json
        self._timeout_seconds = timeout_seconds
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self._credentials_json)

    def _get_client(self) -> vision.ImageAnnotatorClient:
        with self._client_lock:
            if self._client is None:
                try:
                    credentials, _ = build_google_credentials(self._credentials_json)
                except ValueError as e:
                    raise ExternalServiceError(
                        ExternalServiceError.OCR,
                        cause=e,
                        detail=f"Google credentials error: {e}",
                    ) from e
                self._client = vision.ImageAnnotatorClient(credentials=credentials)
                logger.info("Google Vision клиент инициализирован")
            return self._client

    def _detect_sync(self, image_bytes: bytes) -> OcrResult:
        client = self._get_client()
        # Повторов нет: ошибка сразу уходит клиенту
        response = client.text_detection(
            image=vision.Image(content=image_bytes),
            retry=None,
            timeout=self._timeout_seconds,
        )

        if response.error.message:
            raise ExternalServiceError(
                ExternalServiceError.OCR,
                detail=f"Vision API error: {response.error.message}",
            )

        return parse_annotations(response.text_annotations)

    async def detect_text(self, image_bytes: bytes) -> OcrResult:
        """
        Распознаёт текст на изображении.

        Args:
            image_bytes: содержимое изображения

        Returns:
            OcrResult: полный текст и фрагменты (пустой, если текста нет)

        Raises:
            ExternalServiceError: при ошибке вызова Vision API или таймауте
        """
        try:
            return await asyncio.wait_for(
                run_in_threadpool(self._detect_sync, image_bytes),
                timeout=self._timeout_seconds,
            )
        except ExternalServiceError:
            raise
        except asyncio.TimeoutError as e:
            raise ExternalServiceError(
                ExternalServiceError.OCR,
                cause=e,
                detail=f"Vision API timeout after {self._timeout_seconds}s",
            ) from e
        except Exception as e:
            raise ExternalServiceError(ExternalServiceError.OCR, cause=e) from e


def parse_annotations(annotations: Iterable[Any]) -> OcrResult:
    """
    Преобразует text_annotations Vision в OcrResult.

    Отсутствующие координаты вершин считаются нулевыми.

    Args:
        annotations: список EntityAnnotation (или объектов той же формы)

    Returns:
        OcrResult: полный текст и фрагменты в исходном порядке
    """
    annotations = list(annotations or [])
    if not annotations:
        return OcrResult()

    full_text = annotations[0].description or ""

    fragments = []
    for annotation in annotations[1:]:
        poly = getattr(annotation, "bounding_poly", None)
        raw_vertices = getattr(poly, "vertices", None) or []
        vertices = [
            Vertex(x=getattr(v, "x", None) or 0, y=getattr(v, "y", None) or 0)
            for v in raw_vertices
        ]
        fragments.append(
            OcrFragment(text=annotation.description or "", vertices=vertices)
        )

    return OcrResult(full_text=full_text, fragments=fragments)
