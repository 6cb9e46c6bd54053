"""
Иерархия ошибок пайплайна перевода.

Каждая ошибка несёт HTTP статус, машинный код и сообщение для пользователя.
Сообщения для пользователя намеренно общие: внутренние детали
(тексты исключений SDK, ответы провайдеров) пишутся только в лог.
"""

from enum import Enum
from typing import Optional

from translator.schemas import ErrorResponse


class PipelineStage(str, Enum):
    """Этапы обработки запроса (в порядке прохождения)."""

    RECEIVED = "received"
    RATE_CHECKED = "rate_checked"
    VALIDATED = "validated"
    OCR_DONE = "ocr_done"
    SCRIPT_CHECKED = "script_checked"
    FRAGMENTS_BUILT = "fragments_built"
    FRAGMENT_TRANSLATED = "fragment_translated"
    FULLTEXT_TRANSLATED = "fulltext_translated"
    ASSEMBLED = "assembled"


class PipelineError(Exception):
    """
    Базовая ошибка пайплайна.

    Attributes:
        status_code: HTTP статус ответа
        code: машинный код ошибки
        message: сообщение для пользователя
        stage: последний успешно пройденный этап
    """

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, stage: Optional[PipelineStage] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def wait_time(self) -> Optional[int]:
        return None

    def to_payload(self) -> dict:
        return ErrorResponse(
            error=self.message, code=self.code, wait_time=self.wait_time()
        ).to_json_dict()


class RateLimitedError(PipelineError):
    """Клиент превысил лимит: один запрос в окно ожидания."""

    status_code = 429
    code = "rate_limited"

    def __init__(self, wait_seconds: int):
        super().__init__(
            f"Please wait {wait_seconds} seconds before next upload",
            stage=PipelineStage.RECEIVED,
        )
        self.wait_seconds = wait_seconds

    def wait_time(self) -> Optional[int]:
        return self.wait_seconds


class UnidentifiedClientError(PipelineError):
    status_code = 400
    code = "client_unidentified"

    def __init__(self):
        super().__init__(
            "Unable to identify client", stage=PipelineStage.RECEIVED
        )


class InvalidInputError(PipelineError):
    """
    Загруженный файл не прошёл валидацию.

    Attributes:
        reason: missing | too_large | bad_type
    """

    status_code = 400

    MISSING = "missing"
    TOO_LARGE = "too_large"
    BAD_TYPE = "bad_type"

    _MESSAGES = {
        MISSING: "No file uploaded",
        TOO_LARGE: "File size exceeds {limit_mb}MB limit",
        BAD_TYPE: "Only JPG and PNG files are allowed",
    }

    def __init__(self, reason: str, limit_mb: int = 10):
        if reason not in self._MESSAGES:
            raise ValueError(f"Unknown validation reason: {reason}")
        super().__init__(
            self._MESSAGES[reason].format(limit_mb=limit_mb),
            stage=PipelineStage.RATE_CHECKED,
        )
        self.reason = reason

    @property
    def code(self) -> str:
        return f"invalid_input.{self.reason}"


class NoTextDetectedError(PipelineError):
    status_code = 400
    code = "no_text"

    def __init__(self):
        super().__init__("No text found in the image", stage=PipelineStage.OCR_DONE)


class NoTargetScriptError(PipelineError):
    status_code = 400
    code = "no_japanese_text"

    def __init__(self):
        super().__init__(
            "No Japanese text found in the image",
            stage=PipelineStage.OCR_DONE,
        )


class ExternalServiceError(PipelineError):
    """
    Ошибка внешнего AI-сервиса (OCR, перевод, LLM).

    Тип ошибки определяется по тексту исходного исключения:
        - quota: исчерпана квота / превышен лимит провайдера
        - auth: проблемы с учётными данными
        - generic: всё остальное

    Attributes:
        service: ocr | translate | completion
        kind: quota | auth | generic
        cause: исходное исключение
    """

    OCR = "ocr"
    TRANSLATE = "translate"
    COMPLETION = "completion"

    QUOTA = "quota"
    AUTH = "auth"
    GENERIC = "generic"

    _QUOTA_MARKERS = (
        "quota",
        "resource_exhausted",
        "resourceexhausted",
        "rate limit",
        "ratelimit",
    )
    _AUTH_MARKERS = (
        "credential",
        "unauthenticated",
        "authentication",
        "permission_denied",
        "permissiondenied",
        "permission denied",
        "api key",
        "api_key",
    )

    _MESSAGES = {
        QUOTA: "API quota exceeded. Please try again later.",
        AUTH: "Authentication error. Please contact support.",
        GENERIC: "Translation failed",
    }

    def __init__(
        self,
        service: str,
        cause: Optional[BaseException] = None,
        detail: Optional[str] = None,
        stage: Optional[PipelineStage] = None,
    ):
        self.service = service
        self.cause = cause
        if detail is None and cause is not None:
            detail = f"{type(cause).__name__}: {cause}"
        self.detail = detail or ""
        self.kind = self.classify(self.detail)
        super().__init__(self._MESSAGES[self.kind], stage=stage)

    @classmethod
    def classify(cls, text: str) -> str:
        lowered = (text or "").lower()
        if any(marker in lowered for marker in cls._QUOTA_MARKERS):
            return cls.QUOTA
        if any(marker in lowered for marker in cls._AUTH_MARKERS):
            return cls.AUTH
        return cls.GENERIC

    @property
    def code(self) -> str:
        return f"{self.service}_error.{self.kind}"

    def __str__(self) -> str:
        return f"[{self.service}/{self.kind}] {self.detail}"
