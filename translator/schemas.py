"""
Схемы данных сервиса перевода.

Включает:
    - Pydantic модели для API (текстовые блоки, ответ)
    - Внутренние dataclass'ы для пайплайна обработки
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# Pydantic модели для API
# =============================================================================


class _CamelModel(BaseModel):
    """База для моделей API: snake_case в Python, camelCase в JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Vertex(_CamelModel):
    """
    Вершина полигона текстового блока.

    Координаты в пикселях, начало — левый верхний угол изображения.
    Google Vision опускает нулевые координаты, поэтому по умолчанию 0.
    """

    x: int = 0
    y: int = 0


class TextBox(_CamelModel):
    """
    Текстовый фрагмент, найденный OCR.

    Attributes:
        text: распознанный текст фрагмента
        bounds: вершины полигона в порядке OCR
        left: X координата левого края
        top: Y координата верхнего края
        width: ширина охватывающего прямоугольника
        height: высота охватывающего прямоугольника
    """

    text: str
    bounds: list[Vertex] = Field(default_factory=list)
    left: int = 0
    top: int = 0
    width: int = 0
    height: int = 0


class TranslatedTextBox(TextBox):
    """
    Текстовый фрагмент с индивидуальным переводом (режим ruby).

    Attributes:
        translated_text: перевод фрагмента (или исходный текст при ошибке)
        translation_ok: False, если перевод не удался и использован исходный текст
    """

    translated_text: str
    translation_ok: bool = True


class TranslateResponse(_CamelModel):
    """
    Ответ API с результатом перевода.

    Заполняется ровно одно из полей изображения:
    processed_image_base64 в обычном режиме, ruby_image_base64 в режиме ruby.

    Attributes:
        japanese_text: полный распознанный японский текст
        english_text: полный перевод на английский
        processed_image_base64: data URL изображения (обычный режим)
        ruby_image_base64: data URL изображения (режим ruby)
        text_boxes: фрагменты в порядке OCR
    """

    japanese_text: str
    english_text: str
    processed_image_base64: Optional[str] = None
    ruby_image_base64: Optional[str] = None
    text_boxes: list[Union[TranslatedTextBox, TextBox]] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        """Сериализует ответ в JSON-совместимый dict (camelCase, без None)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ErrorResponse(_CamelModel):
    """
    Тело ответа с ошибкой.

    Attributes:
        error: сообщение для пользователя
        code: машинный код ошибки
        wait_time: секунд до следующей попытки (только для 429, в JSON waitTime)
    """

    error: str
    code: str
    wait_time: Optional[int] = None

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Внутренние dataclass'ы для пайплайна
# =============================================================================


@dataclass
class ClientRequest:
    """
    Входящий запрос на перевод.

    Attributes:
        client_id: идентификатор клиента для rate limit (IP или "unknown")
        image_bytes: содержимое файла (None — файл не передан)
        content_type: заявленный MIME тип файла
        filename: имя файла для логирования
        ruby_mode: переводить ли каждый фрагмент отдельно
    """

    client_id: str
    image_bytes: Optional[bytes]
    content_type: Optional[str] = None
    filename: Optional[str] = None
    ruby_mode: bool = False


@dataclass
class RateLimitDecision:
    """
    Результат проверки rate limit.

    Attributes:
        allowed: запрос разрешён
        wait_seconds: сколько целых секунд ждать (только если allowed=False)
    """

    allowed: bool
    wait_seconds: Optional[int] = None


@dataclass
class OcrFragment:
    """Отдельный фрагмент текста из ответа OCR."""

    text: str
    vertices: list[Vertex] = field(default_factory=list)


@dataclass
class OcrResult:
    """
    Результат OCR для одного изображения.

    Attributes:
        full_text: транскрипция всего изображения (первая аннотация)
        fragments: отдельные фрагменты (остальные аннотации)
    """

    full_text: str = ""
    fragments: list[OcrFragment] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.full_text and not self.fragments
