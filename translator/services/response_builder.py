"""
Сборка ответа API.

Изображение в ответе пока не обрабатывается: возвращается исходное
изображение в виде data URL. Режим определяет, в какое поле оно попадает
и какие текстовые блоки отдаются.
"""

import base64
from typing import Optional

from translator.schemas import TextBox, TranslatedTextBox, TranslateResponse


def to_data_url(image_bytes: bytes, content_type: str) -> str:
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def build_response(
    ruby_mode: bool,
    content_type: str,
    image_bytes: bytes,
    japanese_text: str,
    english_text: str,
    text_boxes: list[TextBox],
    translated_boxes: Optional[list[TranslatedTextBox]] = None,
) -> TranslateResponse:
    """
    Собирает ответ с учётом режима.

    Обычный режим: processed_image_base64 + исходные блоки без перевода.
    Режим ruby: ruby_image_base64 + блоки с переводом.

    Args:
        ruby_mode: режим ruby
        content_type: MIME тип для data URL
        image_bytes: исходное изображение
        japanese_text: полный японский текст
        english_text: полный перевод
        text_boxes: блоки без перевода
        translated_boxes: блоки с переводом (обязательны в режиме ruby)

    Returns:
        TranslateResponse: готовый ответ
    """
    image_url = to_data_url(image_bytes, content_type)

    if ruby_mode:
        if translated_boxes is None:
            raise ValueError("translated_boxes are required in ruby mode")
        return TranslateResponse(
            japanese_text=japanese_text,
            english_text=english_text,
            ruby_image_base64=image_url,
            text_boxes=list(translated_boxes),
        )

    return TranslateResponse(
        japanese_text=japanese_text,
        english_text=english_text,
        processed_image_base64=image_url,
        text_boxes=list(text_boxes),
    )
