"""
Сервис перевода японского текста с изображений.

Принимает изображение, распознаёт японский текст (Google Vision),
при необходимости переводит отдельные фрагменты (Google Translation)
и делает цельный перевод всего текста через LLM (OpenAI).

Ничего не сохраняет: изображение и текст живут только в рамках запроса.
"""

from translator.config import settings
from translator.schemas import TextBox, TranslatedTextBox, TranslateResponse

__all__ = [
    "settings",
    "TextBox",
    "TranslatedTextBox",
    "TranslateResponse",
]
