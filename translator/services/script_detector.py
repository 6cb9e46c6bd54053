"""
Определение наличия японского текста.

Японский текст — хотя бы один символ из диапазонов:
    - U+3040–U+309F: хирагана
    - U+30A0–U+30FF: катакана
    - U+4E00–U+9FAF: иероглифы CJK
"""

import re

_JAPANESE_PATTERN = re.compile(r"[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF]")


def contains_japanese(text: str) -> bool:
    """Возвращает True, если в тексте есть хотя бы один японский символ."""
    if not text:
        return False
    return _JAPANESE_PATTERN.search(text) is not None
