"""
Валидация загруженного изображения.

Проверки выполняются до любых сетевых вызовов:
    1. Файл передан
    2. Размер не больше лимита
    3. MIME тип из разрешённого списка (JPEG, PNG)
    4. Байты действительно декодируются как JPEG/PNG (опционально)
"""

import io
import logging
from typing import Iterable, Optional

from PIL import Image, UnidentifiedImageError

from translator.errors import InvalidInputError

logger = logging.getLogger(__name__)

# Форматы Pillow, соответствующие разрешённым MIME типам
_ALLOWED_IMAGE_FORMATS = {"JPEG", "PNG"}


def validate_upload(
    image_bytes: Optional[bytes],
    content_type: Optional[str],
    max_size_bytes: int,
    allowed_content_types: Iterable[str],
    verify_content: bool = False,
) -> None:
    """
    Проверяет загруженный файл.

    Args:
        image_bytes: содержимое файла (None — файл не передан)
        content_type: заявленный MIME тип
        max_size_bytes: максимальный размер в байтах
        allowed_content_types: разрешённые MIME типы
        verify_content: проверять сигнатуру изображения через Pillow

    Raises:
        InvalidInputError: с причиной missing, too_large или bad_type
    """
    limit_mb = max_size_bytes // (1024 * 1024)

    if image_bytes is None:
        raise InvalidInputError(InvalidInputError.MISSING, limit_mb=limit_mb)

    if len(image_bytes) > max_size_bytes:
        logger.info(f"Файл слишком большой: {len(image_bytes)} байт")
        raise InvalidInputError(InvalidInputError.TOO_LARGE, limit_mb=limit_mb)

    normalized_type = (content_type or "").split(";")[0].strip().lower()
    if normalized_type not in {t.lower() for t in allowed_content_types}:
        logger.info(f"Неподдерживаемый тип файла: {content_type}")
        raise InvalidInputError(InvalidInputError.BAD_TYPE, limit_mb=limit_mb)

    if verify_content and detect_image_format(image_bytes) not in _ALLOWED_IMAGE_FORMATS:
        logger.info(f"Содержимое файла не является JPEG/PNG (заявлен {content_type})")
        raise InvalidInputError(InvalidInputError.BAD_TYPE, limit_mb=limit_mb)


def detect_image_format(image_bytes: bytes) -> Optional[str]:
    """
    Определяет формат изображения по содержимому.

    Returns:
        str: формат Pillow ("JPEG", "PNG", ...) или None, если не изображение
            или Pillow отказывается открыть его как decompression bomb
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.verify()
            return img.format
    except Image.DecompressionBombError:
        logger.info("Изображение превышает лимит пикселей Pillow")
        return None
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return None
