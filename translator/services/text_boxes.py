"""
Построение текстовых блоков из полигонов OCR.

Google Vision возвращает для каждого фрагмента полигон из 4 вершин.
Для отображения на фронтенде нужен охватывающий прямоугольник
{left, top, width, height}.
"""

from translator.schemas import OcrFragment, TextBox, Vertex


def compute_rect(vertices: list[Vertex]) -> tuple[int, int, int, int]:
    """
    Вычисляет охватывающий прямоугольник полигона.

    Args:
        vertices: вершины полигона

    Returns:
        tuple: (left, top, width, height); для пустого списка — нули
    """
    if not vertices:
        return 0, 0, 0, 0

    xs = [v.x for v in vertices]
    ys = [v.y for v in vertices]

    left = min(xs)
    top = min(ys)

    return left, top, max(xs) - left, max(ys) - top


def build_text_boxes(fragments: list[OcrFragment]) -> list[TextBox]:
    """
    Преобразует фрагменты OCR в текстовые блоки.

    Порядок фрагментов сохраняется (порядок чтения от OCR).

    Args:
        fragments: фрагменты из OcrResult

    Returns:
        list[TextBox]: блоки с прямоугольниками
    """
    boxes = []
    for fragment in fragments:
        left, top, width, height = compute_rect(fragment.vertices)
        boxes.append(
            TextBox(
                text=fragment.text,
                bounds=list(fragment.vertices),
                left=left,
                top=top,
                width=width,
                height=height,
            )
        )
    return boxes
