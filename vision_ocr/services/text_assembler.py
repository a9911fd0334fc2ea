"""
Сборка плоского текста из результата Read API.
"""

from vision_ocr.schemas import ReadLine, RecognizedDocument


def _line_text(line: ReadLine) -> str:
    # Слова через пробел, без слов берём готовую строку
    if line.words:
        return " ".join(word.text for word in line.words)
    return line.text


def flatten(doc: RecognizedDocument) -> str:
    """
    Собирает текст документа: страницы -> строки -> слова.

    Каждая строка заканчивается "\\n", порядок страниц, строк и слов
    сохраняется. Пустой документ даёт пустую строку.

    Args:
        doc: распознанный документ

    Returns:
        str: текст, строка за строкой
    """
    return "".join(
        _line_text(line) + "\n"
        for page in doc.pages
        for line in page.lines
    )
