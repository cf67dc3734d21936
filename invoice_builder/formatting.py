"""Text formatting and measuring helpers."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Optional, Protocol, Union


class TextWidthProvider(Protocol):
    def text_width(self, text: str, size: int) -> float:
        ...


def fmt_number(value: Union[int, Decimal]) -> str:
    """Plain positional notation: no currency symbol, no padding, no exponent."""
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def fmt_field(label: str, value: Optional[Any]) -> str:
    return f"{label}: {'' if value is None else value}"


def wrap_text(
    fonts_obj: TextWidthProvider,
    text: str,
    max_width: float,
    font_size: int,
    break_words: bool = True,
) -> List[str]:
    def line_width(value: str) -> float:
        return fonts_obj.text_width(value, font_size)

    def wrap_paragraph(paragraph: str) -> List[str]:
        words = paragraph.split()
        if not words:
            return [paragraph]

        lines: List[str] = []
        current = ""
        for word in words:
            candidate = word if not current else f"{current} {word}"
            if line_width(candidate) <= max_width:
                current = candidate
                continue

            if current:
                lines.append(current)
                current = word
                if not break_words or line_width(word) <= max_width:
                    continue
                current = ""

            if not break_words:
                current = word
                continue

            chunk = ""
            for char in word:
                candidate_chunk = chunk + char
                if chunk and line_width(candidate_chunk) > max_width:
                    lines.append(chunk)
                    chunk = char
                else:
                    chunk = candidate_chunk
            current = chunk

        if current:
            lines.append(current)
        return lines

    result: List[str] = []
    for paragraph in text.split("\n"):
        result.extend(wrap_paragraph(paragraph))
    return result if result else [text]
