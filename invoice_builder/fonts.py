"""Font discovery, measurement and text drawing helpers."""

from __future__ import annotations

import logging
import os
from typing import List, Optional, Tuple

from fpdf import FPDF  # type: ignore

logger = logging.getLogger(__name__)

_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def find_font_path(env_var: str, candidates: List[str]) -> Optional[str]:
    override = os.getenv(env_var)
    if override and os.path.exists(override):
        return override

    for path in candidates:
        if os.path.exists(path):
            return path
    return None


class FontManager:
    FAMILY = "InvoiceFont"
    CORE_FAMILY = "Helvetica"
    BUNDLED_REGULAR = os.path.join(_PROJECT_ROOT, "fonts", "DejaVuSans.ttf")
    SYSTEM_REGULAR_CANDIDATES = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans.ttf",
        "/Library/Fonts/DejaVuSans.ttf",
    ]

    def __init__(self, pdf: FPDF) -> None:
        self.pdf = pdf
        self.family = self.CORE_FAMILY
        self.use_unicode = False

        regular_path = find_font_path(
            "INVOICE_FONT_PATH",
            [self.BUNDLED_REGULAR, *self.SYSTEM_REGULAR_CANDIDATES],
        )
        if not regular_path:
            # Core fonts only cover Latin-1; anything else fails at render time.
            logger.debug("No TTF font found, falling back to core %s", self.CORE_FAMILY)
            return

        self.pdf.add_font(self.FAMILY, "", regular_path)
        self.family = self.FAMILY
        self.use_unicode = True

    def set_font(self, size: int) -> None:
        self.pdf.set_font(self.family, "", size)

    def text_width(self, text: str, size: int) -> float:
        self.set_font(size)
        return self.pdf.get_string_width(text)

    def draw_text(self, x: float, y: float, text: str, size: int, color: Tuple[int, int, int]) -> None:
        self.pdf.set_text_color(*color)
        self.set_font(size)
        self.pdf.text(x, y, text)
