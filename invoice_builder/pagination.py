"""Vertical layout cursor and the page-break policy built on it."""

from __future__ import annotations

from dataclasses import dataclass

from .pdf_constants import MARGIN_BOTTOM, MARGIN_TOP, PAGE_H


@dataclass
class LayoutCursor:
    """Current writing position of one layout pass.

    A cursor belongs to exactly one layout call; it is never shared between
    requests.
    """

    y: float = MARGIN_TOP
    top: float = MARGIN_TOP
    bottom: float = PAGE_H - MARGIN_BOTTOM

    def fits(self, height: float) -> bool:
        return self.y + height <= self.bottom

    def advance(self, height: float) -> float:
        self.y += height
        return self.y

    def new_page(self) -> None:
        self.y = self.top

    def needs_break(self, height: float) -> bool:
        # Content taller than a whole page is placed anyway rather than
        # producing an endless run of empty pages.
        return not self.fits(height) and self.y > self.top
