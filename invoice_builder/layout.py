"""Invoice layout: turns a validated request into positioned draw commands.

The engine makes a single top-to-bottom pass. Vertical position is tracked by
a :class:`~invoice_builder.pagination.LayoutCursor` owned by the pass; when
the next line, table row or signature block does not fit above the bottom
margin a :class:`PageBreak` is emitted and layout resumes at the top margin.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from .formatting import TextWidthProvider, fmt_field, fmt_number, wrap_text
from .models import ImageHandle, InvoiceRequest, LineItem, Party
from .pagination import LayoutCursor
from .pdf_constants import (
    COLUMN_GUTTER,
    FONT_SIZE_NORMAL,
    FONT_SIZE_TITLE,
    LOGO_W,
    LOGO_X,
    LOGO_Y,
    MARGIN_LEFT,
    MARGIN_RIGHT,
    PAGE_W,
    SIGNATORY_OFFSET,
    SIGNATORY_TEXT,
    SIGNATURE_W,
    SIGNATURE_X,
    TABLE_COLUMNS,
    TITLE_TEXT,
    line_height,
)


@dataclass(frozen=True)
class TextCommand:
    x: float
    y: float
    text: str
    size: int = FONT_SIZE_NORMAL
    underline: bool = False


@dataclass(frozen=True)
class ImageCommand:
    x: float
    y: float
    width: float
    height: float
    image: ImageHandle


@dataclass(frozen=True)
class PageBreak:
    pass


DrawCommand = Union[TextCommand, ImageCommand, PageBreak]


def page_count(commands: Sequence[DrawCommand]) -> int:
    return 1 + sum(1 for command in commands if isinstance(command, PageBreak))


def _column_width(index: int) -> float:
    x = TABLE_COLUMNS[index][0]
    if index + 1 < len(TABLE_COLUMNS):
        return TABLE_COLUMNS[index + 1][0] - x - COLUMN_GUTTER
    return PAGE_W - MARGIN_RIGHT - x


class _LayoutPass:
    def __init__(self, measure: TextWidthProvider) -> None:
        self.measure = measure
        self.cursor = LayoutCursor()
        self.commands: List[DrawCommand] = []

    def break_page_if_needed(self, height: float) -> None:
        if self.cursor.needs_break(height):
            self.commands.append(PageBreak())
            self.cursor.new_page()

    def line(self, text: str, size: int = FONT_SIZE_NORMAL, underline: bool = False) -> None:
        x = MARGIN_LEFT
        max_width = PAGE_W - MARGIN_RIGHT - x
        for wrapped in wrap_text(self.measure, text, max_width, size):
            self.break_page_if_needed(line_height(size))
            self.commands.append(TextCommand(x, self.cursor.y, wrapped, size, underline))
            self.cursor.advance(line_height(size))

    def centered(self, text: str, size: int) -> None:
        self.break_page_if_needed(line_height(size))
        content_width = PAGE_W - MARGIN_LEFT - MARGIN_RIGHT
        x = MARGIN_LEFT + (content_width - self.measure.text_width(text, size)) / 2.0
        self.commands.append(TextCommand(x, self.cursor.y, text, size))
        self.cursor.advance(line_height(size))

    def blank(self) -> None:
        self.cursor.advance(line_height(FONT_SIZE_NORMAL))

    def row(self, cells: Sequence[str]) -> None:
        wrapped_cells = [
            wrap_text(self.measure, cell, _column_width(index), FONT_SIZE_NORMAL, break_words=False)
            for index, cell in enumerate(cells)
        ]
        height = max(len(lines) for lines in wrapped_cells) * line_height(FONT_SIZE_NORMAL)
        self.break_page_if_needed(height)

        row_y = self.cursor.y
        for (x, _), lines in zip(TABLE_COLUMNS, wrapped_cells):
            for offset, text in enumerate(lines):
                self.commands.append(TextCommand(x, row_y + offset * line_height(FONT_SIZE_NORMAL), text))
        self.cursor.advance(height)

    def party(self, heading: str, party: Party) -> None:
        self.line(heading, underline=True)
        self.line(party.name)
        self.line(party.address_line)
        self.line(fmt_field("State Code", party.state_code))


def item_cells(item: LineItem) -> List[str]:
    return [
        item.description,
        fmt_number(item.unit_price),
        fmt_number(item.quantity),
        fmt_number(item.discount),
        fmt_number(item.net_amount),
    ]


class LayoutEngine:
    def __init__(self, measure: TextWidthProvider) -> None:
        self.measure = measure

    def layout(
        self,
        request: InvoiceRequest,
        logo: Optional[ImageHandle] = None,
        signature: Optional[ImageHandle] = None,
    ) -> List[DrawCommand]:
        page = _LayoutPass(self.measure)

        logo_bottom = None
        if logo is not None:
            logo_height = logo.height_for(LOGO_W)
            page.commands.append(ImageCommand(LOGO_X, LOGO_Y, LOGO_W, logo_height, logo))
            logo_bottom = LOGO_Y + logo_height

        page.centered(TITLE_TEXT, FONT_SIZE_TITLE)
        if logo_bottom is not None and page.cursor.y < logo_bottom:
            page.cursor.y = logo_bottom

        seller = request.seller
        page.line(f"Seller: {seller.name}")
        page.line(f"Address: {seller.address_line}")
        page.line(fmt_field("PAN", seller.pan))
        page.line(fmt_field("GST", seller.gst))
        page.blank()

        page.line(fmt_field("Invoice No", request.invoice.invoice_no))
        page.line(fmt_field("Invoice Date", request.invoice.invoice_date))
        page.line(fmt_field("Order No", request.order.order_no))
        page.line(fmt_field("Order Date", request.order.order_date))
        page.blank()

        page.party("Billing Details:", request.billing)
        page.blank()
        page.party("Shipping Details:", request.shipping)
        page.blank()

        page.line(fmt_field("Place of Supply", request.place_of_supply))
        page.line(fmt_field("Place of Delivery", request.place_of_delivery))
        page.line(fmt_field("Reverse Charge", request.reverse_charge))
        page.blank()

        page.row([label for _, label in TABLE_COLUMNS])
        for item in request.items:
            page.row(item_cells(item))

        if signature is not None:
            page.blank()
            image_height = signature.height_for(SIGNATURE_W)
            caption_offset = max(SIGNATORY_OFFSET, image_height)
            page.break_page_if_needed(caption_offset + line_height(FONT_SIZE_NORMAL))
            top = page.cursor.y
            page.commands.append(ImageCommand(SIGNATURE_X, top, SIGNATURE_W, image_height, signature))
            page.commands.append(TextCommand(SIGNATURE_X, top + caption_offset, SIGNATORY_TEXT))
            page.cursor.advance(caption_offset + line_height(FONT_SIZE_NORMAL))

        return page.commands
