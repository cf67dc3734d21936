"""PDF serialization of laid-out draw commands."""

from __future__ import annotations

from typing import BinaryIO, Optional, Sequence

from fpdf import FPDF  # type: ignore
from fpdf.errors import FPDFException  # type: ignore

from .errors import RenderFailure
from .fonts import FontManager
from .layout import DrawCommand, ImageCommand, PageBreak, TextCommand
from .pdf_constants import BASELINE_RATIO, COLOR_TEXT, UNDERLINE_OFFSET_RATIO, UNDERLINE_WIDTH


class DocumentRenderer:
    """Draws commands onto one fpdf document; single use.

    ``fonts`` is exposed so the layout engine measures text with the same
    metrics the renderer draws with.
    """

    def __init__(self, compress: bool = True) -> None:
        self.pdf = FPDF(unit="pt", format="letter")
        self.pdf.set_auto_page_break(False)
        self.pdf.set_compression(compress)
        self.pdf.set_creator("invoice-builder")
        self.pdf.add_page()

        self.fonts = FontManager(self.pdf)

    def _draw_text(self, command: TextCommand) -> None:
        baseline = command.y + command.size * BASELINE_RATIO
        self.fonts.draw_text(command.x, baseline, command.text, command.size, COLOR_TEXT)
        if command.underline:
            underline_y = baseline + command.size * UNDERLINE_OFFSET_RATIO
            width = self.fonts.text_width(command.text, command.size)
            self.pdf.set_draw_color(*COLOR_TEXT)
            self.pdf.set_line_width(UNDERLINE_WIDTH)
            self.pdf.line(command.x, underline_y, command.x + width, underline_y)

    def _draw_image(self, command: ImageCommand) -> None:
        self.pdf.image(
            command.image.image,
            x=command.x,
            y=command.y,
            w=command.width,
            h=command.height,
        )

    def draw(self, commands: Sequence[DrawCommand]) -> None:
        for command in commands:
            if isinstance(command, PageBreak):
                self.pdf.add_page()
            elif isinstance(command, ImageCommand):
                self._draw_image(command)
            elif isinstance(command, TextCommand):
                self._draw_text(command)
            else:
                raise RenderFailure(f"Unknown draw command: {type(command).__name__}")

    def render(self, commands: Sequence[DrawCommand], sink: BinaryIO, title: Optional[str] = None) -> int:
        """Draw ``commands`` in order and write the PDF to ``sink``.

        Returns the number of bytes written.
        """
        if title:
            self.pdf.set_title(title)
        try:
            self.draw(commands)
            pdf_blob = self.pdf.output()
        except FPDFException as exc:
            # Core fonts reject non-Latin-1 text; a TTF font lifts that limit.
            raise RenderFailure(
                f"PDF serialization failed: {exc}. "
                "Check Unicode font configuration (INVOICE_FONT_PATH)."
            ) from exc

        if not isinstance(pdf_blob, (bytes, bytearray)):
            raise RenderFailure(f"Unexpected PDF output type: {type(pdf_blob).__name__}")

        data = bytes(pdf_blob)
        try:
            sink.write(data)
            sink.flush()
        except OSError as exc:
            raise RenderFailure(f"Writing the document failed: {exc}") from exc
        return len(data)
