"""Page geometry and layout constants (points, top-left origin, US Letter)."""

PAGE_W = 612
PAGE_H = 792

MARGIN_TOP = 72.0
MARGIN_BOTTOM = 72.0
MARGIN_LEFT = 72.0
MARGIN_RIGHT = 72.0

# Line height as a multiple of the font size
LINE_SPACING = 1.2
# Distance from the top of a line box to the text baseline, per point of font size
BASELINE_RATIO = 0.82
UNDERLINE_OFFSET_RATIO = 0.12
UNDERLINE_WIDTH = 0.6

FONT_SIZE_TITLE = 20
FONT_SIZE_NORMAL = 12

LOGO_X = 50.0
LOGO_Y = 50.0
LOGO_W = 100.0

SIGNATURE_X = 50.0
SIGNATURE_W = 100.0
SIGNATORY_OFFSET = 50.0

TABLE_COLUMNS = (
    (50.0, "Item Description"),
    (200.0, "Unit Price"),
    (300.0, "Quantity"),
    (350.0, "Discount"),
    (400.0, "Net Amount"),
)
COLUMN_GUTTER = 4.0

TITLE_TEXT = "Invoice"
SIGNATORY_TEXT = "Authorized Signatory"

COLOR_TEXT = (0, 0, 0)

# Anything else is rejected by the asset resolver.
SUPPORTED_IMAGE_FORMATS = frozenset({"PNG", "JPEG", "GIF"})


def line_height(size: float) -> float:
    return size * LINE_SPACING
