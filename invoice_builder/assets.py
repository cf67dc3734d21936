"""Decoding and validation of optional image assets (logo, signature)."""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Optional

from PIL import Image

from .config import MAX_IMAGE_PIXELS
from .errors import InvalidAsset
from .models import Asset, ImageHandle
from .pdf_constants import SUPPORTED_IMAGE_FORMATS

logger = logging.getLogger(__name__)


class AssetResolver:
    def __init__(self, max_pixels: int = MAX_IMAGE_PIXELS) -> None:
        self.max_pixels = max_pixels

    def resolve(self, asset: Optional[Asset], label: str = "asset") -> Optional[ImageHandle]:
        """Decode ``asset`` into a drawable handle, or ``None`` when absent."""
        if asset is None or not asset.data:
            return None

        try:
            with Image.open(BytesIO(asset.data)) as candidate:
                image_format = candidate.format or ""
                width, height = candidate.size
                candidate.verify()
        except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
            raise InvalidAsset(f"{label} is not a decodable image: {exc}") from exc

        if image_format not in SUPPORTED_IMAGE_FORMATS:
            raise InvalidAsset(
                f"{label} has unsupported image format {image_format or 'unknown'!r}; "
                f"expected one of {', '.join(sorted(SUPPORTED_IMAGE_FORMATS))}."
            )
        if width <= 0 or height <= 0:
            raise InvalidAsset(f"{label} has no drawable area.")
        if width * height > self.max_pixels:
            raise InvalidAsset(f"{label} is {width}x{height} pixels; maximum is {self.max_pixels} pixels.")

        # verify() leaves the image unusable; decode again for drawing.
        try:
            image = Image.open(BytesIO(asset.data))
            image.load()
        except (OSError, SyntaxError, ValueError) as exc:
            raise InvalidAsset(f"{label} is not a decodable image: {exc}") from exc

        if asset.extension and asset.extension.lstrip(".").upper() not in _extension_aliases(image_format):
            logger.debug("%s declared as %s but decoded as %s", label, asset.extension, image_format)

        return ImageHandle(image=image, width_px=width, height_px=height, format=image_format)


def _extension_aliases(image_format: str) -> frozenset:
    if image_format == "JPEG":
        return frozenset({"JPG", "JPEG", "JPE"})
    return frozenset({image_format})
