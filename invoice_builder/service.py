"""Invoice generation pipeline: resolve assets, lay out, render, store."""

from __future__ import annotations

import logging
from typing import Optional

from .assets import AssetResolver
from .config import MAX_PAGES
from .errors import InvoiceTooLarge
from .layout import LayoutEngine, page_count
from .models import InvoiceRequest
from .rendering import DocumentRenderer
from .storage import ArtifactStore, StoredArtifact

logger = logging.getLogger(__name__)


def generate_invoice(
    request: InvoiceRequest,
    store: ArtifactStore,
    max_pages: int = MAX_PAGES,
    resolver: Optional[AssetResolver] = None,
    compress: bool = True,
) -> StoredArtifact:
    """Render ``request`` to PDF and persist it; the first failure aborts.

    Nothing is written to ``store`` unless the whole document rendered.
    """
    resolver = resolver or AssetResolver()
    invoice_no = request.invoice.invoice_no

    logo = resolver.resolve(request.logo, label="logo")
    signature = resolver.resolve(request.signature, label="signature")

    renderer = DocumentRenderer(compress=compress)
    commands = LayoutEngine(renderer.fonts).layout(request, logo, signature)

    pages = page_count(commands)
    if pages > max_pages:
        raise InvoiceTooLarge(f"Invoice would render {pages} pages; maximum is {max_pages}.")

    with store.open_artifact(invoice_no) as sink:
        size = renderer.render(commands, sink, title=f"Invoice {invoice_no}")

    artifact = store.describe(invoice_no)
    logger.info(
        "Generated %s (%d items, %d pages, %d bytes)",
        artifact.name,
        len(request.items),
        pages,
        size,
    )
    return artifact
