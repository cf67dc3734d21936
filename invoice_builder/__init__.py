"""Public package API for invoice generation."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .errors import InvalidAsset, InvoiceError, InvoiceTooLarge, MalformedRequest, RenderFailure, StoreFailure
from .models import Asset, InvoiceRequest, parse_invoice_request


def generate_invoice(request: InvoiceRequest, store: Any, **kwargs: Any):
    from .service import generate_invoice as _generate_invoice

    return _generate_invoice(request, store, **kwargs)


def generate_invoice_from_fields(
    fields: Mapping[str, Any],
    artifacts_dir: str,
    logo: Optional[Asset] = None,
    signature: Optional[Asset] = None,
):
    from .storage import ArtifactStore

    request = parse_invoice_request(fields, logo=logo, signature=signature)
    return generate_invoice(request, ArtifactStore(artifacts_dir))


def run(host: str = "0.0.0.0", port: int = 3001) -> None:
    from .server import run as _run

    _run(host, port)


__all__ = [
    "Asset",
    "InvalidAsset",
    "InvoiceError",
    "InvoiceRequest",
    "InvoiceTooLarge",
    "MalformedRequest",
    "RenderFailure",
    "StoreFailure",
    "generate_invoice",
    "generate_invoice_from_fields",
    "parse_invoice_request",
    "run",
]
