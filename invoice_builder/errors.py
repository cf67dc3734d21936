"""Error kinds raised by the invoice pipeline.

Every error carries the HTTP status and machine-readable code the server
answers with, so the transport layer never has to guess.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class InvoiceError(Exception):
    status = 500
    code = "internal_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.detail}


class MalformedRequest(InvoiceError):
    """Required field group missing or not shaped as expected."""

    status = 400
    code = "malformed_request"

    def __init__(self, detail: str, fields: Optional[Iterable[str]] = None) -> None:
        super().__init__(detail)
        self.fields: List[str] = list(fields or [])

    @classmethod
    def from_problems(cls, problems: List[str]) -> "MalformedRequest":
        paths = [problem.split(":", 1)[0] for problem in problems]
        return cls("Invalid invoice request: " + "; ".join(problems), fields=paths)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.fields:
            payload["fields"] = self.fields
        return payload


class InvoiceTooLarge(MalformedRequest):
    status = 413
    code = "invoice_too_large"


class InvalidAsset(InvoiceError):
    """Supplied image bytes could not be decoded."""

    status = 400
    code = "invalid_asset"


class RenderFailure(InvoiceError):
    """Serializing the document or writing it to the sink failed."""

    code = "render_failed"


class StoreFailure(InvoiceError):
    """Persisting the finished artifact failed."""

    code = "store_failed"
