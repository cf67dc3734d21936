"""HTTP server entrypoints for invoice generation and retrieval."""

from __future__ import annotations

import errno
import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote, urlsplit

from .config import (
    ARTIFACTS_DIR,
    LISTEN_BACKLOG,
    MAX_BODY_BYTES as MAX_BODY_BYTES_CONFIG,
    MAX_CONCURRENT_RENDERS,
    MAX_PAGES as MAX_PAGES_CONFIG,
    RENDER_QUEUE_TIMEOUT_MS,
)
from .errors import InvoiceError
from .models import parse_invoice_request
from .payload import BodyError, decode_body
from .storage import URL_PREFIX, ArtifactStore

logger = logging.getLogger(__name__)

RENDER_SEMAPHORE = threading.BoundedSemaphore(MAX_CONCURRENT_RENDERS)
GENERATE_PATHS = ("/generate-invoice", "/invoice", "/generate")
HEALTH_PATHS = ("/", "/health", "/healthz", "/ready")
Response = Tuple[int, Dict[str, Any]]

DISCONNECT_ERRNOS = {errno.EPIPE, errno.ECONNRESET, errno.ETIMEDOUT}
if hasattr(errno, "WSAECONNRESET"):
    DISCONNECT_ERRNOS.add(errno.WSAECONNRESET)  # pragma: no cover


class DependencyError(RuntimeError):
    """Raised when a required runtime dependency is missing."""


def is_client_disconnect(exc: BaseException) -> bool:
    if isinstance(exc, (BrokenPipeError, ConnectionResetError, TimeoutError)):
        return True
    return isinstance(exc, OSError) and exc.errno in DISCONNECT_ERRNOS


def load_generate_invoice():
    try:
        from .service import generate_invoice
    except ModuleNotFoundError as exc:
        if exc.name in ("fpdf", "PIL"):
            raise DependencyError(
                f"Missing dependency {exc.name!r}. Install the project with 'pip install .'."
            ) from exc
        raise
    return generate_invoice


def handle_generate(
    body: bytes,
    content_type: Optional[str],
    store: ArtifactStore,
    max_pages: int = MAX_PAGES_CONFIG,
) -> Response:
    """Decode, validate and render one request; returns (status, JSON payload)."""
    try:
        fields, assets = decode_body(body, content_type)
        request = parse_invoice_request(
            fields,
            logo=assets.get("logo"),
            signature=assets.get("signature"),
        )
    except (BodyError, InvoiceError) as exc:
        logger.warning("Rejected invoice request: %s", exc.detail)
        return exc.status, exc.to_payload()

    acquired = RENDER_SEMAPHORE.acquire(timeout=RENDER_QUEUE_TIMEOUT_MS / 1000.0)
    if not acquired:
        retry_after_seconds = max(1, (RENDER_QUEUE_TIMEOUT_MS + 999) // 1000)
        return 503, {
            "error": "server_busy",
            "detail": "Render queue is full; retry shortly.",
            "retry_after_ms": RENDER_QUEUE_TIMEOUT_MS,
            "retry_after_seconds": retry_after_seconds,
            "max_concurrent_renders": MAX_CONCURRENT_RENDERS,
        }

    try:
        generate_invoice = load_generate_invoice()
        artifact = generate_invoice(request, store, max_pages=max_pages)
    except InvoiceError as exc:
        if exc.status >= 500:
            logger.error("Invoice %s failed: %s", request.invoice.invoice_no, exc.detail)
        else:
            logger.warning("Rejected invoice %s: %s", request.invoice.invoice_no, exc.detail)
        return exc.status, exc.to_payload()
    except Exception as exc:
        logger.exception("Unexpected failure rendering invoice %s", request.invoice.invoice_no)
        return 500, {"error": "render_failed", "detail": str(exc)}
    finally:
        RENDER_SEMAPHORE.release()

    return 200, {"message": "Invoice generated successfully", "path": artifact.url_path}


class InvoiceHandler(BaseHTTPRequestHandler):
    MAX_BODY_BYTES = MAX_BODY_BYTES_CONFIG
    MAX_PAGES = MAX_PAGES_CONFIG
    store = ArtifactStore(ARTIFACTS_DIR)

    def _write_response(self, status: int, content_type: str, body: bytes) -> bool:
        try:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
            return True
        except Exception as exc:
            if is_client_disconnect(exc):
                return False
            raise

    def _send_json(self, status: int, payload: Dict[str, Any]) -> bool:
        body = json.dumps(payload).encode("utf-8")
        return self._write_response(status, "application/json", body)

    def _content_length(self) -> int:
        header = self.headers.get("Content-Length")
        if header is None:
            raise BodyError(411, "missing_content_length", "Content-Length header is required.")
        try:
            content_length = int(header)
        except ValueError:
            raise BodyError(400, "invalid_content_length", "Content-Length must be an integer.") from None
        if content_length <= 0:
            raise BodyError(400, "empty_body", "Request body cannot be empty.")
        if content_length > self.MAX_BODY_BYTES:
            raise BodyError(413, "payload_too_large", f"Body exceeds {self.MAX_BODY_BYTES} bytes.")
        return content_length

    def _read_body(self) -> Optional[bytes]:
        try:
            content_length = self._content_length()
        except BodyError as exc:
            self._send_json(exc.status, exc.to_payload())
            return None

        try:
            return self.rfile.read(content_length)
        except OSError as exc:
            if is_client_disconnect(exc):
                return None
            raise

    def _route(self) -> str:
        path = urlsplit(self.path).path
        return path.rstrip("/") or "/"

    def do_POST(self) -> None:
        if self._route() not in GENERATE_PATHS:
            self._send_json(404, {"error": "not_found", "detail": "Unsupported endpoint."})
            return

        body = self._read_body()
        if body is None:
            return

        status, payload = handle_generate(
            body,
            self.headers.get("Content-Type"),
            self.store,
            max_pages=self.MAX_PAGES,
        )
        self._send_json(status, payload)

    def do_GET(self) -> None:
        route = self._route()
        if route in HEALTH_PATHS:
            self._send_json(200, {"status": "ok"})
            return

        if route.startswith(URL_PREFIX):
            file_path = self.store.locate(unquote(route[len(URL_PREFIX):]))
            if file_path is not None:
                with open(file_path, "rb") as handle:
                    document = handle.read()
                self._write_response(200, "application/pdf", document)
                return

        self._send_json(404, {"error": "not_found", "detail": "Unsupported endpoint."})

    def handle_one_request(self) -> None:
        try:
            super().handle_one_request()
        except Exception as exc:
            if is_client_disconnect(exc):
                return
            raise

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class InvoiceHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True
    request_queue_size = LISTEN_BACKLOG


def run(host: str = "0.0.0.0", port: int = 3001) -> None:
    load_generate_invoice()
    server = InvoiceHTTPServer((host, port), InvoiceHandler)
    logger.info("Invoice API server listening on http://%s:%s", host, port)
    logger.info("Serving artifacts from %s", InvoiceHandler.store.root)
    server.serve_forever()
