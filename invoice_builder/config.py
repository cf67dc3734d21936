"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import os


def env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


HOST = env_str("INVOICE_HOST", "0.0.0.0")
PORT = env_int("INVOICE_PORT", 3001, minimum=1)

ARTIFACTS_DIR = env_str("INVOICE_ARTIFACTS_DIR", os.path.join(os.getcwd(), "invoices"))

DEFAULT_MAX_CONCURRENT_RENDERS = max(4, min(32, os.cpu_count() or 4))
MAX_CONCURRENT_RENDERS = env_int(
    "INVOICE_MAX_CONCURRENT_RENDERS",
    DEFAULT_MAX_CONCURRENT_RENDERS,
    minimum=1,
)
RENDER_QUEUE_TIMEOUT_MS = env_int("INVOICE_RENDER_QUEUE_TIMEOUT_MS", 30000, minimum=0)

MAX_BODY_BYTES = env_int("INVOICE_MAX_BODY_BYTES", 20 * 1024 * 1024, minimum=1024)
MAX_PAGES = env_int("INVOICE_MAX_PAGES", 500, minimum=1)
MAX_IMAGE_PIXELS = env_int("INVOICE_MAX_IMAGE_PIXELS", 40_000_000, minimum=1)
LISTEN_BACKLOG = env_int("INVOICE_LISTEN_BACKLOG", 512, minimum=1)

LOG_LEVEL = env_str("INVOICE_LOG_LEVEL", "INFO").upper()
