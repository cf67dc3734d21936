"""Module entrypoint for running the invoice API server."""

from __future__ import annotations

import logging
import sys

from .config import HOST, LOG_LEVEL, PORT
from .server import DependencyError, run


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        run(HOST, PORT)
    except DependencyError as exc:
        print(str(exc), file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
