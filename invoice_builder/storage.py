"""Filesystem store for generated invoice documents."""

from __future__ import annotations

import contextlib
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional

from .errors import StoreFailure

logger = logging.getLogger(__name__)

ARTIFACT_NAME_RE = re.compile(r"^invoice-[A-Za-z0-9][A-Za-z0-9._-]*\.pdf$")
URL_PREFIX = "/invoices/"


@dataclass(frozen=True)
class StoredArtifact:
    name: str
    file_path: str
    url_path: str
    size: int


def artifact_name(invoice_no: str) -> str:
    name = f"invoice-{invoice_no}.pdf"
    if not ARTIFACT_NAME_RE.match(name):
        raise StoreFailure(f"Invoice number {invoice_no!r} cannot be used as an artifact name.")
    return name


class ArtifactStore:
    """Writes artifacts under ``root`` as ``invoice-<invoiceNo>.pdf``.

    Writes go to a temporary file that is renamed over the final name on
    success, so concurrent writers for the same invoice number resolve to
    whichever finished last and readers never see a partial document.
    """

    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)

    def path_for(self, invoice_no: str) -> str:
        return os.path.join(self.root, artifact_name(invoice_no))

    def describe(self, invoice_no: str) -> StoredArtifact:
        name = artifact_name(invoice_no)
        file_path = os.path.join(self.root, name)
        try:
            size = os.path.getsize(file_path)
        except OSError as exc:
            raise StoreFailure(f"Artifact {name} is missing after commit: {exc}") from exc
        return StoredArtifact(name=name, file_path=file_path, url_path=URL_PREFIX + name, size=size)

    @contextlib.contextmanager
    def open_artifact(self, invoice_no: str) -> Iterator[BinaryIO]:
        target = self.path_for(invoice_no)
        try:
            os.makedirs(self.root, exist_ok=True)
            handle = tempfile.NamedTemporaryFile(
                dir=self.root,
                prefix=".pending-",
                suffix=".pdf",
                delete=False,
            )
        except OSError as exc:
            raise StoreFailure(f"Cannot create artifact in {self.root}: {exc}") from exc

        committed = False
        try:
            with handle:
                yield handle
            try:
                os.chmod(handle.name, 0o644)
                os.replace(handle.name, target)
            except OSError as exc:
                raise StoreFailure(f"Cannot commit artifact {os.path.basename(target)}: {exc}") from exc
            committed = True
            logger.debug("Committed artifact %s", target)
        finally:
            if not committed:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(handle.name)

    def store(self, invoice_no: str, data: bytes) -> StoredArtifact:
        with self.open_artifact(invoice_no) as sink:
            try:
                sink.write(data)
            except OSError as exc:
                raise StoreFailure(f"Writing artifact for invoice {invoice_no} failed: {exc}") from exc
        return self.describe(invoice_no)

    def locate(self, name: str) -> Optional[str]:
        if not ARTIFACT_NAME_RE.match(name):
            return None
        path = os.path.join(self.root, name)
        return path if os.path.isfile(path) else None
