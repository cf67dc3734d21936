import os
import re
import tempfile
import threading
import unittest
from importlib import util as importlib_util

from invoice_builder.errors import InvalidAsset, InvoiceTooLarge, MalformedRequest
from invoice_builder.models import Asset, parse_invoice_request
from invoice_builder.storage import ArtifactStore

from tests.samples import items, sample_fields

FPDF_AVAILABLE = importlib_util.find_spec("fpdf") is not None and importlib_util.find_spec("PIL") is not None
if FPDF_AVAILABLE:
    from invoice_builder import generate_invoice_from_fields
    from invoice_builder.service import generate_invoice

PAGE_OBJECT_RE = re.compile(rb"/Type\s*/Page\b")


def fingerprint(path):
    """Size, page count and trailer of a stored PDF; stable across renders of one request."""
    with open(path, "rb") as handle:
        data = handle.read()
    return len(data), len(PAGE_OBJECT_RE.findall(data)), data.rstrip().endswith(b"%%EOF")


@unittest.skipUnless(FPDF_AVAILABLE, "fpdf2/Pillow are not installed")
class GenerateInvoiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.store = ArtifactStore(self._tmp.name)

    def reference_renderings(self):
        """Fingerprints of the 1-item and 60-item documents rendered in isolation."""
        results = []
        for count in (1, 60):
            with tempfile.TemporaryDirectory() as root:
                artifact = generate_invoice(parse_invoice_request(sample_fields(items=items(count))), ArtifactStore(root))
                results.append(fingerprint(artifact.file_path))
        return tuple(results)

    def test_round_trip_for_invoice_1001(self) -> None:
        request = parse_invoice_request(sample_fields())
        self.assertEqual(str(request.items[0].net_amount), "28.5")

        artifact = generate_invoice(request, self.store)

        self.assertEqual(artifact.name, "invoice-1001.pdf")
        self.assertEqual(artifact.url_path, "/invoices/invoice-1001.pdf")
        with open(artifact.file_path, "rb") as handle:
            data = handle.read()
        self.assertTrue(data.startswith(b"%PDF"))
        self.assertEqual(artifact.size, len(data))

    def test_same_invoice_number_overwrites(self) -> None:
        one_item, many_items = self.reference_renderings()

        generate_invoice(parse_invoice_request(sample_fields(items=items(1))), self.store)
        artifact = generate_invoice(parse_invoice_request(sample_fields(items=items(60))), self.store)

        self.assertEqual(os.listdir(self._tmp.name), ["invoice-1001.pdf"])
        self.assertEqual(fingerprint(artifact.file_path), many_items)
        self.assertNotEqual(fingerprint(artifact.file_path), one_item)

    def test_concurrent_writers_leave_one_complete_document(self) -> None:
        known = set(self.reference_renderings())
        requests = [
            parse_invoice_request(sample_fields(items=items(1 if index % 2 else 60)))
            for index in range(8)
        ]
        errors = []

        def write(request) -> None:
            try:
                generate_invoice(request, self.store)
            except Exception as exc:  # surfaced through the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=write, args=(request,)) for request in requests]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(os.listdir(self._tmp.name), ["invoice-1001.pdf"])
        self.assertIn(fingerprint(self.store.path_for("1001")), known)

    def test_missing_seller_details_produces_no_artifact(self) -> None:
        fields = sample_fields()
        del fields["sellerDetails"]

        with self.assertRaises(MalformedRequest):
            generate_invoice_from_fields(fields, self._tmp.name)

        self.assertEqual(os.listdir(self._tmp.name), [])

    def test_invalid_asset_produces_no_artifact(self) -> None:
        request = parse_invoice_request(sample_fields(), logo=Asset(data=b"not an image", extension=".png"))

        with self.assertRaises(InvalidAsset):
            generate_invoice(request, self.store)

        self.assertEqual(os.listdir(self._tmp.name), [])

    def test_page_limit_rejects_before_writing(self) -> None:
        request = parse_invoice_request(sample_fields(items=items(200)))

        with self.assertRaises(InvoiceTooLarge) as ctx:
            generate_invoice(request, self.store, max_pages=2)

        self.assertEqual(ctx.exception.status, 413)
        self.assertEqual(os.listdir(self._tmp.name), [])


if __name__ == "__main__":
    unittest.main()
