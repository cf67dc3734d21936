import base64
import json
import os
import tempfile
import unittest
from importlib import util as importlib_util

from invoice_builder.errors import InvalidAsset, MalformedRequest
from invoice_builder.payload import BodyError, decode_body
from invoice_builder.server import InvoiceHandler, handle_generate
from invoice_builder.storage import ArtifactStore

from tests.samples import sample_fields

FPDF_AVAILABLE = importlib_util.find_spec("fpdf") is not None and importlib_util.find_spec("PIL") is not None

BOUNDARY = "----invoiceboundary7MA4YWxk"
MULTIPART_TYPE = f"multipart/form-data; boundary={BOUNDARY}"
BINARY_LOGO = b"\x89PNG\r\n\x1a\n\x00\x01\r\n--not-a-boundary\n\xff"


def multipart_body(fields, files=None) -> bytes:
    chunks = []
    for name, value in fields.items():
        text = json.dumps(value) if isinstance(value, (dict, list)) else str(value)
        chunks.append(
            f"--{BOUNDARY}\r\n"
            f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode("utf-8")
            + text.encode("utf-8")
            + b"\r\n"
        )
    for name, (filename, data) in (files or {}).items():
        chunks.append(
            f"--{BOUNDARY}\r\n"
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
            "Content-Type: application/octet-stream\r\n\r\n".encode("utf-8")
            + data
            + b"\r\n"
        )
    chunks.append(f"--{BOUNDARY}--\r\n".encode("utf-8"))
    return b"".join(chunks)


def json_body(payload) -> bytes:
    return json.dumps(payload).encode("utf-8")


class DecodeBodyTests(unittest.TestCase):
    def test_multipart_fields_and_files(self) -> None:
        body = multipart_body(sample_fields(), {"logo": ("logo.PNG", BINARY_LOGO)})

        fields, assets = decode_body(body, MULTIPART_TYPE)

        self.assertEqual(json.loads(fields["sellerDetails"])["name"], "Acme Traders")
        self.assertEqual(fields["reverseCharge"], "No")
        self.assertEqual(assets["logo"].data, BINARY_LOGO)
        self.assertEqual(assets["logo"].extension, ".png")
        self.assertEqual(assets["logo"].filename, "logo.PNG")
        self.assertNotIn("signature", assets)

    def test_multipart_empty_file_part_counts_as_absent(self) -> None:
        body = multipart_body(sample_fields(), {"signature": ("", b"")})

        _, assets = decode_body(body, MULTIPART_TYPE)

        self.assertEqual(assets, {})

    def test_multipart_without_boundary_is_rejected(self) -> None:
        with self.assertRaises(BodyError) as ctx:
            decode_body(b"garbage", "multipart/form-data")

        self.assertEqual(ctx.exception.status, 400)

    def test_multipart_without_closing_boundary_is_rejected(self) -> None:
        body = multipart_body(sample_fields())
        truncated = body[: body.rindex(f"--{BOUNDARY}--".encode("ascii"))]

        with self.assertRaises(BodyError) as ctx:
            decode_body(truncated, MULTIPART_TYPE)

        self.assertEqual((ctx.exception.status, ctx.exception.code), (400, "invalid_multipart"))

    def test_multipart_body_not_matching_boundary_is_rejected(self) -> None:
        with self.assertRaises(BodyError) as ctx:
            decode_body(b"garbage", MULTIPART_TYPE)

        self.assertEqual(ctx.exception.code, "invalid_multipart")

    def test_multipart_text_part_honours_declared_charset(self) -> None:
        body = (
            f"--{BOUNDARY}\r\n"
            'Content-Disposition: form-data; name="placeOfSupply"\r\n'
            "Content-Type: text/plain; charset=latin-1\r\n\r\n"
        ).encode("ascii") + "Zürich".encode("latin-1") + f"\r\n--{BOUNDARY}--\r\n".encode("ascii")

        fields, _ = decode_body(body, MULTIPART_TYPE)

        self.assertEqual(fields["placeOfSupply"], "Zürich")

    def test_json_body_with_base64_asset(self) -> None:
        payload = sample_fields(signature={"filename": "sig.jpg", "data": base64.b64encode(b"abc").decode("ascii")})

        fields, assets = decode_body(json_body(payload), "application/json; charset=utf-8")

        self.assertNotIn("signature", fields)
        self.assertEqual(assets["signature"].data, b"abc")
        self.assertEqual(assets["signature"].extension, ".jpg")

    def test_json_body_rejects_bad_base64(self) -> None:
        payload = sample_fields(logo={"filename": "logo.png", "data": "***"})

        with self.assertRaises(InvalidAsset):
            decode_body(json_body(payload), "application/json")

    def test_json_body_rejects_asset_without_data(self) -> None:
        with self.assertRaises(MalformedRequest):
            decode_body(json_body(sample_fields(logo="logo.png")), "application/json")

    def test_rejects_invalid_utf8(self) -> None:
        with self.assertRaises(BodyError) as ctx:
            decode_body(b"\xff", "application/json")

        self.assertEqual(ctx.exception.code, "invalid_encoding")

    def test_rejects_invalid_json(self) -> None:
        with self.assertRaises(BodyError) as ctx:
            decode_body(b'{"items":', "application/json")

        self.assertEqual(ctx.exception.code, "invalid_json")

    def test_rejects_non_object_root(self) -> None:
        with self.assertRaises(BodyError) as ctx:
            decode_body(json_body(["bad-root"]), "application/json")

        self.assertEqual(ctx.exception.code, "invalid_payload")

    def test_rejects_unsupported_media_type(self) -> None:
        with self.assertRaises(BodyError) as ctx:
            decode_body(b"x", "text/plain")

        self.assertEqual(ctx.exception.status, 415)


class HandleGenerateTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.store = ArtifactStore(self._tmp.name)

    def test_missing_seller_is_rejected_without_artifact(self) -> None:
        fields = sample_fields()
        del fields["sellerDetails"]

        status, payload = handle_generate(json_body(fields), "application/json", self.store)

        self.assertEqual(status, 400)
        self.assertEqual(payload["error"], "malformed_request")
        self.assertEqual(payload["fields"], ["sellerDetails"])
        self.assertEqual(os.listdir(self._tmp.name), [])

    def test_transport_errors_keep_their_codes(self) -> None:
        status, payload = handle_generate(b"{", "application/json", self.store)

        self.assertEqual((status, payload["error"]), (400, "invalid_json"))

    @unittest.skipUnless(FPDF_AVAILABLE, "fpdf2/Pillow are not installed")
    def test_multipart_request_generates_artifact(self) -> None:
        status, payload = handle_generate(multipart_body(sample_fields()), MULTIPART_TYPE, self.store)

        self.assertEqual(status, 200)
        self.assertEqual(payload, {"message": "Invoice generated successfully", "path": "/invoices/invoice-1001.pdf"})
        self.assertIsNotNone(self.store.locate("invoice-1001.pdf"))

    @unittest.skipUnless(FPDF_AVAILABLE, "fpdf2/Pillow are not installed")
    def test_undecodable_logo_is_rejected(self) -> None:
        body = multipart_body(sample_fields(), {"logo": ("logo.png", BINARY_LOGO)})

        status, payload = handle_generate(body, MULTIPART_TYPE, self.store)

        self.assertEqual((status, payload["error"]), (400, "invalid_asset"))
        self.assertEqual(os.listdir(self._tmp.name), [])


class ContentLengthTests(unittest.TestCase):
    def content_length(self, headers):
        handler = InvoiceHandler.__new__(InvoiceHandler)
        handler.headers = headers
        return handler._content_length()

    def assertBodyError(self, headers, status, code) -> None:
        with self.assertRaises(BodyError) as ctx:
            self.content_length(headers)

        self.assertEqual((ctx.exception.status, ctx.exception.code), (status, code))

    def test_accepts_positive_length_within_limit(self) -> None:
        self.assertEqual(self.content_length({"Content-Length": "128"}), 128)

    def test_rejects_missing_invalid_and_empty_lengths(self) -> None:
        self.assertBodyError({}, 411, "missing_content_length")
        self.assertBodyError({"Content-Length": "ten"}, 400, "invalid_content_length")
        self.assertBodyError({"Content-Length": "0"}, 400, "empty_body")

    def test_rejects_bodies_over_the_limit(self) -> None:
        self.assertBodyError({"Content-Length": str(InvoiceHandler.MAX_BODY_BYTES + 1)}, 413, "payload_too_large")


if __name__ == "__main__":
    unittest.main()
