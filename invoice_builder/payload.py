"""Decoding of HTTP request bodies into invoice fields and raw assets."""

from __future__ import annotations

import base64
import binascii
import json
import os
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from python_multipart import MultipartParser
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import parse_options_header

from .errors import InvalidAsset, MalformedRequest
from .models import Asset

ASSET_FIELDS = ("logo", "signature")

DecodedBody = Tuple[Dict[str, Any], Dict[str, Asset]]


class BodyError(Exception):
    """Transport-level problem with the request body."""

    def __init__(self, status: int, code: str, detail: str) -> None:
        super().__init__(detail)
        self.status = status
        self.code = code
        self.detail = detail

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.detail}


def media_type(content_type: Optional[str]) -> str:
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def _extension(filename: Optional[str]) -> str:
    if not filename:
        return ""
    return os.path.splitext(filename)[1].lower()


class _FormCollector:
    """Gathers the parts a python-multipart parser reports through its callbacks."""

    def __init__(self) -> None:
        self.parts: List[Tuple[Dict[bytes, bytes], bytes]] = []
        self.finished = False
        self._headers: Dict[bytes, bytes] = {}
        self._header_field = b""
        self._header_value = b""
        self._data = bytearray()

    def on_part_begin(self) -> None:
        self._headers = {}
        self._data = bytearray()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._data += data[start:end]

    def on_part_end(self) -> None:
        self.parts.append((self._headers, bytes(self._data)))

    def on_end(self) -> None:
        self.finished = True

    def callbacks(self) -> Dict[str, Callable[..., None]]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_end": self.on_end,
        }


def decode_multipart(body: bytes, content_type: str) -> DecodedBody:
    _, options = parse_options_header(content_type)
    boundary = options.get(b"boundary")
    if not boundary:
        raise BodyError(400, "invalid_multipart", "multipart/form-data requires a boundary parameter.")

    collector = _FormCollector()
    parser = MultipartParser(boundary, collector.callbacks())
    try:
        parser.write(body)
        parser.finalize()
    except MultipartParseError as exc:
        raise BodyError(400, "invalid_multipart", f"Body is not a valid multipart/form-data message: {exc}") from exc
    if not collector.finished:
        raise BodyError(400, "invalid_multipart", "Body is not a valid multipart/form-data message: missing closing boundary.")

    fields: Dict[str, Any] = {}
    assets: Dict[str, Asset] = {}
    for headers, data in collector.parts:
        _, disposition = parse_options_header(headers.get(b"content-disposition", b""))
        name = disposition.get(b"name", b"").decode("latin-1")
        if not name:
            continue
        if b"filename" in disposition:
            filename = disposition[b"filename"].decode("utf-8", errors="replace")
            if name in ASSET_FIELDS and data:
                assets[name] = Asset(data=data, extension=_extension(filename), filename=filename)
            continue
        _, part_options = parse_options_header(headers.get(b"content-type", b""))
        charset = part_options.get(b"charset", b"utf-8").decode("latin-1")
        try:
            fields[name] = data.decode(charset)
        except (LookupError, UnicodeDecodeError) as exc:
            raise BodyError(400, "invalid_encoding", f"Form field {name!r} is not valid {charset}.") from exc
    return fields, assets


def _decode_json_asset(name: str, raw: Any) -> Optional[Asset]:
    if raw is None:
        return None
    if not isinstance(raw, Mapping) or not isinstance(raw.get("data"), str):
        raise MalformedRequest(
            f"{name}: must be an object with base64 'data'",
            fields=[name],
        )
    filename = raw.get("filename")
    if filename is not None and not isinstance(filename, str):
        raise MalformedRequest(f"{name}.filename: must be a string", fields=[f"{name}.filename"])
    try:
        data = base64.b64decode(raw["data"], validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidAsset(f"{name} data is not valid base64: {exc}") from exc
    if not data:
        return None
    return Asset(data=data, extension=_extension(filename), filename=filename)


def decode_json(body: bytes) -> DecodedBody:
    try:
        payload = json.loads(body.decode("utf-8"), parse_float=Decimal, parse_int=Decimal)
    except UnicodeDecodeError as exc:
        raise BodyError(400, "invalid_encoding", "Body must be UTF-8 encoded JSON.") from exc
    except json.JSONDecodeError as exc:
        raise BodyError(
            400,
            "invalid_json",
            f"{exc.msg} (line {exc.lineno}, column {exc.colno})",
        ) from exc

    if not isinstance(payload, dict):
        raise BodyError(400, "invalid_payload", "JSON root must be an object.")

    assets: Dict[str, Asset] = {}
    for name in ASSET_FIELDS:
        asset = _decode_json_asset(name, payload.pop(name, None))
        if asset is not None:
            assets[name] = asset
    return payload, assets


def decode_body(body: bytes, content_type: Optional[str]) -> DecodedBody:
    kind = media_type(content_type)
    if kind == "multipart/form-data":
        return decode_multipart(body, content_type or "")
    if kind in ("application/json", ""):
        return decode_json(body)
    raise BodyError(
        415,
        "unsupported_media_type",
        "Content-Type must be multipart/form-data or application/json.",
    )
