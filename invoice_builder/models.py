"""Invoice request data model and the validation pass that builds it."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional, Tuple

from .errors import MalformedRequest

INVOICE_NO_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

# Bounds keep unitPrice * quantity - discount exact at the default 28-digit precision.
MAX_INTEGER_DIGITS = 10
MAX_DECIMAL_PLACES = 6

_MISSING = object()


@dataclass(frozen=True)
class Party:
    name: str
    address: str
    city: str
    state: str
    pincode: str
    state_code: Optional[str] = None
    pan: Optional[str] = None
    gst: Optional[str] = None

    @property
    def address_line(self) -> str:
        return ", ".join([self.address, self.city, self.state, self.pincode])


@dataclass(frozen=True)
class OrderInfo:
    order_no: str
    order_date: str


@dataclass(frozen=True)
class InvoiceInfo:
    invoice_no: str
    invoice_date: str


@dataclass(frozen=True)
class LineItem:
    description: str
    unit_price: Decimal
    quantity: int
    discount: Decimal = Decimal(0)

    @property
    def net_amount(self) -> Decimal:
        return self.unit_price * self.quantity - self.discount


@dataclass(frozen=True)
class Asset:
    data: bytes
    extension: str = ""
    filename: Optional[str] = None


@dataclass(frozen=True)
class ImageHandle:
    """A decoded image ready to be drawn; `image` is the decoder's object."""

    image: Any
    width_px: int
    height_px: int
    format: str = ""

    def height_for(self, width: float) -> float:
        if self.width_px <= 0:
            return 0.0
        return width * self.height_px / self.width_px


@dataclass(frozen=True)
class InvoiceRequest:
    seller: Party
    billing: Party
    shipping: Party
    order: OrderInfo
    invoice: InvoiceInfo
    place_of_supply: str
    place_of_delivery: str
    reverse_charge: str
    items: Tuple[LineItem, ...]
    logo: Optional[Asset] = None
    signature: Optional[Asset] = None


def _decimal_places(number: Decimal) -> int:
    if not number:
        return 0
    _, digits, exponent = number.as_tuple()
    coefficient = "".join(map(str, digits))
    trailing_zeros = len(coefficient) - len(coefficient.rstrip("0"))
    return max(0, -exponent - trailing_zeros)


class _FieldReader:
    """Collects every problem in a request instead of stopping at the first."""

    def __init__(self) -> None:
        self.problems: List[str] = []

    def fail(self, path: str, reason: str) -> None:
        self.problems.append(f"{path}: {reason}")

    def group(self, fields: Mapping[str, Any], key: str) -> Optional[Any]:
        raw = fields.get(key, _MISSING)
        if raw is _MISSING or raw is None:
            self.fail(key, "is required")
            return None
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")
        if isinstance(raw, str):
            try:
                return json.loads(raw, parse_float=Decimal, parse_int=Decimal)
            except json.JSONDecodeError as exc:
                self.fail(key, f"is not valid JSON ({exc.msg})")
                return None
        return raw

    def obj(self, fields: Mapping[str, Any], key: str) -> Optional[Mapping[str, Any]]:
        value = self.group(fields, key)
        if value is None:
            return None
        if not isinstance(value, Mapping):
            self.fail(key, "must be an object")
            return None
        return value

    def text(self, data: Mapping[str, Any], key: str, path: str, required: bool = True) -> Optional[str]:
        value = data.get(key)
        if value is None:
            if required:
                self.fail(f"{path}.{key}", "is required")
            return None
        if isinstance(value, bool) or not isinstance(value, (str, int, Decimal)):
            self.fail(f"{path}.{key}", "must be a string")
            return None
        value = str(value)
        if required and not value.strip():
            self.fail(f"{path}.{key}", "must not be empty")
            return None
        return value

    def decimal(self, data: Mapping[str, Any], key: str, path: str, default: Optional[Decimal] = None) -> Optional[Decimal]:
        value = data.get(key)
        if value is None:
            if default is not None:
                return default
            self.fail(f"{path}.{key}", "is required")
            return None
        if isinstance(value, bool):
            self.fail(f"{path}.{key}", "must be a number")
            return None
        try:
            number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        except InvalidOperation:
            self.fail(f"{path}.{key}", "must be a number")
            return None
        if not number.is_finite():
            self.fail(f"{path}.{key}", "must be a finite number")
            return None
        if number and number.adjusted() >= MAX_INTEGER_DIGITS:
            self.fail(f"{path}.{key}", "is too large")
            return None
        if _decimal_places(number) > MAX_DECIMAL_PLACES:
            self.fail(f"{path}.{key}", f"has more than {MAX_DECIMAL_PLACES} decimal places")
            return None
        return number

    def quantity(self, data: Mapping[str, Any], key: str, path: str) -> Optional[int]:
        number = self.decimal(data, key, path)
        if number is None:
            return None
        if number != number.to_integral_value():
            self.fail(f"{path}.{key}", "must be a whole number")
            return None
        if number < 0:
            self.fail(f"{path}.{key}", "must not be negative")
            return None
        return int(number)

    def scalar(self, fields: Mapping[str, Any], key: str) -> Optional[str]:
        value = fields.get(key)
        if value is None:
            self.fail(key, "is required")
            return None
        if isinstance(value, (bytes, bytearray)):
            value = value.decode("utf-8", errors="replace")
        if isinstance(value, bool):
            # Keep the JSON spelling of booleans.
            return "true" if value else "false"
        if not isinstance(value, (str, int, Decimal)):
            self.fail(key, "must be a string")
            return None
        return str(value)


def _read_party(reader: _FieldReader, fields: Mapping[str, Any], key: str) -> Optional[Party]:
    data = reader.obj(fields, key)
    if data is None:
        return None
    values = {
        "name": reader.text(data, "name", key),
        "address": reader.text(data, "address", key),
        "city": reader.text(data, "city", key),
        "state": reader.text(data, "state", key),
        "pincode": reader.text(data, "pincode", key),
        "state_code": reader.text(data, "stateCode", key, required=False),
        "pan": reader.text(data, "pan", key, required=False),
        "gst": reader.text(data, "gst", key, required=False),
    }
    if any(values[name] is None for name in ("name", "address", "city", "state", "pincode")):
        return None
    return Party(**values)


def _read_items(reader: _FieldReader, fields: Mapping[str, Any]) -> Optional[List[LineItem]]:
    raw_items = reader.group(fields, "items")
    if raw_items is None:
        return None
    if not isinstance(raw_items, list):
        reader.fail("items", "must be an array")
        return None

    items: List[LineItem] = []
    valid = True
    for index, raw in enumerate(raw_items):
        path = f"items[{index}]"
        if not isinstance(raw, Mapping):
            reader.fail(path, "must be an object")
            valid = False
            continue
        description = reader.text(raw, "description", path)
        unit_price = reader.decimal(raw, "unitPrice", path)
        quantity = reader.quantity(raw, "quantity", path)
        discount = reader.decimal(raw, "discount", path, default=Decimal(0))
        if discount is not None and discount < 0:
            reader.fail(f"{path}.discount", "must not be negative")
            discount = None
        if description is None or unit_price is None or quantity is None or discount is None:
            valid = False
            continue
        items.append(LineItem(description, unit_price, quantity, discount))
    return items if valid else None


def parse_invoice_request(
    fields: Mapping[str, Any],
    logo: Optional[Asset] = None,
    signature: Optional[Asset] = None,
) -> InvoiceRequest:
    """Validate raw request fields and build an :class:`InvoiceRequest`.

    ``fields`` holds the top-level request keys. Object-valued keys may be
    given either decoded or as JSON text (the multipart form encoding).
    Raises :class:`MalformedRequest` listing every offending path.
    """
    reader = _FieldReader()

    seller = _read_party(reader, fields, "sellerDetails")
    billing = _read_party(reader, fields, "billingDetails")
    shipping = _read_party(reader, fields, "shippingDetails")

    order = None
    order_data = reader.obj(fields, "orderDetails")
    if order_data is not None:
        order_no = reader.text(order_data, "orderNo", "orderDetails")
        order_date = reader.text(order_data, "orderDate", "orderDetails")
        if order_no is not None and order_date is not None:
            order = OrderInfo(order_no, order_date)

    invoice = None
    invoice_data = reader.obj(fields, "invoiceDetails")
    if invoice_data is not None:
        invoice_no = reader.text(invoice_data, "invoiceNo", "invoiceDetails")
        invoice_date = reader.text(invoice_data, "invoiceDate", "invoiceDetails")
        if invoice_no is not None and not INVOICE_NO_RE.match(invoice_no):
            reader.fail("invoiceDetails.invoiceNo", "may only contain letters, digits, '.', '_' and '-'")
            invoice_no = None
        if invoice_no is not None and invoice_date is not None:
            invoice = InvoiceInfo(invoice_no, invoice_date)

    place_of_supply = reader.scalar(fields, "placeOfSupply")
    place_of_delivery = reader.scalar(fields, "placeOfDelivery")
    reverse_charge = reader.scalar(fields, "reverseCharge")
    items = _read_items(reader, fields)

    if reader.problems:
        raise MalformedRequest.from_problems(reader.problems)

    return InvoiceRequest(
        seller=seller,
        billing=billing,
        shipping=shipping,
        order=order,
        invoice=invoice,
        place_of_supply=place_of_supply,
        place_of_delivery=place_of_delivery,
        reverse_charge=reverse_charge,
        items=tuple(items),
        logo=logo if logo is not None and logo.data else None,
        signature=signature if signature is not None and signature.data else None,
    )

