"""
Order intake validation — turns a raw forex request payload into a normalized
order or one ValidationError listing every problem.

Normalization:
  - currency / PAN / city codes uppercased, strings trimmed
  - legacy single-line fields collapse into a one-element line list
  - the legacy line inherits the request's top-level ``orderType``; detail
    lines must carry that same type

Buy orders additionally need travel details, a purpose, and the purpose's
documents; Sell orders need the KYC documents and Sell-only products.
"""

import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from pydantic import AnyHttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from app.config import settings
from app.core.errors import FieldError, ValidationError
from app.models.forex_request import (
    BUSINESS_FIELDS,
    DOCUMENT_FIELDS,
    SELL_PRODUCTS,
    OrderLine,
    OrderType,
    Product,
    Purpose,
    required_documents,
)
from app.models.markup_fee import QUANTITY_PLACES
from app.schemas.forex_request import ForexRequestCreate, OrderLineIn

CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
CITY_RE = re.compile(r"^[A-Z]{3}$")
PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
PHONE_RE = re.compile(r"^\+?[0-9]{7,15}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PINCODE_RE = re.compile(r"^[1-9][0-9]{5}$")

PRODUCTS = frozenset(p.value for p in Product)
PURPOSES = frozenset(p.value for p in Purpose)
ORDER_TYPES = frozenset(t.value for t in OrderType)

url_adapter = TypeAdapter(AnyHttpUrl)


def wire_name(field_name: str) -> str:
    """camelCase name of a ForexRequestCreate field as the client sent it."""
    info = ForexRequestCreate.model_fields.get(field_name)
    return info.alias if info and info.alias else field_name


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _clean(value: str | None) -> str | None:
    return value.strip() if isinstance(value, str) else value


@dataclass
class NormalizedOrder:
    """Validated order ready to persist; ``lines`` is never empty."""

    order_type: OrderType
    city_code: str
    lines: list[OrderLine]
    attributes: dict = field(default_factory=dict)


class _Errors:
    def __init__(self):
        self.items: list[FieldError] = []

    def add(self, field_name: str, message: str) -> None:
        self.items.append(FieldError(field_name, message))

    def __bool__(self) -> bool:
        return bool(self.items)


# ---------------------------------------------------------------------------
# Order lines
# ---------------------------------------------------------------------------


def _check_line(
    errors: _Errors,
    prefix: str,
    order_type: str | None,
    currency: str | None,
    product: str | None,
    currency_amount: Decimal | None,
    amount_in_inr: Decimal | None,
    expected_type: str | None = None,
) -> OrderLine | None:
    """
    Validate one line; *prefix* is '' for legacy fields or 'orderDetails[i].'.

    The Sell-only product rule follows the line's own ``order_type``, since
    that is what decides whether approval deducts or replenishes stock.
    *expected_type*, when given, is the request's type the line must match.
    """
    before = len(errors.items)

    # The legacy line's type is the request's, which validate_order checks.
    if prefix and order_type not in ORDER_TYPES:
        errors.add(f"{prefix}orderType", "Order type must be either Buy or Sell")
    elif prefix and expected_type in ORDER_TYPES and order_type != expected_type:
        errors.add(
            f"{prefix}orderType",
            f"Line order type {order_type} does not match the request's order type {expected_type}",
        )

    currency = (_clean(currency) or "").upper()
    if not CURRENCY_RE.match(currency):
        errors.add(f"{prefix}currency", "Currency code must be 3 letters")

    product = _clean(product)
    if _blank(product):
        errors.add(f"{prefix}product", "Product type is required")
    elif product not in PRODUCTS:
        errors.add(f"{prefix}product", f"Invalid product: {product}")
    elif order_type == OrderType.SELL.value and product not in SELL_PRODUCTS:
        errors.add(
            f"{prefix}product",
            f"Invalid product for Sell order: {product}. Allowed values: Sell Cash, Sell Card",
        )

    if currency_amount is None or currency_amount <= 0:
        errors.add(f"{prefix}currencyAmount", "Currency amount must be a positive number")
    elif currency_amount.normalize().as_tuple().exponent < QUANTITY_PLACES.as_tuple().exponent:
        errors.add(
            f"{prefix}currencyAmount",
            "Currency amount allows at most 4 decimal places",
        )
    if amount_in_inr is None or amount_in_inr <= 0:
        errors.add(f"{prefix}amountInINR", "INR amount must be a positive number")

    if len(errors.items) > before:
        return None
    return OrderLine(
        order_type=order_type,
        currency=currency,
        product=product,
        currency_amount=currency_amount,
        amount_in_inr=amount_in_inr,
    )


def _collect_lines(errors: _Errors, payload: ForexRequestCreate) -> list[OrderLine]:
    request_type = payload.order_type
    lines: list[OrderLine] = []

    if payload.order_details:
        for i, item in enumerate(payload.order_details):
            line = _check_line(
                errors, f"orderDetails[{i}].",
                item.order_type, item.currency, item.product,
                item.currency_amount, item.amount_in_inr, expected_type=request_type,
            )
            if line is not None:
                lines.append(line)
    else:
        line = _check_line(
            errors, "",
            request_type, payload.currency, payload.product,
            payload.currency_amount, payload.amount_in_inr,
        )
        if line is not None:
            lines.append(line)
    return lines


def validate_lines(items: list[OrderLineIn]) -> list[OrderLine]:
    """Validate standalone order lines (availability pre-check), each against its own type."""
    errors = _Errors()
    lines = []
    for i, item in enumerate(items):
        line = _check_line(
            errors, f"orderDetails[{i}].",
            item.order_type, item.currency, item.product,
            item.currency_amount, item.amount_in_inr,
        )
        if line is not None:
            lines.append(line)
    if errors:
        raise ValidationError(errors.items)
    return lines


# ---------------------------------------------------------------------------
# Request-level checks
# ---------------------------------------------------------------------------


def _check_common(errors: _Errors, payload: ForexRequestCreate) -> None:
    name = _clean(payload.traveler_name) or ""
    if not 2 <= len(name) <= 100:
        errors.add("travelerName", "Traveler name must be between 2 and 100 characters")

    if not PHONE_RE.match(_clean(payload.phone_number) or ""):
        errors.add("phoneNumber", "Valid phone number is required")

    if not EMAIL_RE.match(_clean(payload.email) or ""):
        errors.add("email", "Valid email address is required")

    if not PAN_RE.match((_clean(payload.pan_number) or "").upper()):
        errors.add("panNumber", "Invalid PAN number format")

    if payload.indian_resident is None:
        errors.add("indianResident", "Indian resident status must be true or false")

    address = _clean(payload.delivery_address) or ""
    if not 10 <= len(address) <= 500:
        errors.add("deliveryAddress", "Address must be between 10 and 500 characters")

    if not PINCODE_RE.match(_clean(payload.pincode) or ""):
        errors.add("pincode", "Valid Indian pincode is required")

    if not CITY_RE.match((_clean(payload.city) or "").upper()):
        errors.add("city", "City must be a 3-letter city code")

    if _blank(payload.state):
        errors.add("state", "State is required")

    for doc in DOCUMENT_FIELDS:
        value = getattr(payload, doc)
        if _blank(value):
            continue
        try:
            url_adapter.validate_python(value.strip())
        except PydanticValidationError:
            errors.add(wire_name(doc), "Must be a valid URL")


def _check_documents(errors: _Errors, payload: ForexRequestCreate) -> None:
    already = {e.field for e in errors.items}
    for doc in required_documents(payload.order_type, payload.purpose):
        if _blank(getattr(payload, doc)) and wire_name(doc) not in already:
            errors.add(wire_name(doc), f"{wire_name(doc)} is required")


def _check_buy(errors: _Errors, payload: ForexRequestCreate, today: date) -> None:
    countries = payload.traveling_countries or []
    if not countries:
        errors.add("travelingCountries", "At least one traveling country is required")
    elif any(_blank(c) for c in countries):
        errors.add("travelingCountries", "Country name cannot be empty")

    start, end = payload.start_date, payload.end_date
    if start is None:
        errors.add("startDate", "Valid start date is required")
    if end is None:
        errors.add("endDate", "Valid end date is required")
    if start is not None and end is not None and start >= end:
        errors.add("startDate", "Travel start date must be before end date")
    if start is not None:
        if start < today:
            errors.add("startDate", "Travel start date cannot be in the past")
        elif start > today + timedelta(days=settings.TRAVEL_WINDOW_DAYS):
            errors.add(
                "startDate",
                f"Travel must start within {settings.TRAVEL_WINDOW_DAYS} days from today",
            )

    if payload.purpose not in PURPOSES:
        errors.add("purpose", "Valid purpose is required")
        return

    if payload.purpose == Purpose.BUSINESS.value:
        for name in BUSINESS_FIELDS:
            if _blank(getattr(payload, name)):
                errors.add(wire_name(name), f"{wire_name(name)} is required for business visits")

    _check_documents(errors, payload)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def validate_order(payload: ForexRequestCreate, today: date | None = None) -> NormalizedOrder:
    """
    Validate and normalize *payload*.

    Raises ValidationError listing every violated field; never fails fast.
    """
    today = today or date.today()
    errors = _Errors()

    if payload.order_type not in ORDER_TYPES:
        errors.add("orderType", "Order type must be either Buy or Sell")

    lines = _collect_lines(errors, payload)
    _check_common(errors, payload)

    if payload.order_type == OrderType.SELL.value:
        _check_documents(errors, payload)
    elif payload.order_type == OrderType.BUY.value:
        _check_buy(errors, payload, today)

    if errors:
        raise ValidationError(errors.items)

    is_buy = payload.order_type == OrderType.BUY.value
    attributes = {
        "traveler_name": _clean(payload.traveler_name),
        "phone_number": _clean(payload.phone_number),
        "email": _clean(payload.email).lower(),
        "pan_number": _clean(payload.pan_number).upper(),
        "indian_resident": payload.indian_resident,
        "traveling_countries": [c.strip() for c in payload.traveling_countries or []] if is_buy else [],
        "start_date": payload.start_date if is_buy else None,
        "end_date": payload.end_date if is_buy else None,
        "purpose": payload.purpose if is_buy else None,
        "delivery_address": _clean(payload.delivery_address),
        "pincode": _clean(payload.pincode),
        "state": _clean(payload.state),
    }
    if is_buy and payload.purpose == Purpose.BUSINESS.value:
        for name in BUSINESS_FIELDS:
            attributes[name] = _clean(getattr(payload, name))
    for doc in DOCUMENT_FIELDS:
        value = getattr(payload, doc)
        attributes[doc] = None if _blank(value) else value.strip()

    return NormalizedOrder(
        order_type=OrderType(payload.order_type),
        city_code=payload.city.strip().upper(),
        lines=lines,
        attributes=attributes,
    )
