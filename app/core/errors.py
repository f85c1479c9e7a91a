"""
Domain exceptions for the order and stock pipeline.

Services raise these; route handlers translate them to HTTP responses via
``to_http_exception``. Every exception carries a stable ``error_code`` so
clients can branch on it without parsing messages.
"""

from dataclasses import dataclass
from decimal import Decimal

from fastapi import HTTPException, status


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def as_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class ForexDeskError(Exception):
    """Base class for all domain errors."""

    error_code = "FOREX_DESK_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def detail(self) -> dict:
        return {"message": self.message, "error_code": self.error_code}


class ValidationError(ForexDeskError):
    """Malformed or missing input. Lists every violated field."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, errors: list[FieldError], message: str = "Validation failed"):
        super().__init__(message)
        self.errors = list(errors)

    @property
    def fields(self) -> list[str]:
        return [e.field for e in self.errors]

    def detail(self) -> dict:
        return {**super().detail(), "errors": [e.as_dict() for e in self.errors]}


class MarkupNotFoundError(ForexDeskError):
    """No active ledger row configured for a (currency, city, type) tuple."""

    error_code = "MARKUP_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, currency: str, city_code: str, transaction_type: str):
        super().__init__(
            f"Markup configuration not found for {currency} in {city_code} "
            f"for transaction type: {transaction_type}"
        )
        self.currency = currency
        self.city_code = city_code
        self.transaction_type = transaction_type


class InsufficientStockError(ForexDeskError):
    """Requested amount exceeds the available ledger quantity."""

    error_code = "INSUFFICIENT_STOCK"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, currency: str, product: str, available: Decimal, requested: Decimal):
        super().__init__(
            f"Insufficient stock for {currency} {product}. "
            f"Available: {available}, Requested: {requested}"
        )
        self.currency = currency
        self.product = product
        self.available = available
        self.requested = requested

    def detail(self) -> dict:
        return {
            **super().detail(),
            "currency": self.currency,
            "product": self.product,
            "available": str(self.available),
            "requested": str(self.requested),
        }


class DocumentValidationError(ForexDeskError):
    """Approval attempted while purpose-mandated documents or fields are missing."""

    error_code = "MISSING_APPROVAL_DOCUMENTS"

    def __init__(self, missing: list[str], message: str | None = None):
        super().__init__(
            message or f"Cannot approve request. Missing required documents: {', '.join(missing)}"
        )
        self.missing = list(missing)

    def detail(self) -> dict:
        return {**super().detail(), "missing": self.missing}


class BusinessFieldsError(DocumentValidationError):
    """Business visit approval attempted without the company details."""

    error_code = "MISSING_BUSINESS_FIELDS"

    def __init__(self, missing: list[str]):
        super().__init__(
            missing,
            f"Cannot approve business visit. Missing required fields: {', '.join(missing)}",
        )


class StateConflictError(ForexDeskError):
    """The order is not in a state that allows the requested transition."""

    error_code = "INVALID_STATUS_TRANSITION"
    status_code = status.HTTP_409_CONFLICT


class LedgerConflictError(ForexDeskError):
    """Duplicate ledger identity or display order within a city."""

    error_code = "DUPLICATE_MARKUP_FEE"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code


class NotFoundError(ForexDeskError):
    error_code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class RateFeedError(ForexDeskError):
    """The live rate feed failed and no snapshot is available."""

    error_code = "RATE_FEED_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def to_http_exception(exc: ForexDeskError) -> HTTPException:
    """Translate a domain error into an HTTPException with a structured detail."""
    return HTTPException(status_code=exc.status_code, detail=exc.detail())
