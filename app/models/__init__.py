"""SQLAlchemy ORM models for Forex Desk."""

from app.models.markup_fee import MarkupFee, MarkupType, TransactionType
from app.models.forex_request import (
    ForexRequest,
    ForexRequestStatus,
    OrderLine,
    OrderType,
    Product,
    Purpose,
)
from app.models.currency_rate import CurrencyRate

__all__ = [
    "MarkupFee", "MarkupType", "TransactionType",
    "ForexRequest", "ForexRequestStatus", "OrderLine", "OrderType", "Product", "Purpose",
    "CurrencyRate",
]
