"""
MarkupFee model — the ledger row.

One row prices and stocks a single currency in one city for one
transaction type:
- identity is (currency_code, city_code, transaction_type, markup_type)
- display_order is unique within a city
- quantity is the only inventory counter and never goes negative
"""

import enum
import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Enum as SAEnum,
    event,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.config import settings
from app.database import Base

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TransactionType(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    TT = "TT"
    SELLCASH = "SELLCASH"
    SELLCARD = "SELLCARD"


class MarkupType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


# ---------------------------------------------------------------------------
# Product → transaction type
# ---------------------------------------------------------------------------

PRODUCT_TRANSACTION_TYPES: dict[str, TransactionType] = {
    "Forex Card": TransactionType.CARD,
    "Cash": TransactionType.CASH,
    "Traveler Cheque": TransactionType.CASH,
    "Wire Transfer": TransactionType.TT,
    "Sell Cash": TransactionType.SELLCASH,
    "Sell Card": TransactionType.SELLCARD,
}


def transaction_type_for(product: str | None) -> TransactionType:
    """Map a customer-facing product to its ledger transaction type (default CASH)."""
    return PRODUCT_TRANSACTION_TYPES.get(product or "", TransactionType.CASH)


QUANTITY_PLACES = Decimal("0.0001")
MARKUP_PLACES = Decimal("0.0001")
GST_PLACES = Decimal("0.01")


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class MarkupFee(Base):
    __tablename__ = "markup_fees"
    __table_args__ = (
        UniqueConstraint(
            "currency_code", "city_code", "transaction_type", "markup_type",
            name="uq_markup_fees_identity",
        ),
        UniqueConstraint("city_code", "display_order", name="uq_markup_fees_city_order"),
        CheckConstraint("quantity >= 0", name="ck_markup_fees_quantity_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )

    # Identity
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False, index=True)
    city_code: Mapped[str] = mapped_column(String(3), nullable=False, index=True)
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType, name="transactiontype", values_callable=_enum_values),
        nullable=False,
    )
    markup_type: Mapped[MarkupType] = mapped_column(
        SAEnum(MarkupType, name="markuptype", values_callable=_enum_values),
        nullable=False,
    )

    # Display
    description: Mapped[str] = mapped_column(String(100), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image: Mapped[str | None] = mapped_column(String(500))

    # Pricing
    markup_value: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=4), nullable=False, default=Decimal("0"),
    )
    markup_value_sell: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=10, scale=4), nullable=True,
    )
    gst_percentage: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2), nullable=False, default=settings.DEFAULT_GST_PERCENTAGE,
    )

    # Inventory
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=4), nullable=False, default=Decimal("0"),
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ------------------------------------------------------------------
    # Stock helpers
    # ------------------------------------------------------------------

    def set_quantity(self, new_quantity: Decimal) -> None:
        """
        Store *new_quantity* at ledger precision, rounding half up.

        Raises ValueError if it is negative; the database check
        constraint backs this up.
        """
        if new_quantity < 0:
            raise ValueError(f"Ledger quantity cannot be negative: {new_quantity}")
        self.quantity = Decimal(new_quantity).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)
        self.updated_at = datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return (
            f"<MarkupFee {self.currency_code}/{self.city_code} "
            f"{self.transaction_type.value if self.transaction_type else 'N/A'} "
            f"qty={self.quantity}>"
        )


# ---------------------------------------------------------------------------
# Auto-set Python-side defaults on construction
# ---------------------------------------------------------------------------


@event.listens_for(MarkupFee, "init")
def _set_markup_fee_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "display_order" not in kwargs:
        target.display_order = 0
    if "markup_value_sell" not in kwargs:
        target.markup_value_sell = None
    if "gst_percentage" not in kwargs:
        target.gst_percentage = settings.DEFAULT_GST_PERCENTAGE
    if "quantity" not in kwargs:
        target.quantity = Decimal("0")
    if "is_active" not in kwargs:
        target.is_active = True
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
