"""
ForexRequest model — one customer's buy or sell forex order.

- Holds one or more order lines in ``order_details`` (always non-empty
  once past intake validation; legacy single-line fields mirror the first
  line when the order has exactly one)
- Status lifecycle Pending → Approved / Rejected / Documents Requested
- ``stock_deducted`` flips to True exactly once, on approval
"""

import enum
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Numeric,
    String,
    Text,
    Enum as SAEnum,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class OrderType(str, enum.Enum):
    BUY = "Buy"
    SELL = "Sell"


class Product(str, enum.Enum):
    FOREX_CARD = "Forex Card"
    CASH = "Cash"
    TRAVELER_CHEQUE = "Traveler Cheque"
    WIRE_TRANSFER = "Wire Transfer"
    SELL_CASH = "Sell Cash"
    SELL_CARD = "Sell Card"


SELL_PRODUCTS = frozenset({Product.SELL_CASH.value, Product.SELL_CARD.value})


class Purpose(str, enum.Enum):
    LEISURE = "Leisure/Holiday/Personal Visit"
    BUSINESS = "Business Visit"
    EDUCATION = "Education"
    MEDICAL = "Medical Treatment"
    EMIGRATION = "Emigration"
    EMPLOYMENT = "Employment"


class ForexRequestStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    DOCUMENTS_REQUESTED = "Documents Requested"


# ---------------------------------------------------------------------------
# Status transition map
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[ForexRequestStatus, set[ForexRequestStatus]] = {
    ForexRequestStatus.PENDING: {
        ForexRequestStatus.APPROVED,
        ForexRequestStatus.REJECTED,
        ForexRequestStatus.DOCUMENTS_REQUESTED,
    },
    ForexRequestStatus.DOCUMENTS_REQUESTED: {
        ForexRequestStatus.PENDING,
    },
    ForexRequestStatus.APPROVED: set(),
    ForexRequestStatus.REJECTED: set(),
}


# ---------------------------------------------------------------------------
# Document requirements
# ---------------------------------------------------------------------------

BASE_DOCUMENTS = ["pan_card_image", "passport_front_image", "passport_back_image"]
TRAVEL_DOCUMENTS = BASE_DOCUMENTS + ["air_ticket", "visa_image"]

DOCUMENT_REQUIREMENTS: dict[Purpose, list[str]] = {
    Purpose.LEISURE: TRAVEL_DOCUMENTS,
    Purpose.BUSINESS: TRAVEL_DOCUMENTS + [
        "cancelled_cheque", "company_address_proof", "signatories_list",
    ],
    Purpose.EDUCATION: TRAVEL_DOCUMENTS + ["college_letter"],
    Purpose.MEDICAL: TRAVEL_DOCUMENTS + ["medical_certificate"],
    Purpose.EMIGRATION: TRAVEL_DOCUMENTS + ["emigration_certificate"],
    Purpose.EMPLOYMENT: TRAVEL_DOCUMENTS + ["employment_certificate"],
}

SELL_DOCUMENTS = BASE_DOCUMENTS

BUSINESS_FIELDS = ["business_reason", "business_name", "business_type"]

DOCUMENT_FIELDS = [
    "pan_card_image", "passport_front_image", "passport_back_image",
    "air_ticket", "visa_image", "college_letter", "medical_certificate",
    "emigration_certificate", "employment_certificate", "cancelled_cheque",
    "company_address_proof", "signatories_list",
]


def required_documents(order_type: str | None, purpose: str | None) -> list[str]:
    """Return the document fields an order must carry before approval."""
    if order_type == OrderType.SELL.value:
        return list(SELL_DOCUMENTS)
    try:
        return list(DOCUMENT_REQUIREMENTS[Purpose(purpose)])
    except ValueError:
        return []


# ---------------------------------------------------------------------------
# Order line value object
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderLine:
    """One (currency, product, amount) pair within a forex request."""

    order_type: str
    currency: str
    product: str
    currency_amount: Decimal
    amount_in_inr: Decimal

    def to_dict(self) -> dict:
        """JSON-safe representation stored in ``order_details``."""
        return {
            "order_type": self.order_type,
            "currency": self.currency,
            "product": self.product,
            "currency_amount": str(self.currency_amount),
            "amount_in_inr": str(self.amount_in_inr),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OrderLine":
        return cls(
            order_type=data["order_type"],
            currency=data["currency"],
            product=data["product"],
            currency_amount=Decimal(str(data["currency_amount"])),
            amount_in_inr=Decimal(str(data["amount_in_inr"])),
        )


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class ForexRequest(Base):
    __tablename__ = "forex_requests"
    __table_args__ = (
        CheckConstraint(
            "status <> 'Rejected' OR rejection_reason IS NOT NULL",
            name="ck_forex_requests_rejection_reason",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)

    order_type: Mapped[OrderType] = mapped_column(
        SAEnum(OrderType, name="ordertype", values_callable=_enum_values), nullable=False,
    )

    # Order lines
    order_details: Mapped[list[dict]] = mapped_column(JSONB, nullable=False, default=list)

    # Legacy single-line fields
    currency: Mapped[str | None] = mapped_column(String(3))
    product: Mapped[str | None] = mapped_column(String(50))
    currency_amount: Mapped[Decimal | None] = mapped_column(Numeric(precision=15, scale=4))
    amount_in_inr: Mapped[Decimal | None] = mapped_column(Numeric(precision=15, scale=2))

    # Traveler / KYC
    traveler_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    pan_number: Mapped[str] = mapped_column(String(10), nullable=False)
    indian_resident: Mapped[bool] = mapped_column(Boolean, nullable=False)

    # Travel (Buy)
    traveling_countries: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    purpose: Mapped[str | None] = mapped_column(String(50))

    # Business Visit
    business_reason: Mapped[str | None] = mapped_column(Text)
    business_name: Mapped[str | None] = mapped_column(String(200))
    business_type: Mapped[str | None] = mapped_column(String(100))

    # Document URLs
    pan_card_image: Mapped[str | None] = mapped_column(String(500))
    passport_front_image: Mapped[str | None] = mapped_column(String(500))
    passport_back_image: Mapped[str | None] = mapped_column(String(500))
    air_ticket: Mapped[str | None] = mapped_column(String(500))
    visa_image: Mapped[str | None] = mapped_column(String(500))
    college_letter: Mapped[str | None] = mapped_column(String(500))
    medical_certificate: Mapped[str | None] = mapped_column(String(500))
    emigration_certificate: Mapped[str | None] = mapped_column(String(500))
    employment_certificate: Mapped[str | None] = mapped_column(String(500))
    cancelled_cheque: Mapped[str | None] = mapped_column(String(500))
    company_address_proof: Mapped[str | None] = mapped_column(String(500))
    signatories_list: Mapped[str | None] = mapped_column(String(500))

    # Delivery
    delivery_address: Mapped[str | None] = mapped_column(Text)
    pincode: Mapped[str | None] = mapped_column(String(6))
    city: Mapped[str] = mapped_column(String(3), nullable=False, index=True)
    state: Mapped[str | None] = mapped_column(String(100))

    # Status
    status: Mapped[ForexRequestStatus] = mapped_column(
        SAEnum(ForexRequestStatus, name="forexrequeststatus", values_callable=_enum_values),
        default=ForexRequestStatus.PENDING,
        index=True,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    stock_deducted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
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
    # Order lines
    # ------------------------------------------------------------------

    def set_order_lines(self, lines: list[OrderLine]) -> None:
        """Store *lines*; a single line is mirrored into the legacy fields."""
        self.order_details = [line.to_dict() for line in lines]
        if len(lines) == 1:
            line = lines[0]
            self.currency = line.currency
            self.product = line.product
            self.currency_amount = line.currency_amount
            self.amount_in_inr = line.amount_in_inr

    def order_lines(self) -> list[OrderLine]:
        """
        Return the order's lines.

        Rows written before ``order_details`` existed only carry the
        legacy fields; those are read back as a one-element list.
        """
        if self.order_details:
            return [OrderLine.from_dict(d) for d in self.order_details]
        if self.currency and self.currency_amount is not None:
            return [
                OrderLine(
                    order_type=self.order_type.value,
                    currency=self.currency,
                    product=self.product or "",
                    currency_amount=Decimal(self.currency_amount),
                    amount_in_inr=Decimal(self.amount_in_inr or 0),
                )
            ]
        return []

    def total_currency_amount(self) -> Decimal:
        return sum((line.currency_amount for line in self.order_lines()), Decimal("0"))

    def total_amount_in_inr(self) -> Decimal:
        return sum((line.amount_in_inr for line in self.order_lines()), Decimal("0"))

    def order_summary(self) -> list[dict]:
        """Totals grouped by currency and product, in first-seen order."""
        summary: OrderedDict[tuple[str, str], dict] = OrderedDict()
        for line in self.order_lines():
            key = (line.currency, line.product)
            entry = summary.setdefault(key, {
                "currency": line.currency,
                "product": line.product,
                "total_currency_amount": Decimal("0"),
                "total_amount_in_inr": Decimal("0"),
                "count": 0,
            })
            entry["total_currency_amount"] += line.currency_amount
            entry["total_amount_in_inr"] += line.amount_in_inr
            entry["count"] += 1
        return list(summary.values())

    # ------------------------------------------------------------------
    # Approval preconditions
    # ------------------------------------------------------------------

    def missing_documents(self) -> list[str]:
        required = required_documents(self.order_type.value, self.purpose)
        return [field for field in required if not getattr(self, field)]

    def missing_business_fields(self) -> list[str]:
        if self.purpose != Purpose.BUSINESS.value:
            return []
        return [field for field in BUSINESS_FIELDS if not getattr(self, field)]

    # ------------------------------------------------------------------
    # Status transition validation
    # ------------------------------------------------------------------

    @staticmethod
    def is_valid_transition(
        from_status: ForexRequestStatus, to_status: ForexRequestStatus,
    ) -> bool:
        """Check whether a status transition is allowed."""
        return to_status in VALID_TRANSITIONS.get(from_status, set())

    def transition_to(self, new_status: ForexRequestStatus) -> None:
        """
        Transition to *new_status* if the move is valid.

        Raises ValueError if the transition is not allowed.
        """
        if not self.is_valid_transition(self.status, new_status):
            raise ValueError(
                f"Invalid transition: {self.status.value} -> {new_status.value}"
            )
        self.status = new_status
        now = datetime.now(timezone.utc)
        if new_status == ForexRequestStatus.APPROVED:
            self.approved_at = now
        self.updated_at = now

    def __repr__(self) -> str:
        return (
            f"<ForexRequest {self.id} {self.order_type.value if self.order_type else 'N/A'} "
            f"status={self.status.value if self.status else 'N/A'}>"
        )


# ---------------------------------------------------------------------------
# Auto-set Python-side defaults on construction
# ---------------------------------------------------------------------------


@event.listens_for(ForexRequest, "init")
def _set_forex_request_defaults(target, args, kwargs):
    if "id" not in kwargs:
        target.id = uuid.uuid4()
    if "status" not in kwargs:
        target.status = ForexRequestStatus.PENDING
    if "stock_deducted" not in kwargs:
        target.stock_deducted = False
    if "order_details" not in kwargs:
        target.order_details = []
    if "traveling_countries" not in kwargs:
        target.traveling_countries = []
    if "created_at" not in kwargs:
        target.created_at = datetime.now(timezone.utc)
    if "updated_at" not in kwargs:
        target.updated_at = datetime.now(timezone.utc)
