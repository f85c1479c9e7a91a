"""
Pydantic schemas for forex request intake, status updates, and responses.

The wire format is camelCase (``orderType``, ``amountInINR`` ...) and keeps
the legacy single-line fields alongside ``orderDetails``. Intake fields are
deliberately loose here; ``app.services.intake`` performs the field and
cross-field checks and reports every violation at once.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from app.models.markup_fee import TransactionType
from app.schemas.common import CamelModel, PaginationMeta


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------


class OrderLineIn(CamelModel):
    """One entry of ``orderDetails``."""
    order_type: str | None = None
    currency: str | None = None
    product: str | None = None
    currency_amount: Decimal | None = None
    amount_in_inr: Decimal | None = Field(None, alias="amountInINR")


class DocumentFields(CamelModel):
    """Document URLs (uploaded elsewhere; only the URL is stored)."""
    pan_card_image: str | None = None
    passport_front_image: str | None = None
    passport_back_image: str | None = None
    air_ticket: str | None = None
    visa_image: str | None = None
    college_letter: str | None = None
    medical_certificate: str | None = None
    emigration_certificate: str | None = None
    employment_certificate: str | None = None
    cancelled_cheque: str | None = None
    company_address_proof: str | None = None
    signatories_list: str | None = None


class ForexRequestCreate(DocumentFields):
    """Schema for submitting a buy or sell forex request."""
    order_type: str | None = Field(None, examples=["Buy"])
    order_details: list[OrderLineIn] | None = None

    # Legacy single-line fields
    currency: str | None = Field(None, examples=["USD"])
    product: str | None = Field(None, examples=["Forex Card"])
    currency_amount: Decimal | None = Field(None, examples=[1000])
    amount_in_inr: Decimal | None = Field(None, alias="amountInINR", examples=[83000])

    # Traveler / KYC
    traveler_name: str | None = None
    phone_number: str | None = None
    email: str | None = None
    pan_number: str | None = None
    indian_resident: bool | None = None

    # Travel (Buy)
    traveling_countries: list[str] | None = None
    start_date: date | None = None
    end_date: date | None = None
    purpose: str | None = None

    # Business Visit
    business_reason: str | None = None
    business_name: str | None = None
    business_type: str | None = None

    # Delivery
    delivery_address: str | None = None
    pincode: str | None = None
    city: str | None = Field(None, examples=["DEL"])
    state: str | None = None


class DocumentUpdate(DocumentFields):
    """Attach or replace document URLs on an existing request."""
    pass


class StatusUpdateRequest(CamelModel):
    """Admin status change."""
    status: str = Field(..., examples=["Approved"])
    rejection_reason: str | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class OrderLineOut(CamelModel):
    order_type: str
    currency: str
    product: str
    currency_amount: Decimal
    amount_in_inr: Decimal = Field(alias="amountInINR")


class OrderSummaryItem(CamelModel):
    currency: str
    product: str
    total_currency_amount: Decimal
    total_amount_in_inr: Decimal = Field(alias="totalAmountInINR")
    count: int


class ForexRequestResponse(DocumentFields):
    """Full forex request with derived totals."""
    id: UUID
    user_id: UUID | None
    order_type: str
    order_details: list[OrderLineOut]
    currency: str | None
    product: str | None
    currency_amount: Decimal | None
    amount_in_inr: Decimal | None = Field(alias="amountInINR")
    traveler_name: str
    phone_number: str
    email: str
    pan_number: str
    indian_resident: bool
    traveling_countries: list[str]
    start_date: date | None
    end_date: date | None
    purpose: str | None
    business_reason: str | None
    business_name: str | None
    business_type: str | None
    delivery_address: str | None
    pincode: str | None
    city: str
    state: str | None
    status: str
    rejection_reason: str | None
    stock_deducted: bool
    approved_at: datetime | None
    created_at: datetime
    updated_at: datetime
    order_summary: list[OrderSummaryItem]
    total_currency_amount: Decimal
    total_amount_in_inr: Decimal = Field(alias="totalAmountInINR")


class StockMovementOut(CamelModel):
    currency: str
    product: str
    transaction_type: TransactionType
    previous_quantity: Decimal
    new_quantity: Decimal
    amount_deducted: Decimal


class StatusUpdateResponse(CamelModel):
    """Status change result; ``stock_deduction`` is set only on approval."""
    request: ForexRequestResponse
    stock_deduction: list[StockMovementOut] | None = None


class ForexRequestListResponse(CamelModel):
    items: list[ForexRequestResponse]
    pagination: PaginationMeta
