"""
Pydantic schemas for ledger (markup fee) administration.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.markup_fee import MarkupType, TransactionType
from app.schemas.common import PaginationMeta


class MarkupFeeCreate(BaseModel):
    """Schema for creating a ledger row."""
    currency_code: str = Field(..., min_length=3, max_length=3, examples=["USD"])
    city_code: str = Field(..., min_length=3, max_length=3, examples=["DEL"])
    transaction_type: TransactionType
    markup_type: MarkupType
    description: str = Field(..., min_length=1, max_length=100, examples=["US Dollar"])
    display_order: int = Field(0, ge=0)
    image: str | None = None
    markup_value: Decimal = Field(..., ge=0, examples=[Decimal("0.35")])
    markup_value_sell: Decimal | None = None
    gst_percentage: Decimal | None = Field(None, ge=0, le=100)
    quantity: Decimal = Field(Decimal("0"), ge=0)
    is_active: bool = True


class MarkupFeeBulkCreate(BaseModel):
    fees: list[MarkupFeeCreate] = Field(..., min_length=1)


class MarkupFeeUpdate(BaseModel):
    """Partial update; only fields present in the request are applied."""
    currency_code: str | None = Field(None, min_length=3, max_length=3)
    city_code: str | None = Field(None, min_length=3, max_length=3)
    transaction_type: TransactionType | None = None
    markup_type: MarkupType | None = None
    description: str | None = Field(None, min_length=1, max_length=100)
    display_order: int | None = Field(None, ge=0)
    image: str | None = None
    markup_value: Decimal | None = Field(None, ge=0)
    markup_value_sell: Decimal | None = None
    gst_percentage: Decimal | None = Field(None, ge=0, le=100)
    quantity: Decimal | None = Field(None, ge=0)
    is_active: bool | None = None


class MarkupFeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    currency_code: str
    city_code: str
    transaction_type: TransactionType
    markup_type: MarkupType
    description: str
    display_order: int
    image: str | None
    markup_value: Decimal
    markup_value_sell: Decimal | None
    gst_percentage: Decimal
    quantity: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime


class MarkupFeeListResponse(BaseModel):
    items: list[MarkupFeeResponse]
    pagination: PaginationMeta
