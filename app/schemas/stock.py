"""
Pydantic schemas for stock levels, availability checks, and adjustments.
"""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.markup_fee import TransactionType
from app.schemas.common import PaginationMeta
from app.schemas.forex_request import OrderLineIn
from app.services.stock_service import StockOperation


class StockLevel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    currency_code: str
    city_code: str
    transaction_type: TransactionType
    description: str
    quantity: Decimal
    is_active: bool


class StockLevelListResponse(BaseModel):
    items: list[StockLevel]
    pagination: PaginationMeta


class LowStockResponse(BaseModel):
    threshold: Decimal
    items: list[StockLevel]
    pagination: PaginationMeta


class StockAdjustRequest(BaseModel):
    quantity: Decimal = Field(..., examples=[Decimal("500")])
    operation: StockOperation = StockOperation.SET


class StockAdjustResponse(BaseModel):
    stock: StockLevel
    operation: StockOperation
    previous_quantity: Decimal
    new_quantity: Decimal
    quantity_change: Decimal | None


class StockCheckRequest(BaseModel):
    """Pre-submission availability check for a set of order lines."""
    model_config = ConfigDict(populate_by_name=True)

    city_code: str = Field(..., alias="cityCode", examples=["DEL"])
    order_details: list[OrderLineIn] = Field(..., alias="orderDetails", min_length=1)


class StockCheckItem(BaseModel):
    currency: str
    product: str
    transaction_type: TransactionType
    available_quantity: Decimal
    requested_amount: Decimal
    is_valid: bool


class StockCheckResponse(BaseModel):
    is_valid: bool
    checks: list[StockCheckItem]
