"""
Stock endpoints — availability pre-check, stock levels, low-stock alerts,
and direct admin adjustments.

Ledger quantities are the only inventory; adjustments take the same row
lock as order approvals.
"""

import logging
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import CurrentUser, get_current_user, require_admin
from app.api.pagination import Page, page_params
from app.config import settings
from app.core.errors import ForexDeskError, to_http_exception
from app.database import get_db
from app.models.markup_fee import TransactionType
from app.schemas.stock import (
    LowStockResponse,
    StockAdjustRequest,
    StockAdjustResponse,
    StockCheckItem,
    StockCheckRequest,
    StockCheckResponse,
    StockLevel,
    StockLevelListResponse,
)
from app.services.intake import validate_lines
from app.services.ledger_repository import LedgerRepository
from app.services.stock_service import StockService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/check", response_model=StockCheckResponse)
async def check_stock(
    payload: StockCheckRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Check order lines against current stock without reserving anything.

    400 for malformed lines, 404 when a line has no markup configured in
    the city, 409 when stock is insufficient.
    """
    try:
        lines = validate_lines(payload.order_details)
        checks = await StockService(LedgerRepository(db)).validate_availability(
            lines, payload.city_code,
        )
    except ForexDeskError as exc:
        raise to_http_exception(exc)

    return StockCheckResponse(
        is_valid=all(c.is_valid for c in checks),
        checks=[StockCheckItem(**c.as_dict()) for c in checks],
    )


@router.get("/levels", response_model=StockLevelListResponse)
async def list_stock_levels(
    page: Page = Depends(page_params),
    currency_code: str | None = Query(None),
    city_code: str | None = Query(None),
    transaction_type: TransactionType | None = Query(None),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Active ledger rows ordered by city, currency and transaction type."""
    total, rows = await LedgerRepository(db).search(
        city_code=city_code,
        currency_code=currency_code,
        transaction_type=transaction_type,
        is_active=True,
        order_by="stock",
        offset=page.offset,
        limit=page.size,
    )
    return StockLevelListResponse(
        items=[StockLevel.model_validate(r) for r in rows],
        pagination=page.meta(total),
    )


@router.get("/low-stock", response_model=LowStockResponse)
async def list_low_stock(
    page: Page = Depends(page_params),
    threshold: Decimal = Query(settings.LOW_STOCK_THRESHOLD, ge=0),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Active ledger rows with quantity below *threshold*, lowest first."""
    total, rows = await LedgerRepository(db).search(
        is_active=True,
        max_quantity=threshold,
        order_by="quantity",
        offset=page.offset,
        limit=page.size,
    )
    return LowStockResponse(
        threshold=threshold,
        items=[StockLevel.model_validate(r) for r in rows],
        pagination=page.meta(total),
    )


@router.patch("/{ledger_id}", response_model=StockAdjustResponse)
async def adjust_stock(
    ledger_id: UUID,
    payload: StockAdjustRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Add to, subtract from, or set a ledger row's quantity.

    Subtracting below zero is 409; a negative quantity is 400.
    """
    try:
        result = await StockService(LedgerRepository(db)).adjust_stock(
            ledger_id, payload.quantity, payload.operation,
        )
    except ForexDeskError as exc:
        raise to_http_exception(exc)

    return StockAdjustResponse(
        stock=StockLevel.model_validate(result.ledger),
        operation=result.operation,
        previous_quantity=result.previous_quantity,
        new_quantity=result.new_quantity,
        quantity_change=result.quantity_change,
    )
