"""
Markup fee (ledger) administration endpoints.

Listing is per city and open to any authenticated caller; writes are
admin-only. Duplicate identity or display order is 409.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import CurrentUser, get_current_user, require_admin
from app.api.pagination import Page, page_params
from app.core.errors import ForexDeskError, to_http_exception
from app.database import get_db
from app.models.markup_fee import MarkupType, TransactionType
from app.schemas.markup import (
    MarkupFeeBulkCreate,
    MarkupFeeCreate,
    MarkupFeeListResponse,
    MarkupFeeResponse,
    MarkupFeeUpdate,
)
from app.services.markup_service import MarkupService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=MarkupFeeResponse, status_code=status.HTTP_201_CREATED)
async def create_markup_fee(
    payload: MarkupFeeCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a ledger row; GST defaults to 18.00 and quantity to 0."""
    try:
        fee = await MarkupService(db).create(payload)
    except ForexDeskError as exc:
        raise to_http_exception(exc)
    return MarkupFeeResponse.model_validate(fee)


@router.post("/bulk", response_model=list[MarkupFeeResponse], status_code=status.HTTP_201_CREATED)
async def bulk_create_markup_fees(
    payload: MarkupFeeBulkCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create several ledger rows; nothing is created if any row conflicts."""
    try:
        fees = await MarkupService(db).bulk_create(payload.fees)
    except ForexDeskError as exc:
        raise to_http_exception(exc)
    return [MarkupFeeResponse.model_validate(f) for f in fees]


@router.get("/", response_model=MarkupFeeListResponse)
async def list_markup_fees(
    city_code: str = Query(..., min_length=3, max_length=3),
    currency_code: str | None = Query(None),
    transaction_type: TransactionType | None = Query(None),
    markup_type: MarkupType | None = Query(None),
    is_active: bool | None = Query(None),
    page: Page = Depends(page_params),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Ledger rows for one city, ordered by display order then currency."""
    total, fees = await MarkupService(db).list_fees(
        city_code,
        currency_code=currency_code,
        transaction_type=transaction_type,
        markup_type=markup_type,
        is_active=is_active,
        offset=page.offset,
        limit=page.size,
    )
    return MarkupFeeListResponse(
        items=[MarkupFeeResponse.model_validate(f) for f in fees],
        pagination=page.meta(total),
    )


@router.get("/{fee_id}", response_model=MarkupFeeResponse)
async def get_markup_fee(
    fee_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        fee = await MarkupService(db).get(fee_id)
    except ForexDeskError as exc:
        raise to_http_exception(exc)
    return MarkupFeeResponse.model_validate(fee)


@router.patch("/{fee_id}", response_model=MarkupFeeResponse)
async def update_markup_fee(
    fee_id: UUID,
    payload: MarkupFeeUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Partial update; only fields present in the body change."""
    try:
        fee = await MarkupService(db).update(fee_id, payload)
    except ForexDeskError as exc:
        raise to_http_exception(exc)
    return MarkupFeeResponse.model_validate(fee)


@router.delete("/{fee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_markup_fee(
    fee_id: UUID,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        await MarkupService(db).delete(fee_id)
    except ForexDeskError as exc:
        raise to_http_exception(exc)
