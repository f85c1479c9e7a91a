"""
Forex request endpoints — submit, list, inspect, update status, attach
documents, and delete buy/sell orders.

Create flow:
  1. Validate every field (all problems reported together)
  2. Check stock for each order line
  3. Persist as Pending

Approval (admin) re-checks documents and deducts stock for all lines in
the request's transaction; any failure rolls the whole request back.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import CurrentUser, get_current_user, require_admin
from app.api.pagination import Page, page_params
from app.core.errors import ForexDeskError, to_http_exception
from app.database import get_db
from app.models.forex_request import DOCUMENT_FIELDS, ForexRequest
from app.schemas.forex_request import (
    DocumentUpdate,
    ForexRequestCreate,
    ForexRequestListResponse,
    ForexRequestResponse,
    OrderLineOut,
    OrderSummaryItem,
    StatusUpdateRequest,
    StatusUpdateResponse,
    StockMovementOut,
)
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_response(request: ForexRequest) -> ForexRequestResponse:
    """Build a ForexRequestResponse from an ORM ForexRequest object."""
    lines = request.order_lines()
    return ForexRequestResponse(
        id=request.id,
        user_id=request.user_id,
        order_type=request.order_type.value,
        order_details=[
            OrderLineOut(
                order_type=line.order_type,
                currency=line.currency,
                product=line.product,
                currency_amount=line.currency_amount,
                amount_in_inr=line.amount_in_inr,
            )
            for line in lines
        ],
        currency=request.currency,
        product=request.product,
        currency_amount=request.currency_amount,
        amount_in_inr=request.amount_in_inr,
        traveler_name=request.traveler_name,
        phone_number=request.phone_number,
        email=request.email,
        pan_number=request.pan_number,
        indian_resident=request.indian_resident,
        traveling_countries=request.traveling_countries or [],
        start_date=request.start_date,
        end_date=request.end_date,
        purpose=request.purpose,
        business_reason=request.business_reason,
        business_name=request.business_name,
        business_type=request.business_type,
        delivery_address=request.delivery_address,
        pincode=request.pincode,
        city=request.city,
        state=request.state,
        status=request.status.value,
        rejection_reason=request.rejection_reason,
        stock_deducted=request.stock_deducted,
        approved_at=request.approved_at,
        created_at=request.created_at,
        updated_at=request.updated_at,
        order_summary=[OrderSummaryItem(**item) for item in request.order_summary()],
        total_currency_amount=request.total_currency_amount(),
        total_amount_in_inr=request.total_amount_in_inr(),
        **{name: getattr(request, name) for name in DOCUMENT_FIELDS},
    )


def _check_access(request: ForexRequest, user: CurrentUser) -> None:
    if not user.is_admin and request.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this forex request",
        )


# ---------------------------------------------------------------------------
# POST / — Submit request
# ---------------------------------------------------------------------------


@router.post("/", response_model=ForexRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_forex_request(
    payload: ForexRequestCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Submit a buy or sell forex request.

    Accepts either ``orderDetails`` (several lines) or the legacy
    single-line fields. Returns 400 with every invalid field, 404 if a
    line's currency/product has no markup configured in the city, and
    409 if stock is insufficient.
    """
    try:
        request = await OrderService(db).create_order(payload, user_id=user.id)
    except ForexDeskError as exc:
        raise to_http_exception(exc)
    return _build_response(request)


# ---------------------------------------------------------------------------
# GET /mine — Caller's requests
# ---------------------------------------------------------------------------


@router.get("/mine", response_model=ForexRequestListResponse)
async def list_my_forex_requests(
    page: Page = Depends(page_params),
    status_filter: str | None = Query(None, alias="status"),
    purpose: str | None = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the authenticated user's forex requests, newest first."""
    try:
        total, items = await OrderService(db).list_orders(
            offset=page.offset, limit=page.size,
            user_id=user.id, status=status_filter, purpose=purpose,
        )
    except ForexDeskError as exc:
        raise to_http_exception(exc)
    return ForexRequestListResponse(
        items=[_build_response(r) for r in items],
        pagination=page.meta(total),
    )


# ---------------------------------------------------------------------------
# GET / — All requests (admin)
# ---------------------------------------------------------------------------


@router.get("/", response_model=ForexRequestListResponse)
async def list_forex_requests(
    page: Page = Depends(page_params),
    city: str | None = Query(None),
    email: str | None = Query(None),
    phone_number: str | None = Query(None, alias="phoneNumber"),
    traveler_name: str | None = Query(None, alias="travelerName"),
    status_filter: str | None = Query(None, alias="status"),
    user_id: UUID | None = Query(None, alias="userId"),
    purpose: str | None = Query(None),
    order_type: str | None = Query(None, alias="orderType"),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    List forex requests across all users.

    Text filters (city, email, phone, traveler name) match
    case-insensitive substrings; the rest match exactly.
    """
    try:
        total, items = await OrderService(db).list_orders(
            offset=page.offset, limit=page.size,
            user_id=user_id, status=status_filter, purpose=purpose, order_type=order_type,
            city=city, email=email, phone_number=phone_number, traveler_name=traveler_name,
        )
    except ForexDeskError as exc:
        raise to_http_exception(exc)
    return ForexRequestListResponse(
        items=[_build_response(r) for r in items],
        pagination=page.meta(total),
    )


# ---------------------------------------------------------------------------
# GET /{id} — Get request
# ---------------------------------------------------------------------------


@router.get("/{request_id}", response_model=ForexRequestResponse)
async def get_forex_request(
    request_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get one forex request. Must be the owner or an admin."""
    try:
        request = await OrderService(db).get_order(request_id)
    except ForexDeskError as exc:
        raise to_http_exception(exc)
    _check_access(request, user)
    return _build_response(request)


# ---------------------------------------------------------------------------
# PATCH /{id}/status — Status transition (admin)
# ---------------------------------------------------------------------------


@router.patch("/{request_id}/status", response_model=StatusUpdateResponse)
async def update_forex_request_status(
    request_id: UUID,
    payload: StatusUpdateRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Move a request to Approved, Rejected, Documents Requested or Pending.

    Approving deducts stock for every line (Buy consumes, Sell
    replenishes) and returns the movements. Rejecting requires
    ``rejectionReason``. Approve/reject on a non-Pending request is 409.
    """
    try:
        request, movements = await OrderService(db).set_status(
            request_id, payload.status, payload.rejection_reason,
        )
    except ForexDeskError as exc:
        logger.info(
            "Status change %s -> %s refused: %s", request_id, payload.status, exc.error_code,
        )
        raise to_http_exception(exc)

    return StatusUpdateResponse(
        request=_build_response(request),
        stock_deduction=(
            [StockMovementOut(**m.as_dict()) for m in movements]
            if movements is not None else None
        ),
    )


# ---------------------------------------------------------------------------
# PATCH /{id}/documents — Attach documents
# ---------------------------------------------------------------------------


@router.patch("/{request_id}/documents", response_model=ForexRequestResponse)
async def attach_forex_request_documents(
    request_id: UUID,
    payload: DocumentUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Attach or replace document URLs on a Pending or Documents Requested
    request. A Documents Requested request returns to Pending.
    """
    svc = OrderService(db)
    try:
        request = await svc.get_order(request_id)
        _check_access(request, user)
        # attach_documents re-reads the row under lock before checking status.
        request = await svc.attach_documents(request_id, payload)
    except ForexDeskError as exc:
        raise to_http_exception(exc)
    return _build_response(request)


# ---------------------------------------------------------------------------
# DELETE /{id} — Delete request (admin)
# ---------------------------------------------------------------------------


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_forex_request(
    request_id: UUID,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete a forex request. Does not touch stock."""
    try:
        await OrderService(db).delete_order(request_id)
    except ForexDeskError as exc:
        raise to_http_exception(exc)
