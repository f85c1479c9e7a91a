"""
Order service — forex request creation and status lifecycle.

Create flow:
  1. Intake validation (every field problem reported together)
  2. Stock availability check for each line (read-only)
  3. Persist as Pending

Approval flow, all inside the caller's transaction:
  1. Lock the order row (SELECT ... FOR UPDATE) and require Pending
  2. Check purpose documents and business fields
  3. Deduct stock for every line as one unit
  4. Mark Approved with stock_deducted=True

A second approval of the same order blocks on the row lock, then sees
Approved and fails with StateConflictError, so stock moves once.
"""

import logging
import uuid

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    BusinessFieldsError,
    DocumentValidationError,
    FieldError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from app.models.forex_request import DOCUMENT_FIELDS, ForexRequest, ForexRequestStatus, OrderType
from app.schemas.forex_request import DocumentUpdate, ForexRequestCreate
from app.services.intake import url_adapter, validate_order, wire_name
from app.services.ledger_repository import LedgerRepository
from app.services.stock_service import StockMovement, StockService

logger = logging.getLogger(__name__)

# Filters matched as case-insensitive substrings in admin listings
TEXT_FILTERS = ("city", "email", "phone_number", "traveler_name")


class OrderService:
    """Forex request lifecycle over one database session."""

    def __init__(self, session: AsyncSession, stock: StockService | None = None):
        self.session = session
        self.stock = stock or StockService(LedgerRepository(session))

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_order(
        self, payload: ForexRequestCreate, user_id: uuid.UUID | None = None,
    ) -> ForexRequest:
        order = validate_order(payload)

        await self.stock.validate_availability(order.lines, order.city_code)

        request = ForexRequest(
            user_id=user_id,
            order_type=order.order_type,
            city=order.city_code,
            **order.attributes,
        )
        request.set_order_lines(order.lines)

        self.session.add(request)
        await self.session.flush()

        logger.info(
            "Forex request %s created: %s %d line(s) in %s (INR %s)",
            request.id, order.order_type.value, len(order.lines),
            order.city_code, request.total_amount_in_inr(),
        )
        return request

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_order(self, order_id: uuid.UUID, *, for_update: bool = False) -> ForexRequest:
        stmt = select(ForexRequest).where(ForexRequest.id == order_id)
        if for_update:
            # Reload the locked row over any copy already in the identity map.
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError("Forex request not found")
        return request

    async def list_orders(
        self,
        *,
        offset: int = 0,
        limit: int = 10,
        user_id: uuid.UUID | None = None,
        status: str | None = None,
        purpose: str | None = None,
        order_type: str | None = None,
        **text_filters: str | None,
    ) -> tuple[int, list[ForexRequest]]:
        """
        Paginated listing, newest first. Returns ``(total, page)``.

        Raises ValidationError for a status or order type filter outside
        its enum, before any query runs.
        """
        errors = []
        if status:
            try:
                status = ForexRequestStatus(status)
            except ValueError:
                allowed = ", ".join(s.value for s in ForexRequestStatus)
                errors.append(FieldError("status", f"Status must be one of: {allowed}"))
        if order_type:
            try:
                order_type = OrderType(order_type)
            except ValueError:
                errors.append(FieldError("orderType", "Order type must be either Buy or Sell"))
        if errors:
            raise ValidationError(errors, "Invalid filter")

        filters = []
        if user_id is not None:
            filters.append(ForexRequest.user_id == user_id)
        if status:
            filters.append(ForexRequest.status == status)
        if purpose:
            filters.append(ForexRequest.purpose == purpose)
        if order_type:
            filters.append(ForexRequest.order_type == order_type)
        for name in TEXT_FILTERS:
            value = text_filters.get(name)
            if value:
                filters.append(getattr(ForexRequest, name).ilike(f"%{value}%"))

        total = (
            await self.session.execute(select(func.count(ForexRequest.id)).where(*filters))
        ).scalar_one()
        result = await self.session.execute(
            select(ForexRequest)
            .where(*filters)
            .order_by(ForexRequest.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return total, list(result.scalars().all())

    # ------------------------------------------------------------------
    # Status lifecycle
    # ------------------------------------------------------------------

    async def set_status(
        self,
        order_id: uuid.UUID,
        new_status: str,
        rejection_reason: str | None = None,
    ) -> tuple[ForexRequest, list[StockMovement] | None]:
        """
        Move an order to *new_status*.

        Returns the order and, for approvals, the stock movements applied.
        """
        try:
            target = ForexRequestStatus(new_status)
        except ValueError:
            allowed = ", ".join(s.value for s in ForexRequestStatus)
            raise ValidationError([FieldError("status", f"Status must be one of: {allowed}")])

        if target == ForexRequestStatus.REJECTED and not (rejection_reason or "").strip():
            raise ValidationError([
                FieldError("rejectionReason", "Rejection reason is required when rejecting a request"),
            ])

        request = await self.get_order(order_id, for_update=True)

        if not request.is_valid_transition(request.status, target):
            raise StateConflictError(
                f"Cannot move request from '{request.status.value}' to '{target.value}'"
            )

        movements = None
        if target == ForexRequestStatus.APPROVED:
            movements = await self._approve(request)
        elif target == ForexRequestStatus.REJECTED:
            request.rejection_reason = rejection_reason.strip()
            request.transition_to(target)
        else:
            request.transition_to(target)

        await self.session.flush()
        logger.info("Forex request %s -> %s", request.id, request.status.value)
        return request, movements

    async def _approve(self, request: ForexRequest) -> list[StockMovement]:
        missing_docs = request.missing_documents()
        if missing_docs:
            raise DocumentValidationError(missing_docs)

        missing_business = request.missing_business_fields()
        if missing_business:
            raise BusinessFieldsError(missing_business)

        if request.stock_deducted:
            raise StateConflictError(f"Stock already deducted for request {request.id}")

        lines = request.order_lines()
        if not lines:
            raise ValidationError([FieldError("orderDetails", "Request has no order lines")])

        # Stock direction follows each line's own type.
        mismatched = [
            FieldError(f"orderDetails[{i}].orderType", "Line order type does not match the request's order type")
            for i, line in enumerate(lines)
            if line.order_type != request.order_type.value
        ]
        if mismatched:
            raise ValidationError(mismatched, "Order lines disagree with the request's order type")

        movements = await self.stock.deduct(lines, request.city)

        request.transition_to(ForexRequestStatus.APPROVED)
        request.stock_deducted = True
        return movements

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def attach_documents(self, order_id: uuid.UUID, documents: DocumentUpdate) -> ForexRequest:
        """
        Attach or replace document URLs.

        Allowed while Pending or Documents Requested; a Documents Requested
        request goes back to Pending.
        """
        provided = {
            name: value.strip()
            for name in DOCUMENT_FIELDS
            if (value := getattr(documents, name)) and value.strip()
        }
        errors = []
        for name, value in provided.items():
            try:
                url_adapter.validate_python(value)
            except PydanticValidationError:
                errors.append(FieldError(wire_name(name), "Must be a valid URL"))
        if errors:
            raise ValidationError(errors)

        request = await self.get_order(order_id, for_update=True)
        if request.status not in (
            ForexRequestStatus.PENDING, ForexRequestStatus.DOCUMENTS_REQUESTED,
        ):
            raise StateConflictError(
                f"Documents cannot be changed on a '{request.status.value}' request"
            )

        for name, value in provided.items():
            setattr(request, name, value)
        if request.status == ForexRequestStatus.DOCUMENTS_REQUESTED:
            request.transition_to(ForexRequestStatus.PENDING)

        await self.session.flush()
        logger.info("Forex request %s documents updated: %s", request.id, sorted(provided))
        return request

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_order(self, order_id: uuid.UUID) -> None:
        request = await self.get_order(order_id, for_update=True)
        await self.session.delete(request)
        await self.session.flush()
        logger.info("Forex request %s deleted", order_id)
