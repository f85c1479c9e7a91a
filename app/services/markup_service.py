"""
Markup service — ledger row administration.

Ledger rows are identified by (currency, city, transaction type, markup
type) and ordered for display per city. Both are unique; conflicts raise
LedgerConflictError before anything is written. Bulk creation is
all-or-nothing: every row is checked (against the table and the rest of
the batch) before any is added.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.errors import LedgerConflictError, NotFoundError
from app.models.markup_fee import GST_PLACES, MARKUP_PLACES, MarkupFee, MarkupType, TransactionType
from app.schemas.markup import MarkupFeeCreate, MarkupFeeUpdate
from app.services.ledger_repository import LedgerRepository

logger = logging.getLogger(__name__)

IDENTITY_FIELDS = ("currency_code", "city_code", "transaction_type", "markup_type")


def _identity_conflict(currency: str, city: str, txn_type: TransactionType, markup_type: MarkupType):
    return LedgerConflictError(
        f"Markup fee already exists for {currency} in city {city} "
        f"(transaction: {txn_type.value}, type: {markup_type.value}).",
        error_code="DUPLICATE_MARKUP_FEE",
    )


def _order_conflict(city: str, display_order: int):
    return LedgerConflictError(
        f"Order {display_order} already exists in city {city}.",
        error_code="DUPLICATE_ORDER",
    )


def _normalized(data: dict) -> dict:
    """Uppercase codes and round decimals to ledger precision."""
    out = dict(data)
    for code in ("currency_code", "city_code"):
        if out.get(code) is not None:
            out[code] = out[code].strip().upper()
    if out.get("markup_value") is not None:
        out["markup_value"] = Decimal(out["markup_value"]).quantize(MARKUP_PLACES)
    if "markup_value_sell" in out:
        sell = out["markup_value_sell"]
        out["markup_value_sell"] = Decimal(sell).quantize(MARKUP_PLACES) if sell is not None else None
    if out.get("gst_percentage") is not None:
        out["gst_percentage"] = Decimal(out["gst_percentage"]).quantize(GST_PLACES)
    return out


class MarkupService:
    """CRUD over ledger rows. Stock quantities change through StockService."""

    def __init__(self, session: AsyncSession):
        self.ledger = LedgerRepository(session)

    async def get(self, fee_id: uuid.UUID) -> MarkupFee:
        fee = await self.ledger.get(fee_id)
        if fee is None:
            raise NotFoundError("Markup fee not found")
        return fee

    async def list_fees(
        self,
        city_code: str,
        *,
        currency_code: str | None = None,
        transaction_type: TransactionType | None = None,
        markup_type: MarkupType | None = None,
        is_active: bool | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[int, list[MarkupFee]]:
        return await self.ledger.search(
            city_code=city_code,
            currency_code=currency_code,
            transaction_type=transaction_type,
            markup_type=markup_type,
            is_active=is_active,
            order_by="display",
            offset=offset,
            limit=limit,
        )

    # --- Create ---

    async def _check_unique(self, data: dict, *, exclude_id: uuid.UUID | None = None) -> None:
        if await self.ledger.identity_exists(
            data["currency_code"], data["city_code"],
            data["transaction_type"], data["markup_type"],
            exclude_id=exclude_id,
        ):
            raise _identity_conflict(
                data["currency_code"], data["city_code"],
                data["transaction_type"], data["markup_type"],
            )
        if await self.ledger.display_order_taken(
            data["city_code"], data["display_order"], exclude_id=exclude_id,
        ):
            raise _order_conflict(data["city_code"], data["display_order"])

    def _build(self, data: dict) -> MarkupFee:
        if data.get("gst_percentage") is None:
            data["gst_percentage"] = settings.DEFAULT_GST_PERCENTAGE
        fee = MarkupFee(**data)
        fee.set_quantity(data.get("quantity") or Decimal("0"))
        return fee

    async def create(self, payload: MarkupFeeCreate) -> MarkupFee:
        data = _normalized(payload.model_dump())
        await self._check_unique(data)

        fee = self._build(data)
        self.ledger.add(fee)
        await self.ledger.flush()

        logger.info(
            "Markup fee %s created: %s/%s %s qty=%s",
            fee.id, fee.currency_code, fee.city_code, fee.transaction_type.value, fee.quantity,
        )
        return fee

    async def bulk_create(self, payloads: list[MarkupFeeCreate]) -> list[MarkupFee]:
        """Create every row or none."""
        batch = [_normalized(p.model_dump()) for p in payloads]

        seen_identity: set[tuple] = set()
        seen_order: set[tuple] = set()
        for data in batch:
            identity = tuple(data[f] for f in IDENTITY_FIELDS)
            order = (data["city_code"], data["display_order"])
            if identity in seen_identity:
                raise _identity_conflict(*identity)
            if order in seen_order:
                raise _order_conflict(*order)
            seen_identity.add(identity)
            seen_order.add(order)
            await self._check_unique(data)

        fees = [self._build(data) for data in batch]
        for fee in fees:
            self.ledger.add(fee)
        await self.ledger.flush()

        logger.info("Bulk-created %d markup fee(s)", len(fees))
        return fees

    # --- Update / delete ---

    async def update(self, fee_id: uuid.UUID, payload: MarkupFeeUpdate) -> MarkupFee:
        fee = await self.ledger.get(fee_id, for_update=True)
        if fee is None:
            raise NotFoundError("Markup fee not found")

        changes = _normalized(payload.model_dump(exclude_unset=True))

        merged = {
            name: changes.get(name, getattr(fee, name))
            for name in (*IDENTITY_FIELDS, "display_order")
        }
        if any(name in changes for name in IDENTITY_FIELDS) and await self.ledger.identity_exists(
            merged["currency_code"], merged["city_code"],
            merged["transaction_type"], merged["markup_type"],
            exclude_id=fee.id,
        ):
            raise _identity_conflict(
                merged["currency_code"], merged["city_code"],
                merged["transaction_type"], merged["markup_type"],
            )
        if ("display_order" in changes or "city_code" in changes) and await self.ledger.display_order_taken(
            merged["city_code"], merged["display_order"], exclude_id=fee.id,
        ):
            raise _order_conflict(merged["city_code"], merged["display_order"])

        quantity = changes.pop("quantity", None)
        if changes.get("gst_percentage", fee.gst_percentage) is None:
            changes["gst_percentage"] = settings.DEFAULT_GST_PERCENTAGE
        for name, value in changes.items():
            setattr(fee, name, value)
        if quantity is not None:
            fee.set_quantity(quantity)

        await self.ledger.flush()
        logger.info("Markup fee %s updated: %s", fee.id, sorted(payload.model_fields_set))
        return fee

    async def delete(self, fee_id: uuid.UUID) -> None:
        fee = await self.get(fee_id)
        await self.ledger.delete(fee)
        await self.ledger.flush()
        logger.info("Markup fee %s deleted", fee_id)
