"""
Ledger repository — lookups and writes against the ``markup_fees`` table.

Order lines reference ledger rows by value, not by key: a line resolves to
the active row for (currency, city, transaction type). Every lookup used
by a ledger write can take a row lock (``SELECT ... FOR UPDATE``) so
concurrent approvals on the same row serialize inside their transactions.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Iterable

from sqlalchemy import func, select, tuple_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.markup_fee import MarkupFee, MarkupType, TransactionType

logger = logging.getLogger(__name__)

LedgerKey = tuple[str, str, TransactionType]


def ledger_key(currency: str, city_code: str, transaction_type: TransactionType) -> LedgerKey:
    """Normalise a lookup tuple (codes are stored uppercase)."""
    return currency.strip().upper(), city_code.strip().upper(), TransactionType(transaction_type)


class LedgerRepository:
    """
    Data access for ledger rows.

    Takes the request's ``AsyncSession`` so all reads and writes share the
    caller's transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ── single-row lookups ──────────────────────────────────────────────

    async def get(self, ledger_id: uuid.UUID, *, for_update: bool = False) -> MarkupFee | None:
        stmt = select(MarkupFee).where(MarkupFee.id == ledger_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_active(
        self,
        currency: str,
        city_code: str,
        transaction_type: TransactionType,
        *,
        for_update: bool = False,
    ) -> MarkupFee | None:
        """Return the active row for the tuple, or None if none is configured."""
        currency, city_code, transaction_type = ledger_key(currency, city_code, transaction_type)
        stmt = (
            select(MarkupFee)
            .where(
                MarkupFee.currency_code == currency,
                MarkupFee.city_code == city_code,
                MarkupFee.transaction_type == transaction_type,
                MarkupFee.is_active.is_(True),
            )
            .order_by(MarkupFee.created_at, MarkupFee.id)
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # ── multi-row lock ──────────────────────────────────────────────────

    async def lock_active(self, keys: Iterable[LedgerKey]) -> dict[LedgerKey, MarkupFee]:
        """
        Lock the active rows for every key in one statement.

        Rows are locked in ascending id order so two transactions that
        touch overlapping rows always acquire them in the same sequence.
        Keys with no active row are absent from the result.
        """
        wanted = {ledger_key(*key) for key in keys}
        if not wanted:
            return {}

        stmt = (
            select(MarkupFee)
            .where(
                tuple_(
                    MarkupFee.currency_code,
                    MarkupFee.city_code,
                    MarkupFee.transaction_type,
                ).in_(list(wanted)),
                MarkupFee.is_active.is_(True),
            )
            .order_by(MarkupFee.id)
            .with_for_update()
        )
        result = await self.session.execute(stmt)

        rows: dict[LedgerKey, MarkupFee] = {}
        for fee in sorted(result.scalars().all(), key=lambda f: (f.created_at, str(f.id))):
            rows.setdefault((fee.currency_code, fee.city_code, fee.transaction_type), fee)
        return rows

    # ── listings ────────────────────────────────────────────────────────

    async def list_for_city(self, city_code: str) -> list[MarkupFee]:
        """All active rows for a city, oldest first (rate quoting read path)."""
        result = await self.session.execute(
            select(MarkupFee)
            .where(
                MarkupFee.city_code == city_code.upper(),
                MarkupFee.is_active.is_(True),
            )
            .order_by(MarkupFee.created_at, MarkupFee.id)
        )
        return list(result.scalars().all())

    async def search(
        self,
        *,
        city_code: str | None = None,
        currency_code: str | None = None,
        transaction_type: TransactionType | None = None,
        markup_type: MarkupType | None = None,
        is_active: bool | None = None,
        max_quantity: Decimal | None = None,
        order_by: str = "display",
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[int, list[MarkupFee]]:
        """
        Filtered, paginated listing. Returns ``(total, page)``.

        ``order_by`` is ``display`` (display order, currency), ``stock``
        (city, currency, type) or ``quantity`` (lowest quantity first).
        """
        filters = []
        if city_code:
            filters.append(MarkupFee.city_code == city_code.upper())
        if currency_code:
            filters.append(MarkupFee.currency_code == currency_code.upper())
        if transaction_type is not None:
            filters.append(MarkupFee.transaction_type == transaction_type)
        if markup_type is not None:
            filters.append(MarkupFee.markup_type == markup_type)
        if is_active is not None:
            filters.append(MarkupFee.is_active.is_(is_active))
        if max_quantity is not None:
            filters.append(MarkupFee.quantity < max_quantity)

        ordering = {
            "display": (MarkupFee.display_order, MarkupFee.currency_code),
            "stock": (MarkupFee.city_code, MarkupFee.currency_code, MarkupFee.transaction_type),
            "quantity": (MarkupFee.quantity, MarkupFee.city_code, MarkupFee.currency_code),
        }[order_by]

        total = (
            await self.session.execute(select(func.count(MarkupFee.id)).where(*filters))
        ).scalar_one()

        result = await self.session.execute(
            select(MarkupFee).where(*filters).order_by(*ordering).offset(offset).limit(limit)
        )
        return total, list(result.scalars().all())

    # ── uniqueness checks ───────────────────────────────────────────────

    async def identity_exists(
        self,
        currency: str,
        city_code: str,
        transaction_type: TransactionType,
        markup_type: MarkupType,
        *,
        exclude_id: uuid.UUID | None = None,
    ) -> bool:
        stmt = select(MarkupFee.id).where(
            MarkupFee.currency_code == currency.upper(),
            MarkupFee.city_code == city_code.upper(),
            MarkupFee.transaction_type == transaction_type,
            MarkupFee.markup_type == markup_type,
        )
        if exclude_id is not None:
            stmt = stmt.where(MarkupFee.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def display_order_taken(
        self, city_code: str, display_order: int, *, exclude_id: uuid.UUID | None = None,
    ) -> bool:
        stmt = select(MarkupFee.id).where(
            MarkupFee.city_code == city_code.upper(),
            MarkupFee.display_order == display_order,
        )
        if exclude_id is not None:
            stmt = stmt.where(MarkupFee.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    # ── writes ──────────────────────────────────────────────────────────

    def add(self, fee: MarkupFee) -> None:
        self.session.add(fee)

    async def delete(self, fee: MarkupFee) -> None:
        await self.session.delete(fee)

    async def flush(self) -> None:
        await self.session.flush()
