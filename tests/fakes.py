"""Test doubles shared across test modules."""

import uuid
from unittest.mock import MagicMock

from app.models.markup_fee import MarkupFee, TransactionType
from app.services.ledger_repository import ledger_key


def db_result(value=None, *, scalars=None, count=None) -> MagicMock:
    """Build one ``db.execute`` return value."""
    result = MagicMock()
    result.scalar_one_or_none = MagicMock(return_value=value)
    result.scalar_one = MagicMock(return_value=count if count is not None else value)
    result.scalars.return_value.all.return_value = list(scalars or [])
    return result


class InMemoryLedger:
    """Holds MarkupFee rows in a dict; records lock and flush calls."""

    def __init__(self, fees: list[MarkupFee] | None = None):
        self.rows: dict[uuid.UUID, MarkupFee] = {}
        self.locked: list[list[uuid.UUID]] = []
        self.flushes = 0
        for fee in fees or []:
            self.rows[fee.id] = fee

    def _active(self, key):
        matches = [
            f for f in self.rows.values()
            if f.is_active and (f.currency_code, f.city_code, f.transaction_type) == key
        ]
        matches.sort(key=lambda f: (f.created_at, str(f.id)))
        return matches[0] if matches else None

    async def get(self, ledger_id: uuid.UUID, *, for_update: bool = False) -> MarkupFee | None:
        fee = self.rows.get(ledger_id)
        if fee is not None and for_update:
            self.locked.append([fee.id])
        return fee

    async def find_active(
        self, currency: str, city_code: str, transaction_type: TransactionType, *, for_update: bool = False,
    ) -> MarkupFee | None:
        return self._active(ledger_key(currency, city_code, transaction_type))

    async def lock_active(self, keys):
        found = {}
        for key in {ledger_key(*k) for k in keys}:
            fee = self._active(key)
            if fee is not None:
                found[key] = fee
        self.locked.append(sorted((f.id for f in found.values()), key=str))
        return found

    async def flush(self) -> None:
        self.flushes += 1
