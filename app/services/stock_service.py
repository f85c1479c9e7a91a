"""
Stock service — availability checks, order deductions, and admin adjustments
against ledger quantities.

- ``validate_availability`` is read-only and idempotent; it runs at order
  creation and again (implicitly, through ``deduct``) at approval.
- ``deduct`` locks every ledger row the order touches, computes all new
  quantities first, and only writes once every line has passed. A failing
  line therefore leaves no row modified, and the surrounding transaction
  rolls back anything else.
- Buy lines consume stock; Sell lines replenish it.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import asdict, dataclass
from decimal import Decimal

from app.core.errors import (
    FieldError,
    InsufficientStockError,
    MarkupNotFoundError,
    NotFoundError,
    ValidationError,
)
from app.models.forex_request import OrderLine, OrderType
from app.models.markup_fee import QUANTITY_PLACES, MarkupFee, TransactionType, transaction_type_for
from app.services.ledger_repository import LedgerRepository, ledger_key

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockCheck:
    currency: str
    product: str
    transaction_type: TransactionType
    available_quantity: Decimal
    requested_amount: Decimal
    is_valid: bool = True

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StockMovement:
    currency: str
    product: str
    transaction_type: TransactionType
    previous_quantity: Decimal
    new_quantity: Decimal
    amount_deducted: Decimal

    def as_dict(self) -> dict:
        return asdict(self)


class StockOperation(str, enum.Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


@dataclass(frozen=True)
class StockAdjustment:
    ledger: MarkupFee
    operation: StockOperation
    previous_quantity: Decimal
    new_quantity: Decimal
    quantity_change: Decimal | None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class StockService:
    """Stock operations over an injected ledger repository."""

    def __init__(self, ledger: LedgerRepository):
        self.ledger = ledger

    # --- Availability ---

    async def validate_availability(
        self, lines: list[OrderLine], city_code: str,
    ) -> list[StockCheck]:
        """
        Check every line against its ledger row without mutating anything.

        Raises MarkupNotFoundError for an unconfigured tuple and
        InsufficientStockError for the first line that exceeds stock.
        """
        checks: list[StockCheck] = []
        for line in lines:
            txn_type = transaction_type_for(line.product)
            fee = await self.ledger.find_active(line.currency, city_code, txn_type)
            if fee is None:
                logger.warning(
                    "No active markup for %s/%s/%s", line.currency, city_code, txn_type.value,
                )
                raise MarkupNotFoundError(line.currency.upper(), city_code.upper(), txn_type.value)

            available = Decimal(fee.quantity or 0)
            if available < line.currency_amount:
                raise InsufficientStockError(
                    line.currency, line.product, available, line.currency_amount,
                )

            checks.append(StockCheck(
                currency=line.currency,
                product=line.product,
                transaction_type=txn_type,
                available_quantity=available,
                requested_amount=line.currency_amount,
            ))
        return checks

    # --- Deduction ---

    async def deduct(self, lines: list[OrderLine], city_code: str) -> list[StockMovement]:
        """
        Apply all *lines* to the ledger as one unit.

        Ledger rows are re-resolved and locked here rather than trusted from
        an earlier validation. Lines that resolve to the same row accumulate
        against one running quantity.
        """
        keyed = [
            (line, ledger_key(line.currency, city_code, transaction_type_for(line.product)))
            for line in lines
        ]
        rows = await self.ledger.lock_active(key for _, key in keyed)

        running: dict[uuid.UUID, Decimal] = {}
        movements: list[StockMovement] = []

        for line, key in keyed:
            fee = rows.get(key)
            if fee is None:
                currency, city, txn_type = key
                logger.warning(
                    "No active markup for deduction %s/%s/%s", currency, city, txn_type.value,
                )
                raise MarkupNotFoundError(currency, city, txn_type.value)

            current = running.get(fee.id, Decimal(fee.quantity or 0))
            if line.order_type == OrderType.BUY.value:
                new_quantity = current - line.currency_amount
            else:
                new_quantity = current + line.currency_amount

            if new_quantity < 0:
                raise InsufficientStockError(
                    line.currency, line.product, current, line.currency_amount,
                )

            running[fee.id] = new_quantity
            movements.append(StockMovement(
                currency=line.currency,
                product=line.product,
                transaction_type=key[2],
                previous_quantity=current,
                new_quantity=new_quantity,
                amount_deducted=line.currency_amount,
            ))

        # Every line passed; write the final quantity of each touched row.
        for fee in rows.values():
            if fee.id in running:
                fee.set_quantity(running[fee.id])
        await self.ledger.flush()

        for movement in movements:
            logger.info(
                "Stock %s/%s %s: %s -> %s",
                movement.currency, city_code.upper(), movement.transaction_type.value,
                movement.previous_quantity, movement.new_quantity,
            )
        return movements

    # --- Admin override ---

    async def adjust_stock(
        self,
        ledger_id: uuid.UUID,
        quantity: Decimal,
        operation: StockOperation | str = StockOperation.SET,
    ) -> StockAdjustment:
        """Add to, subtract from, or overwrite a ledger row's quantity under a row lock."""
        operation = StockOperation(operation)
        if quantity < 0:
            raise ValidationError([FieldError("quantity", "Stock quantity cannot be negative")])
        if quantity.normalize().as_tuple().exponent < QUANTITY_PLACES.as_tuple().exponent:
            raise ValidationError([FieldError("quantity", "Stock quantity allows at most 4 decimal places")])

        fee = await self.ledger.get(ledger_id, for_update=True)
        if fee is None:
            raise NotFoundError("Markup fee not found")

        previous = Decimal(fee.quantity or 0)
        if operation == StockOperation.ADD:
            new_quantity = previous + quantity
        elif operation == StockOperation.SUBTRACT:
            new_quantity = previous - quantity
            if new_quantity < 0:
                raise InsufficientStockError(
                    fee.currency_code, fee.transaction_type.value, previous, quantity,
                )
        else:
            new_quantity = quantity

        fee.set_quantity(new_quantity)
        await self.ledger.flush()

        logger.info(
            "Stock %s adjusted (%s %s): %s -> %s",
            fee.id, operation.value, quantity, previous, fee.quantity,
        )
        return StockAdjustment(
            ledger=fee,
            operation=operation,
            previous_quantity=previous,
            new_quantity=Decimal(fee.quantity).quantize(QUANTITY_PLACES),
            quantity_change=None if operation == StockOperation.SET else quantity,
        )
