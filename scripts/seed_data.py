"""
Ledger seeder — populates markup fees and opening stock for development.

Usage:
    python scripts/seed_data.py

Creates, for each of DEL and BOM:
  - USD, EUR, GBP rows for every transaction type
    (CASH, CARD, TT, SELLCASH, SELLCARD)
  - opening stock per row (sell rows start empty)

Idempotent: skips rows whose (currency, city, type, markup type) exists.
"""

import asyncio
from decimal import Decimal

from sqlalchemy import select

from app.database import async_session
from app.models.markup_fee import MarkupFee, MarkupType, TransactionType

CITIES = ["DEL", "BOM"]

# currency -> (description, opening stock)
CURRENCIES: dict[str, tuple[str, Decimal]] = {
    "USD": ("US Dollar", Decimal("25000")),
    "EUR": ("Euro", Decimal("15000")),
    "GBP": ("British Pound", Decimal("8000")),
}

# transaction type -> (markup type, markup value, sell markup)
MARKUPS: dict[TransactionType, tuple[MarkupType, Decimal, Decimal | None]] = {
    TransactionType.CASH: (MarkupType.FIXED, Decimal("0.6500"), None),
    TransactionType.CARD: (MarkupType.PERCENTAGE, Decimal("0.7500"), None),
    TransactionType.TT: (MarkupType.PERCENTAGE, Decimal("0.5000"), None),
    TransactionType.SELLCASH: (MarkupType.FIXED, Decimal("0.4000"), Decimal("-1.2000")),
    TransactionType.SELLCARD: (MarkupType.PERCENTAGE, Decimal("0.5000"), Decimal("-1.0000")),
}

SELL_TYPES = {TransactionType.SELLCASH, TransactionType.SELLCARD}


async def seed() -> None:
    async with async_session() as session:
        created = 0
        skipped = 0

        for city in CITIES:
            display_order = 0
            for currency, (description, stock) in CURRENCIES.items():
                for txn_type, (markup_type, value, sell_value) in MARKUPS.items():
                    display_order += 1
                    existing = await session.execute(
                        select(MarkupFee.id).where(
                            MarkupFee.currency_code == currency,
                            MarkupFee.city_code == city,
                            MarkupFee.transaction_type == txn_type,
                            MarkupFee.markup_type == markup_type,
                        )
                    )
                    if existing.scalar_one_or_none() is not None:
                        skipped += 1
                        continue

                    fee = MarkupFee(
                        currency_code=currency,
                        city_code=city,
                        transaction_type=txn_type,
                        markup_type=markup_type,
                        description=f"{description} ({txn_type.value})",
                        display_order=display_order,
                        markup_value=value,
                        markup_value_sell=sell_value,
                    )
                    fee.set_quantity(Decimal("0") if txn_type in SELL_TYPES else stock)
                    session.add(fee)
                    created += 1

        await session.commit()
        print(f"  Markup fees: {created} new, {skipped} existing")


if __name__ == "__main__":
    asyncio.run(seed())
