"""
Rate calculation engine — live market rate + markup configuration → quoted rate.

Pure functions with no I/O so they can be tested without a database:

    adjusted = live + markup                 (fixed)
    adjusted = live + live * markup / 100    (percentage)
    final    = adjusted + adjusted * gst / 100

Results are rounded half-up to 4 decimal places.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Protocol

from app.models.markup_fee import MarkupType, TransactionType

RATE_PLACES = Decimal("0.0001")
HUNDRED = Decimal("100")


class MarkupConfig(Protocol):
    markup_type: MarkupType | str
    markup_value: Decimal
    markup_value_sell: Decimal | None
    gst_percentage: Decimal


# Named quote → (ledger transaction type, sell side)
NAMED_RATES: dict[str, tuple[TransactionType, bool]] = {
    "bpc": (TransactionType.CARD, False),        # buy prepaid card
    "btt": (TransactionType.TT, False),          # buy wire transfer
    "bdd": (TransactionType.TT, False),          # buy demand draft
    "bcn": (TransactionType.CASH, False),        # buy cash
    "ncn_combo": (TransactionType.CARD, False),  # buy cash + card combo
    "scn": (TransactionType.SELLCASH, True),     # sell cash
    "spc": (TransactionType.SELLCARD, True),     # sell card
}


def _to_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def quote(live_rate: Decimal, markup: MarkupConfig | None, is_sell: bool = False) -> Decimal | None:
    """
    Apply *markup* and GST to *live_rate*.

    Returns None when no markup is configured; callers treat that as
    "no quote available" for the transaction type.
    """
    if markup is None:
        return None

    live = _to_decimal(live_rate)

    markup_value = markup.markup_value
    if is_sell and markup.markup_value_sell is not None:
        markup_value = markup.markup_value_sell
    markup_value = _to_decimal(markup_value)

    if MarkupType(markup.markup_type) == MarkupType.FIXED:
        adjusted = live + markup_value
    else:
        adjusted = live + live * markup_value / HUNDRED

    gst = _to_decimal(markup.gst_percentage)
    final = adjusted + adjusted * gst / HUNDRED
    return final.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def named_rates(
    live_rate: Decimal,
    fees: Mapping[TransactionType, MarkupConfig],
) -> dict[str, Decimal | None]:
    """Derive the seven named buy/sell rates for one currency."""
    return {
        name: quote(live_rate, fees.get(txn_type), is_sell)
        for name, (txn_type, is_sell) in NAMED_RATES.items()
    }
