"""
Rate service — live rate fetching, caching, quoting, and rate snapshots.

Live rates come from an FCS-style forex feed (or deterministic mock data
for development/testing) and are cached in Redis. Quotes apply each
city's markup configuration through ``rate_engine`` and are persisted to
the ``currency_rates`` snapshot table. When the feed fails, the last
snapshot's live rate is used instead (``source="snapshot"``).

Quoting only reads ledger rows; it never touches quantities.
"""

import json
import logging
import re
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Protocol

import httpx
from sqlalchemy import literal_column, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.errors import FieldError, RateFeedError, ValidationError
from app.models.currency_rate import RATE_FIELDS, SNAPSHOT_CONSTRAINT, CurrencyRate
from app.models.markup_fee import MarkupFee, TransactionType
from app.services.ledger_repository import LedgerRepository
from app.services.rate_engine import named_rates

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RATE_CACHE_PREFIX = "fx_rates:"
PAIR_RE = re.compile(r"^[A-Z]{3}/[A-Z]{3}$")

# Mock INR rates (deterministic for testing)
MOCK_RATES = {
    "USD": Decimal("83.1250"),
    "EUR": Decimal("90.4500"),
    "GBP": Decimal("105.7800"),
    "AED": Decimal("22.6300"),
    "SGD": Decimal("61.4200"),
}


def parse_pairs(currency_pairs: str | None) -> list[str]:
    """Split ``"USD/INR,EUR/INR"`` into normalized pairs; defaults from settings."""
    raw = currency_pairs or settings.DEFAULT_CURRENCY_PAIRS
    pairs = [p.strip().upper() for p in raw.split(",") if p.strip()]
    bad = [p for p in pairs if not PAIR_RE.match(p)]
    if bad or not pairs:
        raise ValidationError([
            FieldError("currency_pairs", f"Invalid currency pair(s): {', '.join(bad) or raw}"),
        ])
    return pairs


# ---------------------------------------------------------------------------
# Rate provider protocol
# ---------------------------------------------------------------------------


class RateProvider(Protocol):
    name: str

    async def fetch_rates(self, pairs: list[str]) -> dict[str, Decimal]:
        """Fetch {base currency: live rate} for each requested pair."""
        ...


class MockRateProvider:
    """Deterministic rates for dev/testing."""

    name = "mock"

    async def fetch_rates(self, pairs: list[str]) -> dict[str, Decimal]:
        bases = [p.split("/")[0] for p in pairs]
        return {base: MOCK_RATES[base] for base in bases if base in MOCK_RATES}


class FcsApiProvider:
    """Fetch live rates from an FCS-style forex API."""

    name = "fcsapi"

    async def fetch_rates(self, pairs: list[str]) -> dict[str, Decimal]:
        if not settings.FCSAPI_KEY:
            raise RateFeedError("FCSAPI_KEY is not configured")

        params = {"symbol": ",".join(pairs), "access_key": settings.FCSAPI_KEY}
        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.get(settings.FCSAPI_BASE, params=params)
            resp.raise_for_status()
            data = resp.json()

        items = data.get("response") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise RateFeedError("Invalid response format from rate feed")

        rates: dict[str, Decimal] = {}
        for item in items:
            symbol, close = item.get("s"), item.get("c")
            if not symbol or close is None:
                continue
            try:
                rates[symbol.split("/")[0].upper()] = Decimal(str(close))
            except InvalidOperation:
                logger.warning("Skipping unparseable rate %r for %s", close, symbol)
        return rates


# Module-level provider override (for tests)
_provider: RateProvider | None = None


def get_rate_provider() -> RateProvider:
    """Return the configured rate provider."""
    if _provider is not None:
        return _provider
    if settings.FX_RATE_MOCK:
        return MockRateProvider()
    return FcsApiProvider()


def set_rate_provider(provider: RateProvider | None) -> None:
    """Override the rate provider (for testing)."""
    global _provider
    _provider = provider


# ---------------------------------------------------------------------------
# RateService
# ---------------------------------------------------------------------------


class RateService:
    """Quotes per city from live rates and ledger markup configuration."""

    def __init__(self, session: AsyncSession, redis):
        self.session = session
        self.redis = redis
        self.ledger = LedgerRepository(session)

    # --- Live rates ---

    async def get_live_rates(self, pairs: list[str]) -> tuple[dict[str, Decimal], str]:
        """
        Live rates for *pairs*, from cache or a fresh fetch.

        Returns ``(rates, source)``. Raises RateFeedError if the feed fails.
        """
        cache_key = RATE_CACHE_PREFIX + ",".join(sorted(pairs))
        cached = await self.redis.get(cache_key)
        if cached is not None:
            payload = json.loads(cached)
            return {k: Decimal(v) for k, v in payload["rates"].items()}, payload["source"]

        provider = get_rate_provider()
        try:
            rates = await provider.fetch_rates(pairs)
        except RateFeedError:
            raise
        except (httpx.HTTPError, ValueError, KeyError) as exc:
            raise RateFeedError(f"Failed to fetch live rates: {exc}") from exc

        if not rates:
            raise RateFeedError(f"Rate feed returned no rates for {', '.join(pairs)}")

        await self.redis.setex(
            cache_key,
            settings.FX_RATE_CACHE_TTL_SECONDS,
            json.dumps({
                "rates": {k: str(v) for k, v in rates.items()},
                "source": provider.name,
            }),
        )
        return rates, provider.name

    async def _snapshot_rates(self, city_code: str, pairs: list[str]) -> dict[str, Decimal]:
        bases = [p.split("/")[0] for p in pairs]
        result = await self.session.execute(
            select(CurrencyRate).where(
                CurrencyRate.city == city_code,
                CurrencyRate.currency_code.in_(bases),
                CurrencyRate.is_active.is_(True),
            )
        )
        return {row.currency_code: row.live_rate for row in result.scalars().all()}

    async def _rates_with_fallback(
        self, city_code: str, pairs: list[str],
    ) -> tuple[dict[str, Decimal], str]:
        try:
            return await self.get_live_rates(pairs)
        except RateFeedError as exc:
            logger.warning("Live rate feed failed for %s, using snapshot: %s", city_code, exc.message)
            rates = await self._snapshot_rates(city_code, pairs)
            if not rates:
                raise
            return rates, "snapshot"

    async def _fees_by_currency(
        self, city_code: str,
    ) -> dict[str, dict[TransactionType, MarkupFee]]:
        # list_for_city returns oldest first, so the first row per type wins
        # the same way it does for stock lookups.
        fees: dict[str, dict[TransactionType, MarkupFee]] = defaultdict(dict)
        for fee in await self.ledger.list_for_city(city_code):
            fees[fee.currency_code].setdefault(fee.transaction_type, fee)
        return fees

    # --- Quotes ---

    async def get_quote(self, city_code: str, currency_pairs: str | None = None) -> dict:
        """
        Seven named rates per currency for *city_code*.

        Fresh live quotes are written to the snapshot table; snapshot
        fallbacks are not.
        """
        city = city_code.strip().upper()
        pairs = parse_pairs(currency_pairs)
        live_rates, source = await self._rates_with_fallback(city, pairs)
        fees = await self._fees_by_currency(city)
        timestamp = datetime.now(timezone.utc)

        quotes = {}
        for currency, live_rate in live_rates.items():
            rates = named_rates(live_rate, fees.get(currency, {}))
            if source != "snapshot":
                await self._upsert_snapshot(currency, city, live_rate, rates)
            quotes[currency] = {
                **rates,
                "live_rate": live_rate,
                "currency_code": currency,
                "city": city,
                "timestamp": timestamp,
            }

        await self.session.flush()
        return {
            "city": city,
            "source": source,
            "total_currencies": len(quotes),
            "timestamp": timestamp,
            "rates": quotes,
        }

    async def get_detailed_quote(self, city_code: str, currency_pairs: str | None = None) -> dict:
        """Quotes plus the per-transaction-type markup breakdown."""
        city = city_code.strip().upper()
        pairs = parse_pairs(currency_pairs)
        live_rates, source = await self._rates_with_fallback(city, pairs)
        fees = await self._fees_by_currency(city)
        timestamp = datetime.now(timezone.utc)

        details = {}
        for currency, live_rate in live_rates.items():
            currency_fees = fees.get(currency, {})
            rates = named_rates(live_rate, currency_fees)
            details[currency] = {
                "currency_code": currency,
                "city": city,
                "live_rate": live_rate,
                "markup_details": {
                    txn_type.value: _markup_detail(currency_fees.get(txn_type))
                    for txn_type in TransactionType
                },
                "calculated_rates": {
                    "buy": {k: rates[k] for k in ("bpc", "btt", "bdd", "bcn", "ncn_combo")},
                    "sell": {k: rates[k] for k in ("scn", "spc")},
                },
                "timestamp": timestamp,
            }

        return {
            "city": city,
            "source": source,
            "total_currencies": len(details),
            "has_markup": any(
                any(v is not None for v in d["markup_details"].values())
                for d in details.values()
            ),
            "timestamp": timestamp,
            "rates": details,
        }

    # --- Snapshots ---

    async def refresh_snapshots(self, city_code: str, currency_pairs: str | None = None) -> list[dict]:
        """
        Recompute and persist quotes for *city_code* from the live feed.

        Unlike ``get_quote`` this never falls back to snapshots; a feed
        failure raises RateFeedError.
        """
        city = city_code.strip().upper()
        pairs = parse_pairs(currency_pairs)
        live_rates, _ = await self.get_live_rates(pairs)
        fees = await self._fees_by_currency(city)

        results = []
        for currency, live_rate in live_rates.items():
            rates = named_rates(live_rate, fees.get(currency, {}))
            created = await self._upsert_snapshot(currency, city, live_rate, rates)
            results.append({
                "currency": currency,
                "action": "created" if created else "updated",
                "live_rate": live_rate,
                "rates": rates,
            })

        await self.session.flush()
        logger.info("Refreshed %d rate snapshot(s) for %s", len(results), city)
        return results

    async def _upsert_snapshot(
        self, currency: str, city: str, live_rate: Decimal, rates: dict[str, Decimal | None],
    ) -> bool:
        """
        Insert or overwrite the (currency, city) snapshot in one statement.

        ``INSERT ... ON CONFLICT DO UPDATE`` so concurrent first quotes for
        the same pair cannot both insert. Returns True if the row was created
        (``xmax`` is 0 only for a freshly inserted tuple).
        """
        values = {
            "live_rate": live_rate,
            "is_active": True,
            "updated_at": datetime.now(timezone.utc),
            **{name: rates.get(name) for name in RATE_FIELDS},
        }
        stmt = (
            pg_insert(CurrencyRate)
            .values(id=uuid.uuid4(), currency_code=currency, city=city, **values)
            .on_conflict_do_update(constraint=SNAPSHOT_CONSTRAINT, set_=values)
            .returning(literal_column("(xmax = 0)"))
        )
        result = await self.session.execute(stmt)
        return bool(result.scalar_one())


def _markup_detail(fee: MarkupFee | None) -> dict | None:
    if fee is None:
        return None
    return {
        "markup_value": fee.markup_value,
        "markup_value_sell": fee.markup_value_sell,
        "markup_type": fee.markup_type.value,
        "gst_percentage": fee.gst_percentage,
        "quantity": fee.quantity,
    }
