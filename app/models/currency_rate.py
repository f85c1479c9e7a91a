"""
CurrencyRate model — last computed quote set per (currency, city).

Written every time quotes are computed from the live feed and read back
as a fallback when the feed is unavailable. Never holds stock.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

RATE_FIELDS = ("bpc", "btt", "bdd", "bcn", "ncn_combo", "scn", "spc")
SNAPSHOT_CONSTRAINT = "uq_currency_rates_currency_city"


class CurrencyRate(Base):
    __tablename__ = "currency_rates"
    __table_args__ = (
        UniqueConstraint("currency_code", "city", name=SNAPSHOT_CONSTRAINT),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    city: Mapped[str] = mapped_column(String(3), nullable=False, index=True)

    live_rate: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=4), nullable=False)

    # Buy rates
    bpc: Mapped[Decimal | None] = mapped_column(Numeric(precision=12, scale=4))        # prepaid card
    btt: Mapped[Decimal | None] = mapped_column(Numeric(precision=12, scale=4))        # wire transfer
    bdd: Mapped[Decimal | None] = mapped_column(Numeric(precision=12, scale=4))        # demand draft
    bcn: Mapped[Decimal | None] = mapped_column(Numeric(precision=12, scale=4))        # cash
    ncn_combo: Mapped[Decimal | None] = mapped_column(Numeric(precision=12, scale=4))  # cash + card
    # Sell rates
    scn: Mapped[Decimal | None] = mapped_column(Numeric(precision=12, scale=4))        # sell cash
    spc: Mapped[Decimal | None] = mapped_column(Numeric(precision=12, scale=4))        # sell card

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<CurrencyRate {self.currency_code}/{self.city} live={self.live_rate}>"
