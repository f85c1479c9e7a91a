"""
Pydantic schemas for currency rate quotes and snapshot refreshes.

Rate payloads keep the snake_case names of the quoting desk
(``bpc``, ``ncn_combo``, ``live_rate`` ...).
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class CurrencyQuote(BaseModel):
    """Seven named rates for one currency in one city; None means no markup configured."""
    bpc: Decimal | None = Field(None, description="Buy prepaid card")
    btt: Decimal | None = Field(None, description="Buy wire transfer")
    bdd: Decimal | None = Field(None, description="Buy demand draft")
    bcn: Decimal | None = Field(None, description="Buy cash")
    ncn_combo: Decimal | None = Field(None, description="Buy cash + card combo")
    scn: Decimal | None = Field(None, description="Sell cash")
    spc: Decimal | None = Field(None, description="Sell card")
    live_rate: Decimal
    currency_code: str
    city: str
    timestamp: datetime


class QuoteResponse(BaseModel):
    city: str
    source: str
    total_currencies: int
    timestamp: datetime
    rates: dict[str, CurrencyQuote]


class MarkupDetail(BaseModel):
    markup_value: Decimal
    markup_value_sell: Decimal | None
    markup_type: str
    gst_percentage: Decimal
    quantity: Decimal


class BuyRates(BaseModel):
    bpc: Decimal | None
    btt: Decimal | None
    bdd: Decimal | None
    bcn: Decimal | None
    ncn_combo: Decimal | None


class SellRates(BaseModel):
    scn: Decimal | None
    spc: Decimal | None


class CalculatedRates(BaseModel):
    buy: BuyRates
    sell: SellRates


class DetailedCurrencyQuote(BaseModel):
    currency_code: str
    city: str
    live_rate: Decimal
    markup_details: dict[str, MarkupDetail | None]
    calculated_rates: CalculatedRates
    timestamp: datetime


class DetailedQuoteResponse(BaseModel):
    city: str
    source: str
    total_currencies: int
    has_markup: bool
    timestamp: datetime
    rates: dict[str, DetailedCurrencyQuote]


class RateRefreshRequest(BaseModel):
    city_code: str = Field(..., examples=["DEL"])
    currency_pairs: str | None = Field(None, examples=["USD/INR,EUR/INR"])


class RateRefreshItem(BaseModel):
    currency: str
    action: str
    live_rate: Decimal
    rates: dict[str, Decimal | None]


class RateRefreshResponse(BaseModel):
    city: str
    updated_currencies: int
    results: list[RateRefreshItem]
