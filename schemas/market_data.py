# schemas/market_data.py
"""
Typed shapes for everything the market-data adapters hand back.

Provider payloads are parsed into these models inside the provider modules;
a payload that cannot be parsed (or that signals an unknown symbol) becomes
InvalidSymbolData there, never a half-filled model here.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Quote(CamelModel):
    symbol: str
    current_price: float
    change: Optional[float] = None
    percent_change: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    open: Optional[float] = None
    previous_close: Optional[float] = None
    timestamp: Optional[int] = None
    currency: str = "USD"
    source: str = "finnhub"


class ExtendedQuote(CamelModel):
    symbol: str
    regular_market_price: Optional[float] = None
    regular_market_previous_close: Optional[float] = None
    regular_market_change: Optional[float] = None
    regular_market_change_percent: Optional[float] = None
    pre_market_price: Optional[float] = None
    pre_market_change: Optional[float] = None
    pre_market_change_percent: Optional[float] = None
    post_market_price: Optional[float] = None
    post_market_change: Optional[float] = None
    post_market_change_percent: Optional[float] = None
    market_state: Optional[str] = None
    exchange_timezone_name: Optional[str] = None
    currency: Optional[str] = None


class SymbolMatch(CamelModel):
    symbol: str
    description: str
    display_symbol: Optional[str] = None
    type: Optional[str] = None


class NewsItem(CamelModel):
    title: str
    url: str
    snippet: Optional[str] = None
    published_at: Optional[str] = None  # ISO8601 UTC
    source: Optional[str] = None
    image: Optional[str] = None
    related: Optional[str] = None


class ForexRate(CamelModel):
    rate: float
    source: str
    base: str = "USD"
    target: str = "ILS"
    last_update: str


class RecommendationTrend(CamelModel):
    """Analyst rating counts for one period (Finnhub /stock/recommendation row)."""

    period: str
    strong_buy: int = 0
    buy: int = 0
    hold: int = 0
    sell: int = 0
    strong_sell: int = 0

    @property
    def total(self) -> int:
        return self.strong_buy + self.buy + self.hold + self.sell + self.strong_sell

    @property
    def buy_ratio(self) -> Optional[float]:
        if self.total <= 0:
            return None
        return (self.buy + self.strong_buy) / self.total


class PriceTarget(CamelModel):
    target_high: Optional[float] = None
    target_low: Optional[float] = None
    target_mean: float
    target_median: Optional[float] = None
    last_updated: Optional[str] = None
    source: str = "finnhub"


ETF_INDUSTRY = "Exchange Traded Fund"


class CompanyProfile(CamelModel):
    symbol: str
    name: Optional[str] = None
    country: Optional[str] = None
    currency: Optional[str] = None
    exchange: Optional[str] = None
    industry: Optional[str] = None  # Finnhub "finnhubIndustry"
    market_cap: Optional[float] = None
    ipo: Optional[str] = None
    weburl: Optional[str] = None
    logo: Optional[str] = None

    @property
    def is_etf(self) -> bool:
        return (self.industry or "") == ETF_INDUSTRY


class BasicFinancials(CamelModel):
    symbol: str
    beta: Optional[float] = None
    week52_high: Optional[float] = None
    week52_low: Optional[float] = None
    week52_low_date: Optional[str] = None
    dividend_yield: Optional[float] = None
    metric: Dict[str, Any] = Field(default_factory=dict)


class EarningsEvent(CamelModel):
    symbol: str
    date: str
    hour: Optional[str] = None  # bmo / amc / dmh
    quarter: Optional[int] = None
    year: Optional[int] = None
    eps_estimate: Optional[float] = None
    eps_actual: Optional[float] = None
    revenue_estimate: Optional[float] = None
    revenue_actual: Optional[float] = None


class ChartSeries(CamelModel):
    """Daily closes; `dates[i]` is the ISO date of `closes[i]`."""

    dates: List[str] = Field(default_factory=list)
    closes: List[float] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.dates

    @property
    def last_close(self) -> Optional[float]:
        return self.closes[-1] if self.closes else None

    def as_lookup(self) -> Dict[str, float]:
        return dict(zip(self.dates, self.closes))


class SymbolInsights(CamelModel):
    symbol: str
    recommendations: List[RecommendationTrend] = Field(default_factory=list)
    price_target: Optional[PriceTarget] = None
    profile: Optional[CompanyProfile] = None


class DividendInfo(CamelModel):
    ex_date: str
    payment_date: Optional[str] = None
    dividend_rate: float = 0.0
