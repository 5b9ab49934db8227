# services/market_data_service.py
"""
Cached, deduplicated access to every upstream market-data provider.

Each public method is an adapter: cache check, in-flight dedupe, provider
call, write-through, and a documented fallback when the provider fails. Only
ConfigurationError is allowed out of get_quote; everything else degrades.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

from config.market_config import (
    FALLBACK_FX_RATE,
    FOREX_BASE,
    FOREX_PAIR,
    FOREX_TARGET,
    MINOR_UNIT_CURRENCIES,
    REGIONAL_SUFFIX,
)
from schemas.market_data import (
    BasicFinancials,
    ChartSeries,
    CompanyProfile,
    DividendInfo,
    EarningsEvent,
    ExtendedQuote,
    ForexRate,
    NewsItem,
    PriceTarget,
    Quote,
    RecommendationTrend,
    SymbolInsights,
    SymbolMatch,
)
from services.cache.cache_backend import CacheStore, batch_key, ttl_for
from services.cache.cache_utils import cached_fetch, should_cache_non_empty, should_cache_present
from services.cache.inflight import InFlightCoordinator
from services.errors import ConfigurationError
from services.finnhub.finnhub_news_service import FinnhubNewsService
from services.finnhub.finnhub_service import FinnhubService
from services.yahoo_service import YahooService
from utils.common_helpers import norm_symbol

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _unique_symbols(symbols: Iterable[str]) -> List[str]:
    return [s for s in dict.fromkeys(norm_symbol(x) for x in symbols) if s]


class MarketDataService:
    def __init__(
        self,
        store: Optional[CacheStore] = None,
        inflight: Optional[InFlightCoordinator] = None,
        finnhub: Optional[FinnhubService] = None,
        yahoo: Optional[YahooService] = None,
        news: Optional[FinnhubNewsService] = None,
    ):
        self.store = store if store is not None else CacheStore()
        self.inflight = inflight if inflight is not None else InFlightCoordinator()
        self.finnhub = finnhub if finnhub is not None else FinnhubService()
        self.yahoo = yahoo if yahoo is not None else YahooService()
        self.news = news if news is not None else FinnhubNewsService()

    # -----------------------
    # plumbing
    # -----------------------

    async def _cached(
        self,
        category: str,
        key: str,
        producer: Callable[[], Awaitable[T]],
        *,
        should_cache: Callable[[Any], bool] = should_cache_present,
    ) -> T:
        return await cached_fetch(
            self.store, self.inflight, key, ttl_for(category), producer, should_cache=should_cache
        )

    @staticmethod
    async def _guarded(label: str, aw: Awaitable[T], fallback: T) -> T:
        try:
            return await aw
        except Exception as e:
            logger.warning("%s failed (%s: %s); using fallback", label, type(e).__name__, e)
            return fallback

    # -----------------------
    # Quotes
    # -----------------------

    async def get_quote(self, symbol: str) -> Optional[Quote]:
        sym = norm_symbol(symbol)
        if not sym:
            return None

        async def produce() -> Quote:
            if sym.endswith(REGIONAL_SUFFIX):
                return await self._regional_quote(sym)
            return await self.finnhub.quote(sym)

        try:
            return await self._cached("quote", f"quote:{sym}", produce)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.warning("quote %s failed (%s: %s)", sym, type(e).__name__, e)
            return None

    async def _regional_quote(self, sym: str) -> Quote:
        """Yahoo quote converted to USD: minor units / 100, then / USD->local rate."""
        local, fx = await asyncio.gather(self.yahoo.quote(sym), self.get_forex_rate())
        currency = (local.currency or "").upper()
        if currency == FOREX_BASE:
            return local

        divisor = 100.0 if currency in MINOR_UNIT_CURRENCIES else 1.0

        def conv(v: Optional[float]) -> Optional[float]:
            return None if v is None else v / divisor / fx.rate

        previous_close = local.previous_close
        if previous_close is None and local.current_price is not None and local.change is not None:
            previous_close = local.current_price - local.change

        return Quote(
            symbol=sym,
            current_price=conv(local.current_price),
            change=conv(local.change),
            percent_change=local.percent_change,
            high=conv(local.high),
            low=conv(local.low),
            open=conv(local.open),
            previous_close=conv(previous_close),
            timestamp=local.timestamp,
            currency=FOREX_BASE,
            source=local.source,
        )

    async def get_extended_quote(self, symbol: str) -> Optional[ExtendedQuote]:
        sym = norm_symbol(symbol)
        if not sym:
            return None

        async def produce() -> Optional[ExtendedQuote]:
            quotes = await self.yahoo.extended_quotes([sym])
            return quotes.get(sym)

        return await self._guarded(
            f"extended quote {sym}",
            self._cached("extended_quote", f"extended_quote:{sym}", produce),
            None,
        )

    async def get_batch_quotes(self, symbols: Iterable[str]) -> Dict[str, ExtendedQuote]:
        """
        Cached symbols are served as-is; the rest are fetched in ONE upstream
        call and cached per symbol. On failure only the cached subset returns.
        """
        syms = _unique_symbols(symbols)
        ttl = ttl_for("extended_quote")

        found: Dict[str, ExtendedQuote] = {}
        missing: List[str] = []
        for s in syms:
            hit = self.store.get(f"extended_quote:{s}", ttl)
            if hit is not None:
                found[s] = hit
            else:
                missing.append(s)

        if missing:

            async def produce() -> Dict[str, ExtendedQuote]:
                fresh = await self.yahoo.extended_quotes(missing)
                for s, q in fresh.items():
                    self.store.set(f"extended_quote:{s}", q)
                return fresh

            fresh = await self._guarded(
                f"batch quotes ({len(missing)} symbols)",
                self.inflight.dedupe(batch_key("batch_extended", missing), produce),
                {},
            )
            found.update({s: fresh[s] for s in missing if s in fresh})

        return {s: found[s] for s in syms if s in found}

    # -----------------------
    # Search / news / forex
    # -----------------------

    async def search_symbols(self, query: str) -> List[SymbolMatch]:
        q = (query or "").strip()
        if not q:
            return []
        return await self._guarded(
            f"search '{q}'",
            self._cached("search", f"search:{q.lower()}", lambda: self.finnhub.search(q)),
            [],
        )

    async def get_company_news(self, symbol: str) -> List[NewsItem]:
        sym = norm_symbol(symbol)
        if not sym:
            return []
        return await self._guarded(
            f"company news {sym}",
            self._cached("news", f"news:{sym}", lambda: self.news.company_news(sym)),
            [],
        )

    async def get_market_news(self, category: str = "general") -> List[NewsItem]:
        return await self._guarded(
            f"market news {category}",
            self._cached("market_news", f"market_news:{category}", lambda: self.news.market_news(category)),
            [],
        )

    async def get_forex_rate(self) -> ForexRate:
        async def produce() -> ForexRate:
            rate = await self.yahoo.forex_rate(FOREX_PAIR)
            return ForexRate(rate=rate, source="yahoo", base=FOREX_BASE, target=FOREX_TARGET, last_update=_now_iso())

        try:
            return await self._cached("forex", f"forex:{FOREX_BASE}_{FOREX_TARGET}", produce)
        except Exception as e:
            logger.warning("forex %s failed (%s: %s); using fallback rate %s", FOREX_PAIR, type(e).__name__, e, FALLBACK_FX_RATE)
            # returned, never cached: the next call retries upstream
            return ForexRate(
                rate=FALLBACK_FX_RATE,
                source="fallback",
                base=FOREX_BASE,
                target=FOREX_TARGET,
                last_update=_now_iso(),
            )

    # -----------------------
    # Fundamentals
    # -----------------------

    async def get_analyst_recommendations(self, symbol: str) -> List[RecommendationTrend]:
        sym = norm_symbol(symbol)
        return await self._guarded(
            f"recommendations {sym}",
            self._cached(
                "recommendations",
                f"recommendations:{sym}",
                lambda: self.finnhub.recommendations(sym),
                should_cache=should_cache_non_empty,
            ),
            [],
        )

    async def get_price_target(self, symbol: str) -> Optional[PriceTarget]:
        sym = norm_symbol(symbol)

        async def produce() -> Optional[PriceTarget]:
            target = await self._guarded(f"finnhub price target {sym}", self.finnhub.price_target(sym), None)
            if target is not None:
                return target
            logger.debug("price target %s: falling back to yahoo financialData", sym)
            return await self.yahoo.price_target(sym)

        return await self._guarded(
            f"price target {sym}",
            self._cached("price_target", f"price_target:{sym}", produce),
            None,
        )

    async def get_company_profile(self, symbol: str) -> Optional[CompanyProfile]:
        sym = norm_symbol(symbol)
        return await self._guarded(
            f"profile {sym}",
            self._cached("profile", f"profile:{sym}", lambda: self.finnhub.company_profile(sym)),
            None,
        )

    async def get_basic_financials(self, symbol: str) -> Optional[BasicFinancials]:
        sym = norm_symbol(symbol)
        return await self._guarded(
            f"basic financials {sym}",
            self._cached("basic_financials", f"basic_financials:{sym}", lambda: self.finnhub.basic_financials(sym)),
            None,
        )

    async def get_earnings_calendar(
        self, from_date: Optional[str] = None, to_date: Optional[str] = None
    ) -> List[EarningsEvent]:
        today = datetime.now(timezone.utc).date()
        frm = from_date or today.isoformat()
        to = to_date or (today + timedelta(days=7)).isoformat()
        return await self._guarded(
            f"earnings calendar {frm}..{to}",
            self._cached(
                "earnings_calendar",
                f"earnings_calendar:{frm}:{to}",
                lambda: self.finnhub.earnings_calendar(frm, to),
            ),
            [],
        )

    async def get_batch_insights(self, symbols: Iterable[str]) -> Dict[str, SymbolInsights]:
        syms = _unique_symbols(symbols)

        async def one(sym: str) -> SymbolInsights:
            recs, target, profile = await asyncio.gather(
                self.get_analyst_recommendations(sym),
                self.get_price_target(sym),
                self.get_company_profile(sym),
            )
            return SymbolInsights(symbol=sym, recommendations=recs, price_target=target, profile=profile)

        results = await asyncio.gather(*(one(s) for s in syms))
        return {r.symbol: r for r in results}

    # -----------------------
    # Charts / dividends
    # -----------------------

    async def get_chart(self, symbol: str, start: date) -> ChartSeries:
        """Daily closes since `start`. Never raises: failures give an empty series."""
        sym = norm_symbol(symbol)
        if not sym:
            return ChartSeries()
        return await self._guarded(
            f"chart {sym}",
            self._cached(
                "chart",
                f"chart:{sym}:{start.isoformat()}",
                lambda: self.yahoo.history(sym, start),
                should_cache=should_cache_non_empty,
            ),
            ChartSeries(),
        )

    async def get_history(self, symbol: str, start: date, end: date) -> ChartSeries:
        """Daily closes in [start, end]; empty series on failure."""
        sym = norm_symbol(symbol)
        if not sym or start > end:
            return ChartSeries()
        return await self._guarded(
            f"history {sym}",
            self._cached(
                "chart",
                f"history:{sym}:{start.isoformat()}:{end.isoformat()}",
                lambda: self.yahoo.history(sym, start, end),
                should_cache=should_cache_non_empty,
            ),
            ChartSeries(),
        )

    async def get_dividend_info(self, symbol: str) -> Optional[DividendInfo]:
        sym = norm_symbol(symbol)
        return await self._guarded(
            f"dividend info {sym}",
            self._cached("dividend", f"dividend:{sym}", lambda: self.yahoo.dividend_info(sym)),
            None,
        )
