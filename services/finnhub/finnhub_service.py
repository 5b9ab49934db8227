# services/finnhub/finnhub_service.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from config.market_config import FINNHUB_BASE_URL, HTTP_TIMEOUT_SEC, finnhub_api_key
from schemas.market_data import (
    BasicFinancials,
    CompanyProfile,
    EarningsEvent,
    PriceTarget,
    Quote,
    RecommendationTrend,
    SymbolMatch,
)
from services.errors import (
    ConfigurationError,
    InvalidSymbolData,
    UpstreamHTTPError,
    UpstreamTimeout,
)
from utils.common_helpers import norm_symbol, safe_float, safe_json

logger = logging.getLogger(__name__)

PROVIDER = "finnhub"
_FORBIDDEN = object()


class FinnhubService:
    """
    Async adapter for the Finnhub REST API.

    Every method either returns a parsed model or raises one of the
    services.errors types; nothing here caches or swallows errors. Fallback
    policy lives one level up, in MarketDataService.

    The API key is resolved on every call, so a missing FINNHUB_API_KEY shows
    up as ConfigurationError at request time instead of at startup.
    """

    BASE_URL = FINNHUB_BASE_URL

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = HTTP_TIMEOUT_SEC,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key
        self.timeout = timeout
        self._shared_client = client

    @asynccontextmanager
    async def _client(self):
        if self._shared_client is not None:
            yield self._shared_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as c:
            yield c

    def _require_key(self) -> str:
        key = self._api_key or finnhub_api_key()
        if not key:
            logger.error("FINNHUB_API_KEY is not set")
            raise ConfigurationError("FINNHUB_API_KEY not configured")
        return key

    async def _get(self, path: str, *, allow_forbidden: bool = False, **params: Any) -> Any:
        """
        GET {BASE_URL}{path}. Returns decoded JSON, or the _FORBIDDEN sentinel
        when allow_forbidden and Finnhub answers 403 (premium-only endpoint).
        """
        token = self._require_key()
        async with self._client() as c:
            try:
                r = await c.get(f"{self.BASE_URL}{path}", params={**params, "token": token})
            except httpx.TimeoutException as e:
                raise UpstreamTimeout(f"finnhub {path}", self.timeout) from e
            except httpx.HTTPError as e:
                raise UpstreamHTTPError(PROVIDER, 0, f"{path}: {type(e).__name__}") from e

        if r.status_code == 403 and allow_forbidden:
            logger.warning("Finnhub premium required for %s; treating as no data", path)
            return _FORBIDDEN
        if not r.is_success:
            raise UpstreamHTTPError(PROVIDER, r.status_code, path)
        return safe_json(r)

    # -----------------------
    # Quote
    # -----------------------

    async def quote(self, symbol: str) -> Quote:
        sym = norm_symbol(symbol)
        if not sym:
            raise InvalidSymbolData(symbol, "empty symbol")

        data = await self._get("/quote", symbol=sym)
        if not isinstance(data, dict):
            raise InvalidSymbolData(sym, "quote payload is not an object")

        price = safe_float(data.get("c"))
        prev = safe_float(data.get("pc"))
        if price is None:
            raise InvalidSymbolData(sym, "quote has no current price")
        # Finnhub answers unknown symbols with all-zero quotes
        if price == 0 and not prev:
            raise InvalidSymbolData(sym, "all-zero quote")

        ts = data.get("t")
        return Quote(
            symbol=sym,
            current_price=price,
            change=safe_float(data.get("d")),
            percent_change=safe_float(data.get("dp")),
            high=safe_float(data.get("h")),
            low=safe_float(data.get("l")),
            open=safe_float(data.get("o")),
            previous_close=prev,
            timestamp=int(ts) if isinstance(ts, (int, float)) else None,
            currency="USD",
            source=PROVIDER,
        )

    # -----------------------
    # Search
    # -----------------------

    async def search(self, query: str) -> List[SymbolMatch]:
        q = (query or "").strip()
        if not q:
            return []
        data = await self._get("/search", q=q)
        results = data.get("result") if isinstance(data, dict) else None
        if not isinstance(results, list):
            return []

        out: List[SymbolMatch] = []
        for item in results:
            if not isinstance(item, dict) or not item.get("symbol") or not item.get("description"):
                continue
            out.append(
                SymbolMatch(
                    symbol=str(item["symbol"]),
                    description=str(item["description"]),
                    display_symbol=item.get("displaySymbol"),
                    type=item.get("type"),
                )
            )
        return out

    # -----------------------
    # Fundamentals
    # -----------------------

    async def recommendations(self, symbol: str) -> List[RecommendationTrend]:
        """Latest period first. 403 (premium) -> []."""
        sym = norm_symbol(symbol)
        data = await self._get("/stock/recommendation", allow_forbidden=True, symbol=sym)
        if data is _FORBIDDEN:
            return []
        if not isinstance(data, list):
            raise InvalidSymbolData(sym, "recommendation payload is not a list")

        rows: List[RecommendationTrend] = []
        for row in data:
            if not isinstance(row, dict):
                continue
            try:
                rows.append(
                    RecommendationTrend(
                        period=str(row.get("period") or ""),
                        strong_buy=int(row.get("strongBuy") or 0),
                        buy=int(row.get("buy") or 0),
                        hold=int(row.get("hold") or 0),
                        sell=int(row.get("sell") or 0),
                        strong_sell=int(row.get("strongSell") or 0),
                    )
                )
            except (TypeError, ValueError, ValidationError):
                logger.debug("skipping malformed recommendation row for %s: %r", sym, row)
        rows.sort(key=lambda r: r.period, reverse=True)
        return rows

    async def price_target(self, symbol: str) -> Optional[PriceTarget]:
        """None when Finnhub has no usable target (it reports missing data as zeros)."""
        sym = norm_symbol(symbol)
        data = await self._get("/stock/price-target", allow_forbidden=True, symbol=sym)
        if data is _FORBIDDEN or not isinstance(data, dict):
            return None
        mean = safe_float(data.get("targetMean"))
        if not mean or mean <= 0:
            return None
        return PriceTarget(
            target_high=safe_float(data.get("targetHigh")),
            target_low=safe_float(data.get("targetLow")),
            target_mean=mean,
            target_median=safe_float(data.get("targetMedian")),
            last_updated=data.get("lastUpdated"),
            source=PROVIDER,
        )

    async def company_profile(self, symbol: str) -> Optional[CompanyProfile]:
        sym = norm_symbol(symbol)
        data = await self._get("/stock/profile2", allow_forbidden=True, symbol=sym)
        if data is _FORBIDDEN:
            return None
        if not isinstance(data, dict) or not data:
            # {} is Finnhub's answer for unknown tickers
            raise InvalidSymbolData(sym, "empty company profile")
        return CompanyProfile(
            symbol=str(data.get("ticker") or sym),
            name=data.get("name"),
            country=data.get("country"),
            currency=data.get("currency"),
            exchange=data.get("exchange"),
            industry=data.get("finnhubIndustry"),
            market_cap=safe_float(data.get("marketCapitalization")),
            ipo=data.get("ipo"),
            weburl=data.get("weburl"),
            logo=data.get("logo"),
        )

    async def basic_financials(self, symbol: str) -> Optional[BasicFinancials]:
        sym = norm_symbol(symbol)
        data = await self._get("/stock/metric", allow_forbidden=True, symbol=sym, metric="all")
        if data is _FORBIDDEN:
            return None
        metric = data.get("metric") if isinstance(data, dict) else None
        if not isinstance(metric, dict):
            raise InvalidSymbolData(sym, "basic financials without metric block")
        return BasicFinancials(
            symbol=sym,
            beta=safe_float(metric.get("beta")),
            week52_high=safe_float(metric.get("52WeekHigh")),
            week52_low=safe_float(metric.get("52WeekLow")),
            week52_low_date=metric.get("52WeekLowDate"),
            dividend_yield=safe_float(metric.get("dividendYieldIndicatedAnnual")),
            metric=metric,
        )

    async def earnings_calendar(self, from_date: str, to_date: str) -> List[EarningsEvent]:
        data = await self._get("/calendar/earnings", **{"from": from_date, "to": to_date})
        items = data.get("earningsCalendar") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []

        out: List[EarningsEvent] = []
        for it in items:
            if not isinstance(it, dict) or not it.get("symbol") or not it.get("date"):
                continue
            try:
                out.append(
                    EarningsEvent(
                        symbol=str(it["symbol"]).upper(),
                        date=str(it["date"]),
                        hour=it.get("hour") or None,
                        quarter=it.get("quarter"),
                        year=it.get("year"),
                        eps_estimate=safe_float(it.get("epsEstimate")),
                        eps_actual=safe_float(it.get("epsActual")),
                        revenue_estimate=safe_float(it.get("revenueEstimate")),
                        revenue_actual=safe_float(it.get("revenueActual")),
                    )
                )
            except ValidationError:
                continue
        return out


