# services/yahoo_service.py
from __future__ import annotations

import asyncio
import logging
import time
from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type

import pandas as pd
from yahooquery import Ticker

from schemas.market_data import ChartSeries, DividendInfo, ExtendedQuote, PriceTarget, Quote
from services.errors import InvalidSymbolData, UpstreamHTTPError
from utils.common_helpers import norm_symbol, safe_float
from utils.date_helpers import provider_date_iso

logger = logging.getLogger(__name__)

PROVIDER = "yahoo"
Json = Dict[str, Any]


# ---------------------------
# Retry helper
# ---------------------------
def retry(
    fn: Callable[[], Any],
    *,
    attempts: int = 2,
    delay: float = 0.4,
    backoff: float = 2.0,
    label: str = "yahoo",
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
) -> Any:
    """
    Retry a blocking call up to `attempts` times with exponential backoff.
    Raises UpstreamHTTPError (chained) if all attempts fail.
    """
    attempts = max(1, attempts)
    err: Optional[BaseException] = None

    for i in range(attempts):
        try:
            return fn()
        except exceptions as e:
            err = e
            if i < attempts - 1:
                time.sleep(delay * (backoff ** i))

    raise UpstreamHTTPError(PROVIDER, 0, f"{label}: retry failed after {attempts} attempts") from err


# ---------------------------
# Parsing helpers
# ---------------------------
def _ensure_symbol_dict(obj: Any, sym: str) -> Dict[str, Any]:
    """
    yahooquery answers with {symbol: {...}} on success and with strings
    ("No fundamentals data found ...") in place of the dict on failure.
    Normalize to the symbol's dict, or {}.
    """
    if isinstance(obj, dict):
        node = obj.get(sym)
        return node if isinstance(node, dict) else {}
    return {}


def _ticker(symbols: Iterable[str]) -> Ticker:
    return Ticker(list(symbols), asynchronous=False, formatted=False, validate=False)


def _to_extended(sym: str, q: Json) -> ExtendedQuote:
    return ExtendedQuote(
        symbol=sym,
        regular_market_price=safe_float(q.get("regularMarketPrice")),
        regular_market_previous_close=safe_float(q.get("regularMarketPreviousClose")),
        regular_market_change=safe_float(q.get("regularMarketChange")),
        regular_market_change_percent=safe_float(q.get("regularMarketChangePercent")),
        pre_market_price=safe_float(q.get("preMarketPrice")),
        pre_market_change=safe_float(q.get("preMarketChange")),
        pre_market_change_percent=safe_float(q.get("preMarketChangePercent")),
        post_market_price=safe_float(q.get("postMarketPrice")),
        post_market_change=safe_float(q.get("postMarketChange")),
        post_market_change_percent=safe_float(q.get("postMarketChangePercent")),
        market_state=q.get("marketState"),
        exchange_timezone_name=q.get("exchangeTimezoneName"),
        currency=q.get("currency"),
    )


def _history_frame(df: Any, sym: str) -> pd.DataFrame:
    """Flatten yahooquery history output to a frame with 'date' and 'close'."""
    if not isinstance(df, pd.DataFrame):
        # yahooquery returns a dict / str with an error message for unknown symbols
        raise InvalidSymbolData(sym, "no price history")
    if df.empty:
        return pd.DataFrame(columns=["date", "close"])

    df = df.reset_index()
    if "symbol" in df.columns:
        df = df[df["symbol"].astype(str).str.upper() == sym]
    if "index" in df.columns and "date" not in df.columns:
        df = df.rename(columns={"index": "date"})
    if "date" not in df.columns or "close" not in df.columns:
        raise InvalidSymbolData(sym, "history without date/close columns")

    df = df.assign(
        date=pd.to_datetime(df["date"], utc=True, errors="coerce"),
        close=pd.to_numeric(df["close"], errors="coerce"),
    )
    return df.dropna(subset=["date", "close"]).sort_values("date")


class YahooService:
    """
    Yahoo Finance through yahooquery. yahooquery is synchronous, so every call
    runs in a worker thread; parsing turns its loose dict/frame output into
    schemas.market_data models or raises InvalidSymbolData.
    """

    def __init__(self, *, attempts: int = 2, delay: float = 0.4):
        self.attempts = attempts
        self.delay = delay

    async def _run(self, label: str, fn: Callable[[], Any]) -> Any:
        return await asyncio.to_thread(retry, fn, attempts=self.attempts, delay=self.delay, label=label)

    # ---------- quotes ----------
    async def _raw_quotes(self, symbols: List[str]) -> Dict[str, Json]:
        raw = await self._run(f"quotes {','.join(symbols)}", lambda: _ticker(symbols).quotes)
        return raw if isinstance(raw, dict) else {}

    async def extended_quotes(self, symbols: Iterable[str]) -> Dict[str, ExtendedQuote]:
        """One upstream call for all symbols; unknown symbols are simply absent."""
        syms = [s for s in dict.fromkeys(norm_symbol(x) for x in symbols) if s]
        if not syms:
            return {}
        raw = await self._raw_quotes(syms)
        out: Dict[str, ExtendedQuote] = {}
        for sym in syms:
            q = _ensure_symbol_dict(raw, sym)
            if q:
                out[sym] = _to_extended(sym, q)
        return out

    async def quote(self, symbol: str) -> Quote:
        """Quote in the listing's own currency (e.g. ILA for Tel Aviv)."""
        sym = norm_symbol(symbol)
        q = _ensure_symbol_dict(await self._raw_quotes([sym]), sym)
        price = safe_float(q.get("regularMarketPrice"))
        if price is None:
            raise InvalidSymbolData(sym, "quote has no regularMarketPrice")
        ts = q.get("regularMarketTime")
        return Quote(
            symbol=sym,
            current_price=price,
            change=safe_float(q.get("regularMarketChange")),
            percent_change=safe_float(q.get("regularMarketChangePercent")),
            high=safe_float(q.get("regularMarketDayHigh")),
            low=safe_float(q.get("regularMarketDayLow")),
            open=safe_float(q.get("regularMarketOpen")),
            previous_close=safe_float(q.get("regularMarketPreviousClose")),
            timestamp=int(ts) if isinstance(ts, (int, float)) else None,
            currency=str(q.get("currency") or "USD"),
            source=PROVIDER,
        )

    async def forex_rate(self, pair: str) -> float:
        q = _ensure_symbol_dict(await self._raw_quotes([pair]), pair)
        rate = safe_float(q.get("regularMarketPrice"))
        if not rate or rate <= 0:
            raise InvalidSymbolData(pair, "no forex rate")
        return rate

    # ---------- history ----------
    async def history(self, symbol: str, start: date, end: Optional[date] = None) -> ChartSeries:
        sym = norm_symbol(symbol)
        kwargs = {"start": start.isoformat(), "interval": "1d"}
        if end is not None:
            # yahooquery's end bound is exclusive
            kwargs["end"] = (end + timedelta(days=1)).isoformat()
        df = await self._run(
            f"history {sym}",
            lambda: _ticker([sym]).history(**kwargs),
        )
        frame = _history_frame(df, sym)
        dates = [ts.date().isoformat() for ts in frame["date"]]
        closes = [float(c) for c in frame["close"]]
        # one bar per day; a live intraday row can duplicate the last date
        lookup = dict(zip(dates, closes))
        return ChartSeries(dates=list(lookup.keys()), closes=list(lookup.values()))

    # ---------- dividends ----------
    async def dividend_info(self, symbol: str) -> Optional[DividendInfo]:
        sym = norm_symbol(symbol)
        res = await self._run(
            f"dividends {sym}",
            lambda: _ticker([sym]).get_modules(["calendarEvents", "summaryDetail"]),
        )
        node = _ensure_symbol_dict(res, sym)
        cal = node.get("calendarEvents") if isinstance(node.get("calendarEvents"), dict) else {}
        det = node.get("summaryDetail") if isinstance(node.get("summaryDetail"), dict) else {}

        ex_date = provider_date_iso(cal.get("exDividendDate")) or provider_date_iso(det.get("exDividendDate"))
        if not ex_date:
            return None
        rate = (
            safe_float(det.get("dividendRate"))
            or safe_float(det.get("trailingAnnualDividendRate"))
            or 0.0
        )
        return DividendInfo(
            ex_date=ex_date,
            payment_date=provider_date_iso(cal.get("dividendDate")),
            dividend_rate=rate,
        )

    # ---------- analyst ----------
    async def price_target(self, symbol: str) -> Optional[PriceTarget]:
        sym = norm_symbol(symbol)
        res = await self._run(f"financialData {sym}", lambda: _ticker([sym]).financial_data)
        fin = _ensure_symbol_dict(res, sym)
        mean = safe_float(fin.get("targetMeanPrice"))
        if not mean or mean <= 0:
            return None
        return PriceTarget(
            target_high=safe_float(fin.get("targetHighPrice")),
            target_low=safe_float(fin.get("targetLowPrice")),
            target_mean=mean,
            target_median=safe_float(fin.get("targetMedianPrice")),
            source=PROVIDER,
        )
