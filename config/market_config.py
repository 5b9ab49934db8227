# config/market_config.py
"""
Market-data settings, read from the environment (and .env when present).

Credentials are NOT validated here: FINNHUB_API_KEY is looked up at call time
so a missing key degrades the adapters instead of failing startup.
"""
from __future__ import annotations

import os
from typing import Dict, FrozenSet

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


FINNHUB_BASE_URL = os.getenv("FINNHUB_BASE_URL", "https://finnhub.io/api/v1")
FINNHUB_API_KEY_ENV = "FINNHUB_API_KEY"


def finnhub_api_key() -> str | None:
    return os.getenv(FINNHUB_API_KEY_ENV) or None


# -------------------------
# Cache TTLs (seconds)
# -------------------------
CACHE_TTLS: Dict[str, int] = {
    "quote": _env_int("TTL_QUOTE_SEC", 30),
    "extended_quote": _env_int("TTL_EXTENDED_QUOTE_SEC", 30),
    "news": _env_int("TTL_NEWS_SEC", 5 * 60),
    "market_news": _env_int("TTL_MARKET_NEWS_SEC", 5 * 60),
    "forex": _env_int("TTL_FOREX_SEC", 6 * 3600),
    "search": _env_int("TTL_SEARCH_SEC", 3600),
    "recommendations": _env_int("TTL_RECOMMENDATIONS_SEC", 3600),
    "price_target": _env_int("TTL_PRICE_TARGET_SEC", 24 * 3600),
    "profile": _env_int("TTL_PROFILE_SEC", 7 * 24 * 3600),
    "basic_financials": _env_int("TTL_BASIC_FINANCIALS_SEC", 6 * 3600),
    "earnings_calendar": _env_int("TTL_EARNINGS_CAL_SEC", 3600),
    "chart": _env_int("TTL_CHART_SEC", 3600),
    "dividend": _env_int("TTL_DIVIDEND_SEC", 6 * 3600),
    "analytics": _env_int("TTL_ANALYTICS_SEC", 3600),
}

# -------------------------
# Adapter timeouts used by the analytics fan-out (seconds)
# -------------------------
FUNDAMENTALS_TIMEOUT_SEC = _env_float("FUNDAMENTALS_TIMEOUT_SEC", 5.0)
CHART_TIMEOUT_SEC = _env_float("CHART_TIMEOUT_SEC", 8.0)

# HTTP client
HTTP_TIMEOUT_SEC = _env_float("HTTP_TIMEOUT_SEC", 5.0)
HTTP_CONNECT_TIMEOUT_SEC = _env_float("HTTP_CONNECT_TIMEOUT_SEC", 2.0)
HTTP_MAX_CONNECTIONS = _env_int("HTTP_MAX_CONNECTIONS", 20)

# -------------------------
# Benchmark + regional exchange rules
# -------------------------
BENCHMARK_SYMBOL = os.getenv("BENCHMARK_SYMBOL", "SPY").strip().upper()

# Symbols carrying this suffix are quoted through Yahoo in local currency.
REGIONAL_SUFFIX = os.getenv("REGIONAL_SUFFIX", ".TA").strip().upper()
FOREX_PAIR = os.getenv("FOREX_PAIR", "ILS=X").strip().upper()
FOREX_BASE = "USD"
FOREX_TARGET = os.getenv("FOREX_TARGET", "ILS").strip().upper()
FALLBACK_FX_RATE = _env_float("FALLBACK_FX_RATE", 3.65)
MINOR_UNIT_CURRENCIES: FrozenSet[str] = frozenset(
    c.strip().upper()
    for c in os.getenv("MINOR_UNIT_CURRENCIES", "ILA").split(",")
    if c.strip()
)

COMPANY_NEWS_DAYS = _env_int("COMPANY_NEWS_DAYS", 7)
COMPANY_NEWS_LIMIT = _env_int("COMPANY_NEWS_LIMIT", 10)
MARKET_NEWS_LIMIT = _env_int("MARKET_NEWS_LIMIT", 20)

# Treated as funds for analyst sentiment even when the profile lookup fails.
ETF_SYMBOLS: FrozenSet[str] = frozenset(
    {
        "GLD", "TLT", "IVV", "VTV", "XBI", "SPY", "QQQ", "VOO", "VTI", "ARKK",
        "VGT", "XLK", "XLF", "XLE", "IWM", "DIA", "EEM", "HYG", "AGG", "BND",
        "LQD", "IEFA", "VEA", "VWO", "SCHD", "JEPI",
    }
)
