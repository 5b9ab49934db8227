# services/errors.py
from __future__ import annotations

from typing import Optional


class MarketDataError(Exception):
    """Domain-level error for the market-data and analytics services."""


class ConfigurationError(MarketDataError):
    """A required setting (e.g. FINNHUB_API_KEY) is missing."""


class UpstreamHTTPError(MarketDataError):
    def __init__(self, provider: str, status_code: int, detail: str = ""):
        self.provider = provider
        self.status_code = status_code
        msg = f"{provider} request failed: {status_code}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class UpstreamTimeout(MarketDataError):
    def __init__(self, label: str, timeout: Optional[float] = None):
        self.label = label
        self.timeout = timeout
        if timeout is None:
            super().__init__(f"{label} timed out")
        else:
            super().__init__(f"{label} timed out after {timeout:.1f}s")


class InvalidSymbolData(MarketDataError):
    """Provider answered, but the payload says the symbol is unknown or delisted."""

    def __init__(self, symbol: str, reason: str = "no data"):
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"Invalid symbol or no data: {symbol} ({reason})")


class AggregationFailure(MarketDataError):
    """Uncaught error while assembling the portfolio analytics result."""
