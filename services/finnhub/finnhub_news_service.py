# services/finnhub/finnhub_news_service.py
from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Any, Dict, List, Optional

import finnhub
from pydantic import ValidationError

from config.market_config import (
    COMPANY_NEWS_DAYS,
    COMPANY_NEWS_LIMIT,
    MARKET_NEWS_LIMIT,
    finnhub_api_key,
)
from schemas.market_data import NewsItem
from services.errors import ConfigurationError, UpstreamHTTPError
from utils.common_helpers import norm_symbol

logger = logging.getLogger(__name__)


# -------- Internal helpers --------
def _unix_to_iso(ts: Any) -> Optional[str]:
    try:
        return dt.datetime.fromtimestamp(float(ts), tz=dt.timezone.utc).isoformat().replace("+00:00", "Z")
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _normalize_one(raw: Dict[str, Any]) -> Optional[NewsItem]:
    # Finnhub news schema:
    # {headline, url, summary, datetime, source, image, related, category, ...}
    try:
        return NewsItem(
            title=raw.get("headline") or "",
            url=raw.get("url") or "",
            snippet=raw.get("summary") or None,
            published_at=_unix_to_iso(raw.get("datetime")),
            source=raw.get("source") or None,
            image=raw.get("image") or None,
            related=raw.get("related") or None,
        )
    except ValidationError:
        return None


def _normalize(data: Any, limit: int) -> List[NewsItem]:
    if not isinstance(data, list):
        return []
    items = [n for n in (_normalize_one(d) for d in data if isinstance(d, dict) and d.get("url")) if n]
    # newest first
    items.sort(key=lambda x: x.published_at or "", reverse=True)
    return items[:limit] if limit else items


# -------- Sync workers (called inside a thread) --------
def _fetch_company_news_blocking(symbol: str, frm: str, to: str, api_key: str) -> Any:
    client = finnhub.Client(api_key=api_key)
    return client.company_news(symbol, _from=frm, to=to)


def _fetch_general_news_blocking(category: str, api_key: str) -> Any:
    client = finnhub.Client(api_key=api_key)
    # category: general, crypto, forex, merger
    return client.general_news(category or "general", min_id=0)


class FinnhubNewsService:
    """Company and market news through the finnhub-python SDK, off the event loop."""

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key

    def _require_api_key(self) -> str:
        key = self._api_key or finnhub_api_key()
        if not key:
            logger.error("FINNHUB_API_KEY is not set")
            raise ConfigurationError("FINNHUB_API_KEY not configured")
        return key

    async def _call(self, label: str, fn, *args) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except finnhub.FinnhubAPIException as e:
            raise UpstreamHTTPError("finnhub", getattr(e, "status_code", 0) or 0, label) from e
        except finnhub.FinnhubRequestException as e:
            raise UpstreamHTTPError("finnhub", 0, f"{label}: {e}") from e

    async def company_news(
        self,
        symbol: str,
        *,
        days_back: int = COMPANY_NEWS_DAYS,
        limit: int = COMPANY_NEWS_LIMIT,
        today: Optional[dt.date] = None,
    ) -> List[NewsItem]:
        sym = norm_symbol(symbol)
        if not sym:
            return []
        api_key = self._require_api_key()
        today = today or dt.datetime.now(dt.timezone.utc).date()
        frm = (today - dt.timedelta(days=days_back)).strftime("%Y-%m-%d")
        to = today.strftime("%Y-%m-%d")

        data = await self._call(f"company_news {sym}", _fetch_company_news_blocking, sym, frm, to, api_key)
        return _normalize(data, limit)

    async def market_news(self, category: str = "general", *, limit: int = MARKET_NEWS_LIMIT) -> List[NewsItem]:
        api_key = self._require_api_key()
        data = await self._call(f"general_news {category}", _fetch_general_news_blocking, category, api_key)
        return _normalize(data, limit)
