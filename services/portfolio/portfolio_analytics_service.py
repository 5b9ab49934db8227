# services/portfolio/portfolio_analytics_service.py
"""
Portfolio analytics: health score, TWR benchmark, dividends and correlation
for one holdings list, computed from a single concurrent fan-out.

Every upstream call is bounded by its own timeout and fallback, so a slow or
broken provider degrades one input instead of failing the whole result. The
result is cached per (symbol set, holding count); a failed computation is
returned with `error` set and never cached.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional

from config.market_config import BENCHMARK_SYMBOL, CHART_TIMEOUT_SEC, FUNDAMENTALS_TIMEOUT_SEC
from schemas.holding import Holding
from schemas.market_data import ChartSeries
from schemas.portfolio_analytics import AnalyticsResult
from services.cache.cache_backend import ttl_for
from services.cache.cache_utils import cached_fetch
from services.errors import AggregationFailure
from services.market_data_service import MarketDataService
from services.portfolio.benchmark_service import build_benchmark, fetch_start
from services.portfolio.correlation_service import correlation_matrix
from services.portfolio.cost_basis import reconstruct_cost_basis
from services.portfolio.dividend_service import upcoming_dividends
from services.portfolio.portfolio_health_score_service import compute_health_score
from utils.async_helpers import bounded, gather_bounded

logger = logging.getLogger(__name__)


def analytics_cache_key(holdings: List[Holding]) -> str:
    syms = sorted(h.symbol for h in holdings)
    return f"analytics:{','.join(syms)}:{len(holdings)}"


def _should_cache_result(result: AnalyticsResult) -> bool:
    return result is not None and result.error is None


async def _gather_per_symbol(symbols: List[str], make, timeout: float, fallback, label: str) -> Dict:
    results = await gather_bounded([(make(s), timeout, fallback, f"{label} {s}") for s in symbols])
    return dict(zip(symbols, results))


async def _compute(holdings: List[Holding], market: MarketDataService, today: date) -> AnalyticsResult:
    basis = reconstruct_cost_basis(holdings, today)
    symbols = basis.symbols
    start = fetch_start(basis.inception, today)
    logger.info(
        "analytics: %d holdings, %d symbols, fetch_start=%s inception=%s",
        len(holdings), len(symbols), start, basis.inception,
    )

    financials, profiles, recs, dividends, charts, index_chart = await asyncio.gather(
        _gather_per_symbol(symbols, market.get_basic_financials, FUNDAMENTALS_TIMEOUT_SEC, None, "basic financials"),
        _gather_per_symbol(symbols, market.get_company_profile, FUNDAMENTALS_TIMEOUT_SEC, None, "profile"),
        _gather_per_symbol(symbols, market.get_analyst_recommendations, FUNDAMENTALS_TIMEOUT_SEC, [], "recommendations"),
        _gather_per_symbol(symbols, market.get_dividend_info, FUNDAMENTALS_TIMEOUT_SEC, None, "dividend info"),
        _gather_per_symbol(symbols, lambda s: market.get_chart(s, start), CHART_TIMEOUT_SEC, ChartSeries(), "chart"),
        bounded(
            market.get_chart(BENCHMARK_SYMBOL, start),
            timeout=CHART_TIMEOUT_SEC,
            fallback=ChartSeries(),
            label=f"index chart {BENCHMARK_SYMBOL}",
        ),
    )

    try:
        health = compute_health_score(basis.positions, charts, profiles, financials, recs)
        benchmark = build_benchmark(index_chart, charts, basis.events, basis.inception)
        return AnalyticsResult(
            health_score=health.health_score,
            components=health.components,
            portfolio_beta=health.portfolio_beta,
            max_sector_pct=health.max_sector_pct,
            benchmark_data=benchmark,
            dividends=upcoming_dividends(basis.positions, dividends, today),
            correlation_matrix=correlation_matrix(symbols, charts),
            last_updated=datetime.now(timezone.utc).isoformat(),
        )
    except Exception as e:
        raise AggregationFailure(f"{type(e).__name__}: {e}") from e


async def compute_portfolio_analytics(
    holdings: Iterable[Holding],
    market: MarketDataService,
    *,
    today: Optional[date] = None,
) -> AnalyticsResult:
    holdings = list(holdings)
    today = today or datetime.now(timezone.utc).date()
    key = analytics_cache_key(holdings)

    async def produce() -> AnalyticsResult:
        try:
            return await _compute(holdings, market, today)
        except Exception as e:
            logger.exception("portfolio analytics failed key=%s", key)
            return AnalyticsResult.failed(str(e) or type(e).__name__)

    return await cached_fetch(
        market.store,
        market.inflight,
        key,
        ttl_for("analytics"),
        produce,
        should_cache=_should_cache_result,
    )
