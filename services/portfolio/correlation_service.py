# services/portfolio/correlation_service.py
from __future__ import annotations

import math
from typing import List, Mapping, Optional, Sequence

import pandas as pd

from schemas.market_data import ChartSeries
from schemas.portfolio_analytics import CorrelationMatrix
from utils.common_helpers import round_half_up

LOOKBACK_CLOSES = 30
MIN_OBSERVATIONS = 5


def daily_returns(closes: Sequence[float], lookback: int = LOOKBACK_CLOSES) -> List[float]:
    """Simple returns over the last `lookback` closes; a non-positive previous close yields no return."""
    recent = pd.Series(list(closes[-lookback:]), dtype="float64")
    if len(recent) < 2:
        return []
    prev = recent.shift(1)
    rets = (recent - prev) / prev
    return rets[1:][prev[1:] > 0].tolist()


def pearson(a: Sequence[float], b: Sequence[float]) -> Optional[float]:
    """Pearson r over the most recent returns both series share, aligned at the end."""
    n = min(len(a), len(b))
    if n < MIN_OBSERVATIONS:
        return None
    x = pd.Series(list(a[-n:]), dtype="float64")
    y = pd.Series(list(b[-n:]), dtype="float64")
    dx = x - x.mean()
    dy = y - y.mean()
    den = math.sqrt(float((dx * dx).sum()) * float((dy * dy).sum()))
    if den == 0:
        return 0.0
    return round_half_up(float((dx * dy).sum()) / den, 2)


def correlation_matrix(symbols: List[str], charts: Mapping[str, ChartSeries]) -> CorrelationMatrix:
    returns = {s: daily_returns(charts[s].closes) if s in charts else [] for s in symbols}
    matrix = [
        [1.0 if i == j else pearson(returns[a], returns[b]) for j, b in enumerate(symbols)]
        for i, a in enumerate(symbols)
    ]
    return CorrelationMatrix(symbols=list(symbols), matrix=matrix)
