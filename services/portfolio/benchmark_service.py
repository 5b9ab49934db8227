# services/portfolio/benchmark_service.py
"""
Time-weighted return of the portfolio against a market index.

The walk is a fold over index trading days. Each step consumes the
acquisition events dated on or before that day, values the book at
forward-filled closes and chains the daily return

    r(t) = mv(t) / (mv(t-1) + inflow(t)) - 1

so money added on a day counts toward that day's starting capital and never
shows up as performance.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from itertools import accumulate
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from schemas.market_data import ChartSeries
from schemas.portfolio_analytics import BenchmarkPoint
from services.portfolio.cost_basis import AcquisitionEvent
from utils.common_helpers import round_half_up


def one_year_before(d: date) -> date:
    try:
        return d.replace(year=d.year - 1)
    except ValueError:  # Feb 29
        return d.replace(year=d.year - 1, day=28)


def fetch_start(inception: date, today: date) -> date:
    """History has to cover at least a year of index context, and the inception."""
    return min(inception, one_year_before(today))


@dataclass(frozen=True)
class DaySnapshot:
    day: str = ""
    next_event: int = 0
    quantities: Mapping[str, float] = field(default_factory=dict)
    last_close: Mapping[str, float] = field(default_factory=dict)
    market_value: float = 0.0
    cum_portfolio: float = 0.0
    index_close: Optional[float] = None
    cum_index: float = 0.0


def _step(
    events: Sequence[AcquisitionEvent],
    lookups: Mapping[str, Mapping[str, float]],
):
    def step(prev: DaySnapshot, bar: Tuple[str, float]) -> DaySnapshot:
        day, index_close = bar

        quantities = dict(prev.quantities)
        inflow = 0.0
        i = prev.next_event
        while i < len(events) and events[i].date.isoformat() <= day:
            ev = events[i]
            quantities[ev.symbol] = quantities.get(ev.symbol, 0.0) + ev.quantity
            inflow += ev.inflow
            i += 1

        last_close = dict(prev.last_close)
        for sym, closes in lookups.items():
            c = closes.get(day)
            if c is not None:
                last_close[sym] = c

        mv = 0.0
        for sym, qty in quantities.items():
            px = last_close.get(sym, 0.0)
            if qty > 0 and px > 0:
                mv += qty * px

        cum = prev.cum_portfolio
        denom = prev.market_value + inflow
        if denom > 0:
            cum = (1 + cum) * (mv / denom) - 1

        cum_index = prev.cum_index
        prev_close = prev.index_close if prev.index_close is not None else index_close
        if prev_close > 0 and index_close > 0:
            cum_index = (1 + cum_index) * (1 + (index_close - prev_close) / prev_close) - 1

        return DaySnapshot(
            day=day,
            next_event=i,
            quantities=quantities,
            last_close=last_close,
            market_value=mv,
            cum_portfolio=cum,
            index_close=index_close,
            cum_index=cum_index,
        )

    return step


def build_benchmark(
    index_chart: ChartSeries,
    symbol_charts: Mapping[str, ChartSeries],
    events: Sequence[AcquisitionEvent],
    inception: date,
) -> List[BenchmarkPoint]:
    if index_chart.is_empty:
        return []

    ordered = sorted(events, key=lambda e: e.date)
    lookups: Dict[str, Dict[str, float]] = {s: c.as_lookup() for s, c in symbol_charts.items()}
    bars = zip(index_chart.dates, index_chart.closes)

    snapshots = list(accumulate(bars, _step(ordered, lookups), initial=DaySnapshot()))[1:]

    start = inception.isoformat()
    raw = [
        (s.day, round_half_up(s.cum_portfolio * 100, 2), round_half_up(s.cum_index * 100, 2))
        for s in snapshots
        if s.day >= start
    ]
    if not raw:
        return []

    _, base_p, base_i = raw[0]
    return [
        BenchmarkPoint(
            date=d,
            portfolio_return_pct=round_half_up(p - base_p, 2),
            index_return_pct=round_half_up(ix - base_i, 2),
        )
        for d, p, ix in raw
    ]
