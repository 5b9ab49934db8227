# services/portfolio/portfolio_health_score_service.py
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from config.market_config import ETF_SYMBOLS
from schemas.market_data import BasicFinancials, ChartSeries, CompanyProfile, RecommendationTrend
from schemas.portfolio_analytics import HealthComponents
from services.portfolio.cost_basis import PositionBasis
from utils.common_helpers import round_half_up

SECTOR_THRESHOLD_PCT = 30.0
SECTOR_PENALTY_PER_PCT = 2.5
BETA_PENALTY_PER_UNIT = 50.0
NEUTRAL_SENTIMENT = 50.0
DEFAULT_BETA = 1.0

WEIGHT_DIVERSIFICATION = 0.4
WEIGHT_VOLATILITY = 0.3
WEIGHT_SENTIMENT = 0.3


@dataclass(frozen=True)
class HealthScore:
    health_score: int
    components: HealthComponents
    portfolio_beta: float
    max_sector_pct: float


def _pct(n: float, d: float) -> float:
    return n / d * 100.0 if d else 0.0


def position_values(
    positions: Mapping[str, PositionBasis],
    charts: Mapping[str, ChartSeries],
) -> Dict[str, float]:
    """quantity x latest close; average cost when no close is known."""
    out: Dict[str, float] = {}
    for sym, pos in positions.items():
        chart = charts.get(sym)
        px = chart.last_close if chart is not None else None
        if px is None or px <= 0:
            px = pos.average_cost
        out[sym] = pos.quantity * px
    return out


def diversification_score(
    values: Mapping[str, float],
    profiles: Mapping[str, Optional[CompanyProfile]],
) -> tuple[float, float]:
    """(score, max sector %). Sector is Finnhub's industry, 'Unknown' without a profile."""
    total = sum(values.values())
    by_sector: Dict[str, float] = defaultdict(float)
    for sym, v in values.items():
        prof = profiles.get(sym)
        by_sector[(prof.industry if prof else None) or "Unknown"] += v

    max_sector = max((_pct(v, total) for v in by_sector.values()), default=0.0)
    score = 100.0 - max(0.0, max_sector - SECTOR_THRESHOLD_PCT) * SECTOR_PENALTY_PER_PCT
    return max(0.0, score), max_sector


def portfolio_beta(
    values: Mapping[str, float],
    financials: Mapping[str, Optional[BasicFinancials]],
) -> float:
    total = sum(values.values())
    weighted = 0.0
    weight_sum = 0.0
    for sym, v in values.items():
        fin = financials.get(sym)
        beta = (fin.beta if fin else None) or DEFAULT_BETA
        w = v / total if total > 0 else 0.0
        weighted += beta * w
        weight_sum += w
    return weighted / weight_sum if weight_sum > 0 else DEFAULT_BETA


def volatility_score(beta: float) -> float:
    return max(0.0, 100.0 - max(0.0, beta - 1.0) * BETA_PENALTY_PER_UNIT)


def _is_fund(symbol: str, profile: Optional[CompanyProfile]) -> bool:
    return symbol in ETF_SYMBOLS or bool(profile and profile.is_etf)


def sentiment_score(
    symbols: List[str],
    recommendations: Mapping[str, List[RecommendationTrend]],
    profiles: Mapping[str, Optional[CompanyProfile]],
) -> float:
    """Mean buy ratio of the latest period across rated non-fund holdings, x100."""
    ratios: List[float] = []
    for sym in symbols:
        if _is_fund(sym, profiles.get(sym)):
            continue
        recs = recommendations.get(sym) or []
        if not recs:
            continue
        ratio = recs[0].buy_ratio
        if ratio is not None:
            ratios.append(ratio)
    if not ratios:
        return NEUTRAL_SENTIMENT
    return sum(ratios) / len(ratios) * 100.0


def compute_health_score(
    positions: Mapping[str, PositionBasis],
    charts: Mapping[str, ChartSeries],
    profiles: Mapping[str, Optional[CompanyProfile]],
    financials: Mapping[str, Optional[BasicFinancials]],
    recommendations: Mapping[str, List[RecommendationTrend]],
) -> HealthScore:
    values = position_values(positions, charts)

    div, max_sector = diversification_score(values, profiles)
    beta = portfolio_beta(values, financials)
    vol = volatility_score(beta)
    sent = sentiment_score(list(positions.keys()), recommendations, profiles)

    composite = (
        div * WEIGHT_DIVERSIFICATION
        + vol * WEIGHT_VOLATILITY
        + sent * WEIGHT_SENTIMENT
    )

    return HealthScore(
        health_score=int(round_half_up(composite)),
        components=HealthComponents(
            diversification=int(round_half_up(div)),
            volatility=int(round_half_up(vol)),
            sentiment=int(round_half_up(sent)),
        ),
        portfolio_beta=round_half_up(beta, 2),
        max_sector_pct=round_half_up(max_sector, 1),
    )
