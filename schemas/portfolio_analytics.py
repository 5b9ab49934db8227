# schemas/portfolio_analytics.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import Field

from schemas.market_data import CamelModel


class HealthComponents(CamelModel):
    diversification: int = Field(0, ge=0, le=100)
    volatility: int = Field(0, ge=0, le=100)
    sentiment: int = Field(0, ge=0, le=100)


class BenchmarkPoint(CamelModel):
    date: str
    portfolio_return_pct: float
    index_return_pct: float


class DividendEvent(CamelModel):
    symbol: str
    ex_date: str
    payment_date: Optional[str] = None
    amount: float
    estimated_payout: float


class CorrelationMatrix(CamelModel):
    symbols: List[str] = Field(default_factory=list)
    matrix: List[List[Optional[float]]] = Field(default_factory=list)


class AnalyticsResult(CamelModel):
    health_score: int = Field(0, ge=0, le=100)
    components: HealthComponents = Field(default_factory=HealthComponents)
    portfolio_beta: float = 0.0
    max_sector_pct: float = 0.0
    benchmark_data: List[BenchmarkPoint] = Field(default_factory=list)
    dividends: List[DividendEvent] = Field(default_factory=list)
    correlation_matrix: CorrelationMatrix = Field(default_factory=CorrelationMatrix)
    last_updated: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, message: str) -> "AnalyticsResult":
        """Zeroed result returned (never cached) when the computation blows up."""
        return cls(
            error=message,
            last_updated=datetime.now(timezone.utc).isoformat(),
        )
