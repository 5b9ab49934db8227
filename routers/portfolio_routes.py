# routers/portfolio_routes.py
from fastapi import APIRouter, Depends

from routers.market_routes import get_market_data_service
from schemas.holding import AnalyticsRequest
from schemas.portfolio_analytics import AnalyticsResult
from services.market_data_service import MarketDataService
from services.portfolio.portfolio_analytics_service import compute_portfolio_analytics

router = APIRouter()


@router.post("/analytics", response_model=AnalyticsResult)
async def portfolio_analytics(
    body: AnalyticsRequest,
    svc: MarketDataService = Depends(get_market_data_service),
):
    # Failures come back as a zeroed result with `error` set, not as a 5xx.
    return await compute_portfolio_analytics(body.holdings, svc)
