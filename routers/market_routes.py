# routers/market_routes.py
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from schemas.market_data import (
    BasicFinancials,
    ChartSeries,
    CompanyProfile,
    EarningsEvent,
    ExtendedQuote,
    ForexRate,
    NewsItem,
    PriceTarget,
    Quote,
    RecommendationTrend,
    SymbolMatch,
)
from services.errors import ConfigurationError
from services.market_data_service import MarketDataService
from utils.date_helpers import from_epoch_seconds

router = APIRouter()

MAX_BATCH_SYMBOLS = 50


# ---- Dependency: the process-wide service built in main.lifespan ----
def get_market_data_service(request: Request) -> MarketDataService:
    return request.app.state.market_data


def _split_symbols(raw: str) -> List[str]:
    return [s.strip().upper() for s in (raw or "").split(",") if s.strip()]


# ---------- Routes (thin controllers delegating to the service) ----------
# Fixed paths first: "/market/news" would otherwise match "/{symbol}/news".

@router.get("/search", response_model=List[SymbolMatch])
async def search_symbols(
    q: str = Query(..., min_length=1),
    svc: MarketDataService = Depends(get_market_data_service),
):
    return await svc.search_symbols(q)


@router.get("/batch-extended-quote", response_model=Dict[str, ExtendedQuote])
async def batch_extended_quote(
    symbols: str = Query(..., description="Comma separated, e.g. AAPL,MSFT"),
    svc: MarketDataService = Depends(get_market_data_service),
):
    syms = _split_symbols(symbols)
    if not syms:
        raise HTTPException(status_code=400, detail="symbols is required")
    if len(syms) > MAX_BATCH_SYMBOLS:
        raise HTTPException(status_code=400, detail=f"At most {MAX_BATCH_SYMBOLS} symbols per request")
    return await svc.get_batch_quotes(syms)


@router.get("/market/news", response_model=List[NewsItem])
async def market_news(svc: MarketDataService = Depends(get_market_data_service)):
    return await svc.get_market_news()


@router.get("/forex/usd-ils", response_model=ForexRate)
async def usd_ils(svc: MarketDataService = Depends(get_market_data_service)):
    return await svc.get_forex_rate()


@router.get("/calendar/earnings", response_model=List[EarningsEvent])
async def earnings_calendar(
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    svc: MarketDataService = Depends(get_market_data_service),
):
    return await svc.get_earnings_calendar(from_, to)


@router.get("/{symbol}/quote", response_model=Quote)
async def quote(symbol: str, svc: MarketDataService = Depends(get_market_data_service)):
    try:
        q = await svc.get_quote(symbol)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if q is None:
        raise HTTPException(status_code=404, detail=f"No quote for {symbol.upper()}")
    return q


@router.get("/{symbol}/extended-quote", response_model=ExtendedQuote)
async def extended_quote(symbol: str, svc: MarketDataService = Depends(get_market_data_service)):
    q = await svc.get_extended_quote(symbol)
    if q is None:
        raise HTTPException(status_code=404, detail=f"No extended quote for {symbol.upper()}")
    return q


@router.get("/{symbol}/news", response_model=List[NewsItem])
async def company_news(symbol: str, svc: MarketDataService = Depends(get_market_data_service)):
    return await svc.get_company_news(symbol)


@router.get("/{symbol}/recommendation", response_model=List[RecommendationTrend])
async def recommendation(symbol: str, svc: MarketDataService = Depends(get_market_data_service)):
    return await svc.get_analyst_recommendations(symbol)


@router.get("/{symbol}/price-target", response_model=Optional[PriceTarget])
async def price_target(symbol: str, svc: MarketDataService = Depends(get_market_data_service)):
    return await svc.get_price_target(symbol)


@router.get("/{symbol}/profile", response_model=Optional[CompanyProfile])
async def profile(symbol: str, svc: MarketDataService = Depends(get_market_data_service)):
    return await svc.get_company_profile(symbol)


@router.get("/{symbol}/metrics", response_model=Optional[BasicFinancials])
async def metrics(symbol: str, svc: MarketDataService = Depends(get_market_data_service)):
    return await svc.get_basic_financials(symbol)


@router.get("/{symbol}/history", response_model=ChartSeries)
async def history(
    symbol: str,
    from_: Optional[int] = Query(None, alias="from", description="Unix seconds"),
    to: Optional[int] = Query(None, description="Unix seconds"),
    svc: MarketDataService = Depends(get_market_data_service),
):
    if from_ is None or to is None:
        raise HTTPException(status_code=400, detail="from and to are required")
    start, end = from_epoch_seconds(from_), from_epoch_seconds(to)
    if start is None or end is None or start > end:
        raise HTTPException(status_code=400, detail="Invalid from/to range")
    return await svc.get_history(symbol, start, end)
