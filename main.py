# main.py
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.logging_config import configure_logging
from middleware.request_logging import RequestLoggingMiddleware
from routers.market_routes import router as market_router
from routers.portfolio_routes import router as portfolio_router
from services.cache.cache_backend import CacheStore
from services.cache.inflight import InFlightCoordinator
from services.finnhub.client import build_finnhub_client
from services.finnhub.finnhub_news_service import FinnhubNewsService
from services.finnhub.finnhub_service import FinnhubService
from services.market_data_service import MarketDataService
from services.yahoo_service import YahooService

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One cache + in-flight map per process, shared by every request.
    client = build_finnhub_client()
    app.state.market_data = MarketDataService(
        store=CacheStore(),
        inflight=InFlightCoordinator(),
        finnhub=FinnhubService(client=client),
        yahoo=YahooService(),
        news=FinnhubNewsService(),
    )
    logger.info("market data service ready")
    try:
        yield
    finally:
        await client.aclose()


app = FastAPI(lifespan=lifespan)

origins = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(market_router, prefix="/api/stocks")
app.include_router(portfolio_router, prefix="/api/portfolio")


@app.get("/health")
async def health():
    return {"status": "ok"}
