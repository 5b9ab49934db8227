#services/finnhub/client.py
import httpx

from config.market_config import (
    HTTP_CONNECT_TIMEOUT_SEC,
    HTTP_MAX_CONNECTIONS,
    HTTP_TIMEOUT_SEC,
)


def build_finnhub_client() -> httpx.AsyncClient:
    """Shared pooled client; the app lifespan owns it and closes it on shutdown."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(HTTP_TIMEOUT_SEC, connect=HTTP_CONNECT_TIMEOUT_SEC),
        limits=httpx.Limits(
            max_connections=HTTP_MAX_CONNECTIONS,
            max_keepalive_connections=max(1, HTTP_MAX_CONNECTIONS // 2),
        ),
        http2=True,
    )
