import math
from decimal import Decimal
from typing import Any, Optional

import httpx


def to_float(x: Any) -> float:
    if x is None:
        return 0.0
    if isinstance(x, Decimal):
        return float(x)
    try:
        v = float(x)
    except Exception:
        return 0.0
    return 0.0 if math.isnan(v) else v


def safe_float(x: Any) -> Optional[float]:
    """float(x), or None for None/NaN/garbage. Booleans are not numbers here."""
    if x is None or isinstance(x, bool):
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    if math.isnan(v) or math.isinf(v):
        return None
    return v


def round_half_up(x: float, d: int = 0) -> float:
    """Round halves up (2.5 -> 3, 0.125 -> 0.13 at d=2); round() would round to even."""
    factor = 10 ** d
    return math.floor(x * factor + 0.5) / factor


def safe_json(resp: httpx.Response) -> Optional[Any]:
    try:
        return resp.json()
    except ValueError:
        return None


def norm_symbol(symbol: Optional[str]) -> str:
    return (symbol or "").strip().upper()
