from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Optional

import pandas as pd

# Dates in or before this year are treated as corrupt (null / zero epoch).
# Heuristic, kept exactly: callers rely on the "> 2000" threshold.
MIN_VALID_YEAR_EXCLUSIVE = 2000


def to_utc_date(x: Any) -> Optional[date]:
    """
    Coerce datetime / date / pandas Timestamp / epoch milliseconds / ISO string
    to a calendar date in UTC. Returns None for anything unparseable.
    """
    if x is None or isinstance(x, bool):
        return None
    if isinstance(x, datetime):
        x = x.astimezone(timezone.utc) if x.tzinfo else x
        return x.date()
    if isinstance(x, date):
        return x
    if isinstance(x, (int, float)):
        if isinstance(x, float) and (math.isnan(x) or math.isinf(x)):
            return None
        try:
            return datetime.fromtimestamp(float(x) / 1000.0, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(x, str):
        s = x.strip()
        if not s:
            return None
        try:
            ts = pd.to_datetime(s, utc=True, errors="coerce")
        except (ValueError, OverflowError):
            return None
        if pd.isna(ts):
            return None
        return ts.date()
    return None


def is_valid_acquisition_date(d: Optional[date]) -> bool:
    return d is not None and d.year > MIN_VALID_YEAR_EXCLUSIVE


def parse_acquisition_date(x: Any) -> Optional[date]:
    """Parsed date if it passes the validity rule, else None."""
    d = to_utc_date(x)
    return d if is_valid_acquisition_date(d) else None


def from_epoch_seconds(x: Any) -> Optional[date]:
    """UTC calendar date for a Unix timestamp in seconds; None when out of range."""
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        return None
    if isinstance(x, float) and (math.isnan(x) or math.isinf(x)):
        return None
    try:
        return datetime.fromtimestamp(float(x), tz=timezone.utc).date()
    except (OverflowError, OSError, ValueError):
        return None


_dt_suffix_pat = re.compile(r"(:S|[ T]S)$", re.IGNORECASE)


def provider_date_iso(val: Any) -> Optional[str]:
    """
    Yahoo calendar fields come back as epoch seconds, {'raw': ...}, lists, or
    strings like '2025-10-30 16:00:S'. Normalise to 'YYYY-MM-DD'.
    """
    if isinstance(val, list):
        if not val:
            return None
        val = val[0]
    if isinstance(val, dict) and "raw" in val:
        val = val["raw"]
    if isinstance(val, bool) or val is None:
        return None
    if isinstance(val, (int, float)):
        d = from_epoch_seconds(val)
        return d.isoformat() if d else None
    if isinstance(val, str):
        val = _dt_suffix_pat.sub("", val.strip())
    d = to_utc_date(val)
    return d.isoformat() if d else None
