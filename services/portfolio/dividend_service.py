# services/portfolio/dividend_service.py
from __future__ import annotations

from datetime import date, timedelta
from typing import List, Mapping, Optional

from schemas.market_data import DividendInfo
from schemas.portfolio_analytics import DividendEvent
from services.portfolio.cost_basis import PositionBasis
from utils.common_helpers import round_half_up
from utils.date_helpers import to_utc_date

UPCOMING_WINDOW_DAYS = 60
PAYMENTS_PER_YEAR = 4


def _in_window(ex: date, today: date) -> bool:
    upcoming = today <= ex <= today + timedelta(days=UPCOMING_WINDOW_DAYS)
    this_month = (ex.year, ex.month) == (today.year, today.month)
    return upcoming or this_month


def upcoming_dividends(
    positions: Mapping[str, PositionBasis],
    infos: Mapping[str, Optional[DividendInfo]],
    today: date,
) -> List[DividendEvent]:
    """
    Next expected payout per holding, assuming quarterly payers:
    amount = annual rate / 4, payout = amount x quantity held.
    """
    out: List[tuple] = []
    for sym, pos in positions.items():
        info = infos.get(sym)
        if info is None:
            continue
        ex = to_utc_date(info.ex_date)
        if ex is None or not _in_window(ex, today):
            continue
        amount = (info.dividend_rate or 0.0) / PAYMENTS_PER_YEAR
        out.append(
            (
                ex,
                DividendEvent(
                    symbol=sym,
                    ex_date=info.ex_date,
                    payment_date=info.payment_date,
                    amount=round_half_up(amount, 4),
                    estimated_payout=round_half_up(amount * pos.quantity, 4),
                ),
            )
        )
    out.sort(key=lambda t: t[0])
    return [ev for _, ev in out]
