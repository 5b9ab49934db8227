# services/portfolio/cost_basis.py
"""
Lot-level cost basis for a holdings list.

Input comes straight from the CRUD layer and is not trusted: quantities and
prices may be strings or null, and dates may be missing, zero-epoch or junk.
A lot is usable when its quantity is positive and its price is not negative.
Its acquisition date counts only if it parses and falls after the year 2000;
otherwise the lot is still counted, dated today, and kept out of the inception date.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from schemas.holding import Holding
from utils.common_helpers import safe_float, to_float
from utils.date_helpers import parse_acquisition_date


@dataclass(frozen=True)
class AcquisitionEvent:
    date: date
    symbol: str
    quantity: float
    price: float

    @property
    def inflow(self) -> float:
        return self.quantity * self.price


@dataclass
class PositionBasis:
    symbol: str
    quantity: float = 0.0
    cost: float = 0.0

    @property
    def average_cost(self) -> float:
        return self.cost / self.quantity if self.quantity else 0.0


@dataclass(frozen=True)
class CostBasis:
    positions: Dict[str, PositionBasis] = field(default_factory=dict)
    events: Tuple[AcquisitionEvent, ...] = ()
    inception: Optional[date] = None

    @property
    def symbols(self) -> List[str]:
        return list(self.positions.keys())


def _lot_events(holding: Holding, today: date) -> Tuple[List[AcquisitionEvent], List[date]]:
    events: List[AcquisitionEvent] = []
    valid_dates: List[date] = []
    for lot in holding.lots:
        q = safe_float(lot.quantity)
        p = safe_float(lot.price)
        if q is None or q <= 0 or p is None or p < 0:
            continue
        d = parse_acquisition_date(lot.date)
        if d is not None:
            valid_dates.append(d)
        events.append(AcquisitionEvent(date=d or today, symbol=holding.symbol, quantity=q, price=p))
    return events, valid_dates


def _legacy_event(holding: Holding, today: date) -> Tuple[AcquisitionEvent, Optional[date]]:
    d = parse_acquisition_date(holding.created_at)
    event = AcquisitionEvent(
        date=d or today,
        symbol=holding.symbol,
        quantity=to_float(holding.quantity),
        price=to_float(holding.average_price),
    )
    return event, d


def reconstruct_cost_basis(holdings: Iterable[Holding], today: date) -> CostBasis:
    positions: Dict[str, PositionBasis] = {}
    events: List[AcquisitionEvent] = []
    valid_dates: List[date] = []

    for h in holdings:
        lot_events, lot_dates = _lot_events(h, today)
        if not lot_events:
            legacy, d = _legacy_event(h, today)
            lot_events = [legacy]
            lot_dates = [d] if d is not None else []

        pos = positions.setdefault(h.symbol, PositionBasis(symbol=h.symbol))
        for ev in lot_events:
            pos.quantity += ev.quantity
            pos.cost += ev.inflow
        events.extend(lot_events)
        valid_dates.extend(lot_dates)

    # stable: same-day events keep input order
    events.sort(key=lambda e: e.date)
    inception = min(valid_dates) if valid_dates else today
    return CostBasis(positions=positions, events=tuple(events), inception=inception)
