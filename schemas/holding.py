from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Lot(BaseModel):
    """
    One purchase. Values stay loosely typed: the CRUD layer has historically
    stored strings, nulls and zero-epoch dates here, and the cost-basis step
    decides what is usable.
    """

    model_config = ConfigDict(extra="ignore")

    quantity: Any = None
    price: Any = None
    date: Any = None


class Holding(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    symbol: str
    lots: List[Lot] = Field(default_factory=list)
    # legacy aggregate fields, used when no lot is usable
    quantity: Any = None
    average_price: Any = None
    created_at: Any = None

    @field_validator("symbol")
    @classmethod
    def _norm_symbol(cls, v: str) -> str:
        s = (v or "").strip().upper()
        if not s:
            raise ValueError("symbol is required")
        return s

    @field_validator("lots", mode="before")
    @classmethod
    def _lots_default(cls, v: Any) -> Any:
        return [] if v is None else v


class AnalyticsRequest(BaseModel):
    holdings: List[Holding] = Field(default_factory=list)
