"""Pydantic models for coin payloads exposed to clients."""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class MarketSnapshot(BaseModel):
    """One coin's row from CoinGecko /coins/markets.

    Only the fields the client renders are declared; anything else the provider
    sends is carried through untouched. Frozen: a refresh replaces the snapshot.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    id: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    image: Optional[str] = None
    current_price: Optional[float] = None
    market_cap: Optional[float] = None
    total_volume: Optional[float] = None
    circulating_supply: Optional[float] = None
    price_change_percentage_24h: Optional[float] = None
    price_change_percentage_1h_in_currency: Optional[float] = None
    price_change_percentage_24h_in_currency: Optional[float] = None
    price_change_percentage_7d_in_currency: Optional[float] = None


class SuggestionEntry(BaseModel):
    """Autocomplete row derived from CoinGecko /search."""

    id: str
    name: str = ""
    symbol: str = ""
    image: str = ""
    thumb: str = ""


class CoinDetail(BaseModel):
    """Full /coins/{id} payload plus the last two days of prices."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    price_history_24h: List[List[Union[int, float]]] = Field(default_factory=list, alias="priceHistory24h")


class ErrorPayload(BaseModel):
    status: int
    message: str
    error: Optional[str] = None
