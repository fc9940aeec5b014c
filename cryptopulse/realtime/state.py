from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from cryptopulse.schemas.market import MarketSnapshot

# wire events (one JSON frame = {"event": ..., "data": ...})
REQUEST_COINS = "requestCoins"
SEARCH_COINS = "searchCoins"
COINS_DATA = "coinsData"
COINS_ERROR = "coinsError"

LOAD_ERROR_MESSAGE = "Error loading data"
BROADCAST_ERROR_MESSAGE = "Could not update live data. Retrying soon."


def encode_event(event: str, data: Any) -> dict[str, Any]:
    return {"event": event, "data": data}


def dump_snapshots(snapshots: Iterable[MarketSnapshot]) -> list[dict[str, Any]]:
    return [s.model_dump(mode="json") for s in snapshots]


@dataclass
class BroadcastState:
    """
    Process-wide top-coins state. Created empty at startup and written only by
    the broadcast scheduler; sessions read it on connect and as a fallback.
    """

    last_top_coins: tuple[MarketSnapshot, ...] = ()
    is_refreshing: bool = False
    last_run_ts: Optional[float] = None
    last_success_ts: Optional[float] = None
    last_error_ts: Optional[float] = None
    last_error: Optional[str] = None
    consecutive_failures: int = 0
