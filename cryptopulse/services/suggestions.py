"""Autocomplete suggestions. Best-effort: any failure means no suggestions."""

from __future__ import annotations

import logging
from typing import Any, Optional

from cryptopulse.schemas.market import SuggestionEntry
from cryptopulse.services.coingecko import CoinGeckoClient

logger = logging.getLogger("cryptopulse.suggestions")

MIN_QUERY_LENGTH = 2
MAX_SUGGESTIONS = 10


def _to_entry(coin: dict[str, Any]) -> SuggestionEntry:
    image = coin.get("thumb") or coin.get("large") or ""
    return SuggestionEntry(
        id=str(coin["id"]),
        name=str(coin.get("name") or ""),
        symbol=str(coin.get("symbol") or ""),
        image=image,
        thumb=image,
    )


async def suggest_coins(client: CoinGeckoClient, q: Optional[str]) -> list[SuggestionEntry]:
    query = (q or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []

    try:
        data = await client.search(query)
        coins = data.get("coins") if isinstance(data, dict) else None
        if not isinstance(coins, list):
            return []
        return [_to_entry(c) for c in coins[:MAX_SUGGESTIONS] if isinstance(c, dict) and c.get("id")]
    except Exception as exc:
        logger.warning("suggestions failed for %r: %s", query, exc)
        return []
