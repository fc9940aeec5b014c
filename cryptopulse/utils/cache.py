from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from cryptopulse.schemas.market import MarketSnapshot
from cryptopulse.services.errors import NoStaleDataAvailable
from cryptopulse.services.resolver import CoinResolver

logger = logging.getLogger("cryptopulse.cache")

TOP_KEY = "top"


def normalize_term(term: Optional[str]) -> str:
    return (term or "").strip().lower()


def cache_key(term: Optional[str]) -> str:
    normalized = normalize_term(term)
    return f"search:{normalized}" if normalized else TOP_KEY


@dataclass(frozen=True)
class CacheEntry:
    key: str
    data: tuple[MarketSnapshot, ...]
    expires_at: float

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


class CoinCache:
    """
    In-memory cache of resolver results, one entry per normalized term.

    - live entry: served with no upstream call
    - expired/missing: refreshed through the resolver; concurrent callers for
      the same key share one refresh
    - refresh failure: previous entry served stale if there is one, otherwise
      NoStaleDataAvailable

    Entries are never evicted; the key space is "top" plus recent search terms.
    """

    def __init__(
        self,
        resolver: CoinResolver,
        *,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._resolver = resolver
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, asyncio.Future] = {}

    def peek(self, term: Optional[str]) -> Optional[CacheEntry]:
        return self._entries.get(cache_key(term))

    async def get(self, term: Optional[str] = "") -> list[MarketSnapshot]:
        normalized = normalize_term(term)
        key = cache_key(normalized)

        entry = self._entries.get(key)
        if entry is not None and entry.is_live(self._clock()):
            return list(entry.data)

        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh(key, normalized))
            self._inflight[key] = pending
            pending.add_done_callback(lambda fut, k=key: self._forget(k, fut))

        # a cancelled waiter must not cancel the refresh other waiters share
        data = await asyncio.shield(pending)
        return list(data)

    def _forget(self, key: str, fut: asyncio.Future) -> None:
        if self._inflight.get(key) is fut:
            del self._inflight[key]
        if not fut.cancelled():
            fut.exception()  # mark retrieved; waiters already got it

    async def _refresh(self, key: str, term: str) -> tuple[MarketSnapshot, ...]:
        previous = self._entries.get(key)
        try:
            fresh = tuple(await self._resolver.resolve(term))
        except Exception as exc:
            if previous is not None:
                logger.warning("refresh failed for %r, serving stale data: %s", key, exc)
                return previous.data
            raise NoStaleDataAvailable(key, exc) from exc

        self._entries[key] = CacheEntry(key=key, data=fresh, expires_at=self._clock() + self.ttl_seconds)
        return fresh

    def stats(self) -> Dict[str, Any]:
        now = self._clock()
        live = sum(1 for e in self._entries.values() if e.is_live(now))
        return {
            "keys": len(self._entries),
            "live": live,
            "expired": len(self._entries) - live,
            "refreshing": len(self._inflight),
            "ttl_s": self.ttl_seconds,
        }
