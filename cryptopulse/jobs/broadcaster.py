# cryptopulse/jobs/broadcaster.py
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from cryptopulse.realtime.sessions import SessionRouter
from cryptopulse.realtime.state import (
    BROADCAST_ERROR_MESSAGE,
    COINS_DATA,
    COINS_ERROR,
    BroadcastState,
    dump_snapshots,
)
from cryptopulse.utils.cache import CoinCache

logger = logging.getLogger("cryptopulse.broadcaster")

# a cycle is "stalled" once it has gone this many periods without success
STALL_MULTIPLIER = 2.5


def _iso_z_from_epoch(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    dt = datetime.fromtimestamp(float(ts), tz=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


class BroadcastScheduler:
    """
    Refreshes the "top" cache entry on a fixed cadence and pushes it to the
    shared channel.

    Every tick spawns a cycle; a tick that lands while a cycle is still
    waiting on the provider is dropped (BroadcastState.is_refreshing).
    """

    def __init__(
        self,
        cache: CoinCache,
        sessions: SessionRouter,
        state: BroadcastState,
        *,
        interval_s: float,
    ) -> None:
        self._cache = cache
        self._sessions = sessions
        self.state = state
        self.interval_s = interval_s

        self._stop_event: Optional[asyncio.Event] = None
        self._ticker: Optional[asyncio.Task] = None
        self._cycles: Set[asyncio.Task] = set()
        self._started_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return bool(self._ticker and not self._ticker.done() and self._stop_event and not self._stop_event.is_set())

    # ----------------------------
    # one cycle
    # ----------------------------
    async def run_cycle(self) -> bool:
        """Refresh and push once. Returns False when skipped because one is in flight."""
        st = self.state
        if st.is_refreshing:
            logger.debug("broadcast tick skipped; previous cycle still running")
            return False

        st.is_refreshing = True
        st.last_run_ts = time.time()
        t0 = time.perf_counter()
        try:
            coins = await self._cache.get("")
            st.last_top_coins = tuple(coins)
            st.last_success_ts = time.time()
            st.consecutive_failures = 0

            sent = await self._sessions.broadcast(COINS_DATA, dump_snapshots(st.last_top_coins))
            logger.debug(
                "broadcast done | coins=%d | recipients=%d | %dms",
                len(st.last_top_coins),
                sent,
                int((time.perf_counter() - t0) * 1000),
            )
        except Exception as e:
            st.last_error_ts = time.time()
            st.last_error = repr(e)[:300]
            st.consecutive_failures += 1
            logger.error("❌ broadcast refresh failed | failures=%d | %s", st.consecutive_failures, e)

            if not st.last_top_coins:
                await self._sessions.broadcast(COINS_ERROR, BROADCAST_ERROR_MESSAGE, channel_only=False)
            else:
                await self._sessions.broadcast(COINS_DATA, dump_snapshots(st.last_top_coins))
        finally:
            st.is_refreshing = False

        return True

    def trigger(self) -> asyncio.Task:
        """Fire a cycle without waiting for it (what the ticker does)."""
        task = asyncio.create_task(self.run_cycle())
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)
        return task

    # ----------------------------
    # ticker
    # ----------------------------
    async def _tick_loop(self, stop_event: asyncio.Event) -> None:
        next_tick = time.monotonic()  # fire immediately once

        while not stop_event.is_set():
            now = time.monotonic()
            if now < next_tick:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=(next_tick - now))
                except asyncio.TimeoutError:
                    pass
                continue

            self.trigger()

            next_tick += self.interval_s
            if next_tick < time.monotonic() - self.interval_s:
                next_tick = time.monotonic() + self.interval_s

    def start(self) -> None:
        if self.running:
            logger.warning("⚠️ broadcaster already started (in-process)")
            return

        self._stop_event = asyncio.Event()
        self._started_at = time.time()
        self._ticker = asyncio.create_task(self._tick_loop(self._stop_event), name="broadcast-ticker")
        logger.info("✅ broadcaster started | interval_s=%s", self.interval_s)

    async def stop(self, timeout_s: float = 5.0) -> None:
        if self._ticker is None:
            return

        if self._stop_event:
            self._stop_event.set()

        tasks = [self._ticker, *self._cycles]
        try:
            await asyncio.wait_for(asyncio.gather(*tasks, return_exceptions=True), timeout=timeout_s)
        except asyncio.TimeoutError:
            for t in tasks:
                if not t.done():
                    t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            self._ticker = None
            self._stop_event = None
            self._cycles.clear()

        logger.info("🛑 broadcaster stopped")

    # ----------------------------
    # health
    # ----------------------------
    def status(self) -> Dict[str, Any]:
        st = self.state
        now = time.time()
        last_ok = st.last_success_ts
        age_s = int(now - last_ok) if last_ok is not None else None
        stall_after = self.interval_s * STALL_MULTIPLIER
        stalled = self.running and (
            (last_ok is None and self._started_at is not None and now - self._started_at > stall_after)
            or (age_s is not None and age_s > stall_after)
        )

        return {
            "ok": self.running and not stalled,
            "running": self.running,
            "stalled": stalled,
            "interval_s": self.interval_s,
            "refreshing": st.is_refreshing,
            "coins": len(st.last_top_coins),
            "channel_members": self._sessions.channel_size,
            "sessions": len(self._sessions),
            "uptime_s": int(now - self._started_at) if self._started_at else None,
            "last_run_iso": _iso_z_from_epoch(st.last_run_ts),
            "last_success_iso": _iso_z_from_epoch(last_ok),
            "last_success_age_s": age_s,
            "last_error_iso": _iso_z_from_epoch(st.last_error_ts),
            "last_error": st.last_error,
            "consecutive_failures": st.consecutive_failures,
        }
