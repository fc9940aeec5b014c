"""
Per-connection live sessions.

A session is either subscribed to the shared top-coins channel (no search
term) or searching, in which case it has left the channel and owns a private
task that re-resolves its term every refresh interval. The router is the only
place that creates, switches or cancels those tasks.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Set

from cryptopulse.realtime.state import (
    COINS_DATA,
    COINS_ERROR,
    LOAD_ERROR_MESSAGE,
    BroadcastState,
    dump_snapshots,
    encode_event,
)
from cryptopulse.utils.cache import CoinCache

logger = logging.getLogger("cryptopulse.sessions")


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


@dataclass
class Session:
    session_id: str
    connection: Connection
    current_search_term: str = ""
    refresh_task: Optional[asyncio.Task] = None
    closed: bool = False

    @property
    def searching(self) -> bool:
        return bool(self.current_search_term)

    def stop_refresh(self) -> None:
        task, self.refresh_task = self.refresh_task, None
        if task is not None and not task.done():
            task.cancel()


class SessionRouter:
    def __init__(self, cache: CoinCache, state: BroadcastState, *, refresh_interval_s: float) -> None:
        self._cache = cache
        self._state = state
        self.refresh_interval_s = refresh_interval_s
        self._sessions: Dict[str, Session] = {}
        self._channel: Set[str] = set()

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def channel_size(self) -> int:
        return len(self._channel)

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def in_channel(self, session: Session) -> bool:
        return session.session_id in self._channel

    # ----------------------------
    # lifecycle
    # ----------------------------
    async def connect(self, connection: Connection) -> Session:
        session = Session(session_id=uuid.uuid4().hex, connection=connection)
        self._sessions[session.session_id] = session
        self._channel.add(session.session_id)
        logger.info("session connected | %s | total=%d", session.session_id, len(self._sessions))

        await self._send(session, COINS_DATA, dump_snapshots(self._state.last_top_coins))
        return session

    def disconnect(self, session: Session) -> None:
        session.closed = True
        session.stop_refresh()
        self._channel.discard(session.session_id)
        if self._sessions.pop(session.session_id, None) is not None:
            logger.info("session disconnected | %s | total=%d", session.session_id, len(self._sessions))

    def close_all(self) -> None:
        for session in list(self._sessions.values()):
            self.disconnect(session)

    # ----------------------------
    # inbound actions
    # ----------------------------
    async def request_coins(self, session: Session) -> None:
        session.current_search_term = ""
        session.stop_refresh()
        self._channel.add(session.session_id)

        if self._state.last_top_coins:
            await self._send(session, COINS_DATA, dump_snapshots(self._state.last_top_coins))
            return

        # cold start: nothing broadcast yet, fetch once for this viewer
        session.refresh_task = asyncio.create_task(self._push_resolved(session, ""))

    async def search_coins(self, session: Session, term: Any) -> None:
        term = term.strip() if isinstance(term, str) else ""
        session.current_search_term = term

        if not term:
            session.stop_refresh()
            self._channel.add(session.session_id)
            await self._send(session, COINS_DATA, dump_snapshots(self._state.last_top_coins))
            return

        self._channel.discard(session.session_id)
        session.stop_refresh()
        session.refresh_task = asyncio.create_task(self._search_loop(session, term))

    # ----------------------------
    # fan-out
    # ----------------------------
    async def broadcast(self, event: str, data: Any, *, channel_only: bool = True) -> int:
        """Send one frame to every channel member (or every session). Returns recipients."""
        ids = list(self._channel) if channel_only else list(self._sessions)
        targets = [self._sessions[sid] for sid in ids if sid in self._sessions]
        if not targets:
            return 0

        payload = encode_event(event, data)
        await asyncio.gather(*(self._send_payload(s, payload) for s in targets))
        return len(targets)

    # ----------------------------
    # internals
    # ----------------------------
    async def _search_loop(self, session: Session, term: str) -> None:
        while not session.closed:
            await self._push_resolved(session, term)
            await asyncio.sleep(self.refresh_interval_s)

    async def _push_resolved(self, session: Session, term: str) -> None:
        try:
            coins = await self._cache.get(term)
        except Exception as exc:
            logger.warning("resolve failed | session=%s | term=%r | %s", session.session_id, term, exc)
            await self._send(session, COINS_ERROR, LOAD_ERROR_MESSAGE)
            return
        await self._send(session, COINS_DATA, dump_snapshots(coins))

    async def _send(self, session: Session, event: str, data: Any) -> None:
        await self._send_payload(session, encode_event(event, data))

    async def _send_payload(self, session: Session, payload: dict[str, Any]) -> None:
        if session.closed:
            return
        try:
            await session.connection.send_json(payload)
        except Exception as exc:
            logger.debug("send failed, dropping session %s: %r", session.session_id, exc)
            self.disconnect(session)
