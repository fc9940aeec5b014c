from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, WebSocket

from cryptopulse.api.deps import get_sessions
from cryptopulse.realtime.sessions import SessionRouter
from cryptopulse.realtime.state import REQUEST_COINS, SEARCH_COINS

logger = logging.getLogger("cryptopulse.ws")

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def coins_socket(websocket: WebSocket, sessions: SessionRouter = Depends(get_sessions)):
    """
    Live coin feed. Frames are {"event": ..., "data": ...}.
      in:  requestCoins | searchCoins(term)
      out: coinsData(list) | coinsError(message)
    """
    await websocket.accept()
    session = await sessions.connect(websocket)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            raw = frame.get("text")
            if raw is None:
                logger.debug("ignoring binary frame | session=%s", session.session_id)
                continue
            try:
                message = json.loads(raw)
            except ValueError:
                logger.debug("ignoring non-JSON frame | session=%s", session.session_id)
                continue
            if not isinstance(message, dict):
                continue

            event = message.get("event")
            if event == REQUEST_COINS:
                await sessions.request_coins(session)
            elif event == SEARCH_COINS:
                await sessions.search_coins(session, message.get("data", ""))
            else:
                logger.debug("ignoring unknown event %r | session=%s", event, session.session_id)
    finally:
        sessions.disconnect(session)
