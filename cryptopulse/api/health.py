# cryptopulse/api/health.py
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response

from cryptopulse.api.deps import get_app_settings, get_broadcaster, get_cache
from cryptopulse.config.settings import Settings
from cryptopulse.jobs.broadcaster import BroadcastScheduler
from cryptopulse.utils.cache import CoinCache

router = APIRouter(tags=["health"])

APP_STARTED_AT = time.time()


def _now_meta() -> Dict[str, Any]:
    now_ts = time.time()
    now_dt = datetime.fromtimestamp(now_ts, tz=timezone.utc)
    return {
        "now_unix": int(now_ts),
        "now_iso": now_dt.isoformat().replace("+00:00", "Z"),
        "uptime_s": int(now_ts - APP_STARTED_AT),
    }


def build_ready_payload(broadcaster: BroadcastScheduler, cache: CoinCache, settings: Settings) -> Dict[str, Any]:
    scheduler = broadcaster.status()

    degraded_reasons = []
    if settings.BROADCAST_ENABLED:
        if not scheduler["running"]:
            degraded_reasons.append("broadcaster_unavailable")
        elif scheduler["stalled"]:
            degraded_reasons.append("broadcaster_stalled")

    return {
        "status": "degraded" if degraded_reasons else "ok",
        **_now_meta(),
        "degraded": bool(degraded_reasons),
        "degraded_reasons": degraded_reasons,
        "checks": {
            "broadcaster": {**scheduler, "enabled": settings.BROADCAST_ENABLED},
            "cache": cache.stats(),
        },
    }


@router.get("/")
async def root() -> dict[str, str]:
    return {"status": "ok", "message": "CryptoPulse API"}


@router.get("/live")
async def live():
    return {"status": "ok"}


@router.get("/ready")
async def ready(
    response: Response,
    broadcaster: BroadcastScheduler = Depends(get_broadcaster),
    cache: CoinCache = Depends(get_cache),
    settings: Settings = Depends(get_app_settings),
):
    payload = build_ready_payload(broadcaster, cache, settings)
    if payload["degraded"]:
        response.status_code = 503
    return payload
