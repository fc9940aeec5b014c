# cryptopulse/main.py
from __future__ import annotations

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from cryptopulse.api.coins import router as coins_router
from cryptopulse.api.health import router as health_router
from cryptopulse.api.realtime import router as realtime_router

from cryptopulse.config.logging_config import configure_logging
from cryptopulse.config.settings import Settings, get_settings

from cryptopulse.jobs.broadcaster import BroadcastScheduler
from cryptopulse.realtime.sessions import SessionRouter
from cryptopulse.realtime.state import BroadcastState
from cryptopulse.services.coingecko import CoinGeckoClient
from cryptopulse.services.resolver import CoinResolver
from cryptopulse.utils.cache import CoinCache


def create_app(settings: Settings | None = None, *, client: CoinGeckoClient | None = None) -> FastAPI:
    s = settings or get_settings()

    app = FastAPI(title="CryptoPulse API")

    # Process-wide singletons; routes reach them through app.state
    coingecko = client or CoinGeckoClient(s)
    cache = CoinCache(CoinResolver(coingecko, limit=s.COINS_LIMIT), ttl_seconds=s.CACHE_TTL_SECONDS)
    state = BroadcastState()
    sessions = SessionRouter(cache, state, refresh_interval_s=s.REFRESH_INTERVAL_SECONDS)
    broadcaster = BroadcastScheduler(cache, sessions, state, interval_s=s.REFRESH_INTERVAL_SECONDS)

    app.state.settings = s
    app.state.coingecko = coingecko
    app.state.cache = cache
    app.state.broadcast_state = state
    app.state.sessions = sessions
    app.state.broadcaster = broadcaster

    # Routers
    app.include_router(health_router)
    app.include_router(coins_router)
    app.include_router(realtime_router)

    @app.middleware("http")
    async def short_circuit_options(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200)
        return await call_next(request)

    # added last so it wraps everything, including the OPTIONS short-circuit
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def on_startup() -> None:
        configure_logging()
        if s.BROADCAST_ENABLED:
            broadcaster.start()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await broadcaster.stop()
        sessions.close_all()
        await coingecko.aclose()

    return app


app = create_app()


def run() -> None:
    import uvicorn

    s = get_settings()
    uvicorn.run("cryptopulse.main:app", host=s.HOST, port=s.PORT, reload=not s.is_production)
