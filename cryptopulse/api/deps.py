"""FastAPI dependencies resolving the process-wide singletons built in main."""

from __future__ import annotations

from starlette.requests import HTTPConnection

from cryptopulse.config.settings import Settings
from cryptopulse.jobs.broadcaster import BroadcastScheduler
from cryptopulse.realtime.sessions import SessionRouter
from cryptopulse.services.coingecko import CoinGeckoClient
from cryptopulse.utils.cache import CoinCache


def get_client(conn: HTTPConnection) -> CoinGeckoClient:
    return conn.app.state.coingecko


def get_cache(conn: HTTPConnection) -> CoinCache:
    return conn.app.state.cache


def get_sessions(conn: HTTPConnection) -> SessionRouter:
    return conn.app.state.sessions


def get_broadcaster(conn: HTTPConnection) -> BroadcastScheduler:
    return conn.app.state.broadcaster


def get_app_settings(conn: HTTPConnection) -> Settings:
    return conn.app.state.settings
