"""Thin async client for the public CoinGecko API."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from cryptopulse.config.settings import Settings, get_settings
from cryptopulse.services.errors import (
    UpstreamError,
    UpstreamHttpError,
    UpstreamMalformed,
    UpstreamTimeout,
)

logger = logging.getLogger("cryptopulse.coingecko")

API_KEY_HEADER = "x-cg-pro-api-key"
PRICE_CHANGE_WINDOWS = "1h,24h,7d"


def _encode_params(params: Mapping[str, Any]) -> dict[str, Any]:
    # CoinGecko wants lowercase booleans; httpx would send "True"
    out: dict[str, Any] = {}
    for k, v in params.items():
        if v is None:
            continue
        out[k] = str(v).lower() if isinstance(v, bool) else v
    return out


def provider_error_message(response: httpx.Response) -> Optional[str]:
    """Pull the provider's own error text out of an error body, if it sent one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None

    status = body.get("status")
    if isinstance(status, dict) and status.get("error_message"):
        return str(status["error_message"])
    if body.get("error"):
        return str(body["error"])
    return None


class CoinGeckoClient:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        s = settings or get_settings()
        headers = {
            "Accept": "application/json",
            "User-Agent": s.COINGECKO_USER_AGENT,
        }
        if s.COINGECKO_API_KEY:
            headers[API_KEY_HEADER] = s.COINGECKO_API_KEY

        self._client = httpx.AsyncClient(
            base_url=s.COINGECKO_BASE_URL,
            headers=headers,
            timeout=s.UPSTREAM_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        try:
            response = await self._client.get(path, params=_encode_params(params or {}))
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout(f"CoinGecko timed out on {path}") from exc
        except httpx.HTTPStatusError as exc:
            provider_msg = provider_error_message(exc.response)
            raise UpstreamHttpError(
                provider_msg or f"CoinGecko returned HTTP {exc.response.status_code} on {path}",
                status_code=exc.response.status_code,
                provider_message=provider_msg,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Unable to reach CoinGecko: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamMalformed(f"CoinGecko sent a non-JSON body on {path}") from exc

    async def get_markets(
        self,
        *,
        ids: list[str] | None = None,
        per_page: int = 10,
        page: int | None = 1,
        vs_currency: str = "usd",
        order: str = "market_cap_desc",
    ) -> Any:
        params = {
            "vs_currency": vs_currency,
            "order": order,
            "per_page": per_page,
            "page": page,
            "sparkline": False,
            "price_change_percentage": PRICE_CHANGE_WINDOWS,
        }
        if ids:
            params["ids"] = ",".join(ids)
        return await self._get("/coins/markets", params)

    async def search(self, query: str) -> Any:
        return await self._get("/search", {"query": query})

    async def get_coin(self, coin_id: str) -> Any:
        return await self._get(
            f"/coins/{coin_id}",
            {
                "localization": False,
                "tickers": False,
                "market_data": True,
                "community_data": False,
                "developer_data": False,
                "sparkline": False,
            },
        )

    async def get_market_chart(self, coin_id: str, *, days: int = 2, vs_currency: str = "usd") -> Any:
        return await self._get(f"/coins/{coin_id}/market_chart", {"vs_currency": vs_currency, "days": days})
