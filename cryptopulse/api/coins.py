from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from cryptopulse.api.deps import get_cache, get_client
from cryptopulse.schemas.market import CoinDetail, ErrorPayload, MarketSnapshot, SuggestionEntry
from cryptopulse.services.coingecko import CoinGeckoClient
from cryptopulse.services.details import get_coin_detail
from cryptopulse.services.errors import UpstreamError
from cryptopulse.services.suggestions import suggest_coins
from cryptopulse.utils.cache import CoinCache

logger = logging.getLogger("cryptopulse.api")

router = APIRouter(prefix="/api", tags=["coins"], responses={500: {"model": ErrorPayload}})


def _server_error(error: Optional[str] = None) -> JSONResponse:
    payload = ErrorPayload(status=500, message="Internal server error", error=error)
    return JSONResponse(status_code=500, content=payload.model_dump(exclude_none=True))


@router.get("", response_model=list[MarketSnapshot])
@router.get("/coins", response_model=list[MarketSnapshot])
async def list_coins(search: str = "", cache: CoinCache = Depends(get_cache)):
    """
    Top 10 by market cap, or the 10 best matches for ?search= in search-rank order.
    Example: /api/coins?search=bitcoin
    """
    try:
        return await cache.get(search)
    except Exception:
        logger.exception("coin list failed | search=%r", search)
        return _server_error()


@router.get("/suggestions", response_model=list[SuggestionEntry])
async def suggestions(q: str = "", client: CoinGeckoClient = Depends(get_client)):
    return await suggest_coins(client, q)


@router.get("/coin", response_model=CoinDetail)
@router.get("/coin/{coin_id}", response_model=CoinDetail)
async def coin_detail(
    coin_id: Optional[str] = None,
    id: Optional[str] = None,
    client: CoinGeckoClient = Depends(get_client),
):
    """
    Full coin payload plus priceHistory24h ([ts_ms, price] pairs, 2 days).
    Example: /api/coin/bitcoin
    """
    coin_id = (coin_id or id or "").strip()
    if not coin_id:
        return JSONResponse(status_code=400, content={"error": "Coin ID is required"})

    try:
        return await get_coin_detail(client, coin_id)
    except UpstreamError as e:
        logger.error("coin detail failed | id=%s | %s", coin_id, e.message)
        return _server_error(e.message)
    except Exception as e:
        logger.exception("coin detail failed | id=%s", coin_id)
        return _server_error(str(e))
