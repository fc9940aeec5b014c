from __future__ import annotations

import argparse
import asyncio
import json

from cryptopulse.services.coingecko import CoinGeckoClient
from cryptopulse.services.details import get_coin_detail
from cryptopulse.services.resolver import CoinResolver


async def execute(search: str, coin: str | None) -> None:
    client = CoinGeckoClient()
    try:
        if coin:
            detail = await get_coin_detail(client, coin)
            print(json.dumps(
                {
                    "id": detail.id,
                    "name": getattr(detail, "name", None),
                    "history_points": len(detail.price_history_24h),
                },
                indent=2,
            ))
            return

        coins = await CoinResolver(client).resolve(search)
        for rank, snap in enumerate(coins, start=1):
            print(f"{rank:>2}. {snap.id:<24} {snap.symbol or '':<8} {snap.current_price}")
        print(f"✅ {len(coins)} coins")
    finally:
        await client.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description="One-off CoinGecko fetch through the resolver")
    parser.add_argument("--search", default="", help="free-text term; empty = top by market cap")
    parser.add_argument("--coin", default=None, help="coin id to fetch detail for instead")
    args = parser.parse_args()
    asyncio.run(execute(args.search, args.coin))


if __name__ == "__main__":
    main()
