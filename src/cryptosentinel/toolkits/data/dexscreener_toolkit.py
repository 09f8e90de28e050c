from __future__ import annotations

"""DexScreener Market Data Toolkit
=================================

An Agno-compatible toolkit that reports price, liquidity, volume and trading
activity for a Solana token from DexScreener trading pairs.

## Providers

Queried in order, the first one returning pairs for the token wins:

1. ``GET /latest/dex/tokens/{address}`` (``{"pairs": [...]}``)
2. ``GET /token-pairs/v1/solana/{address}`` (a bare list of pairs)

## Pair orientation

DexScreener prices a pair as *base in units of quote*. When the requested token
is the quote side of the most liquid pair every directional field is flipped:

- ``price_native`` becomes ``1 / priceNative``
- ``price_usd`` becomes ``priceUsd / priceNative``
- price changes are negated
- 24h buys and sells swap
- name and symbol come from the quote token

Market cap and FDV describe the base token, so they are reported as 0 for the
quote side.

## Response Format

```json
{
  "success": true,
  "data": {
    "token_name": "Bonk",
    "token_symbol": "BONK",
    "price_usd": 0.0000213,
    "liquidity_usd": 4120345.2,
    "price_change": {"h1": -0.4, "h24": 3.1},
    "transactions": {"h24": {"buys": 5231, "sells": 4870}},
    "buy_sell_ratio": 1.07,
    "token_side": "base"
  },
  "source_tag": "market",
  "data_source": "dexscreener_tokens"
}
```
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from agno.tools import Toolkit
from loguru import logger

from ..base import BaseAPIToolkit, BaseDataToolkit
from ..utils import DataValidator, RetryPolicy
from ..utils.data_validator import DexPair, DexScreenerTokensResponse

__all__ = ["DexScreenerToolkit"]

DEXSCREENER_ENDPOINT = "dexscreener"
DEXSCREENER_BASE_URL = "https://api.dexscreener.com"

# (data_source tag, path template), in priority order
MARKET_PROVIDERS: Tuple[Tuple[str, str], ...] = (
    ("dexscreener_tokens", "/latest/dex/tokens/{address}"),
    ("dexscreener_token_pairs", "/token-pairs/v1/solana/{address}"),
)

NO_PAIRS_ERROR = "No trading pairs found for this token"


def _num(value: Any) -> float:
    return float(value or 0)


def orient_pair(pair: DexPair, address: str) -> Dict[str, Any]:
    """Express a pair's directional fields from the point of view of ``address``.

    Args:
        pair: Validated DexScreener pair
        address: Mint address of the token being analyzed

    Returns:
        dict: ``side`` ("base" or "quote"), token identity, counter-token symbol,
        prices, price changes and 24h buys/sells for the requested token
    """
    price_native = _num(pair.priceNative)
    price_usd = _num(pair.priceUsd)
    h1 = _num(pair.priceChange.get("h1"))
    h24 = _num(pair.priceChange.get("h24"))
    txns = pair.txns.get("h24")
    buys, sells = (txns.buys, txns.sells) if txns else (0, 0)

    is_quote = pair.quoteToken.address == address and pair.baseToken.address != address
    if not is_quote:
        return {
            "side": "base",
            "token": pair.baseToken,
            "counter_symbol": pair.quoteToken.symbol,
            "price_usd": price_usd,
            "price_native": price_native,
            "h1": h1,
            "h24": h24,
            "buys": buys,
            "sells": sells,
        }

    return {
        "side": "quote",
        "token": pair.quoteToken,
        "counter_symbol": pair.baseToken.symbol,
        "price_usd": price_usd / price_native if price_native else 0.0,
        "price_native": 1 / price_native if price_native else 0.0,
        "h1": -h1,
        "h24": -h24,
        "buys": sells,
        "sells": buys,
    }


class DexScreenerToolkit(Toolkit, BaseDataToolkit, BaseAPIToolkit):
    """DexScreener Market Data Toolkit

    Resolves the most liquid trading pair for a token across an ordered list
    of DexScreener endpoints and returns oriented market data. Results are
    cached per address for ``cache_ttl_seconds``.
    """

    _toolkit_category = "market"
    _toolkit_type = "price"
    _toolkit_icon = "📈"

    def __init__(
        self,
        base_url: str = DEXSCREENER_BASE_URL,
        retry_policy: Optional[RetryPolicy] = None,
        cache_ttl_seconds: int = 300,
        data_dir: str | Path = "./data/market",
        http_client: Optional[Any] = None,
        http_timeout: float = 15.0,
        name: str = "dexscreener_toolkit",
        **kwargs: Any,
    ):
        """Initialize the DexScreener Toolkit.

        Args:
            base_url: DexScreener API base URL
            retry_policy: Backoff per provider request (default: dexscreener preset)
            cache_ttl_seconds: How long a market snapshot is reused
            data_dir: Directory for snapshots
            http_client: Shared DataHTTPClient
            http_timeout: HTTP request timeout in seconds
            name: Name identifier for this toolkit instance
            **kwargs: Additional arguments passed to Toolkit
        """
        self.base_url = base_url.rstrip("/")
        self._policy = retry_policy or RetryPolicy.preset("dexscreener")

        self._init_standard_configuration(
            http_timeout=http_timeout,
            retry_policy=self._policy,
            cache_ttl_seconds=cache_ttl_seconds,
            http_client=http_client,
        )

        available_tools = [
            self.get_market_data,
        ]

        super().__init__(name=name, tools=available_tools, **kwargs)

        self._init_data_helpers(data_dir, toolkit_name="dexscreener", source_tag="market")

        logger.debug(f"Initialized DexScreenerToolkit with {len(MARKET_PROVIDERS)} providers")

    async def _ensure_endpoint(self) -> None:
        if DEXSCREENER_ENDPOINT not in self._http_client.get_endpoints():
            await self._http_client.add_endpoint(
                DEXSCREENER_ENDPOINT,
                self.base_url,
                headers={"Accept": "application/json", "User-Agent": "CryptoSentinel/1.0"},
            )

    async def _fetch_pairs(self, provider: str, path_template: str, address: str) -> List[DexPair]:
        """Fetch and validate the pairs one provider reports for ``address``."""
        await self._ensure_endpoint()
        raw = await self._http_client.get(
            DEXSCREENER_ENDPOINT,
            path_template.format(address=address),
            policy=self._policy,
        )

        if provider == "dexscreener_token_pairs":
            pairs = DataValidator.parse_list(DexPair, raw, provider)
        else:
            pairs = DataValidator.parse(DexScreenerTokensResponse, raw, provider).pairs or []

        return [p for p in pairs if address in (p.baseToken.address, p.quoteToken.address)]

    def _links_for(self, address: str, pairs: List[DexPair]) -> Dict[str, Any]:
        # Pair info (website, socials) belongs to the base token
        for pair in pairs:
            if pair.baseToken.address == address and pair.info is not None:
                return {
                    "website": pair.info.websites[0].url if pair.info.websites else None,
                    "socials": [link.model_dump() for link in pair.info.socials],
                }
        return {"website": None, "socials": []}

    def _build_market_data(self, address: str, pairs: List[DexPair], provider: str) -> Dict[str, Any]:
        ranked = sorted(pairs, key=lambda p: p.liquidity_usd, reverse=True)
        main_pair = ranked[0]
        view = orient_pair(main_pair, address)
        token = view["token"]
        is_base = view["side"] == "base"

        market = {
            "source": "dexscreener",
            "provider": provider,
            "token_name": token.name,
            "token_symbol": token.symbol,
            "token_address": token.address,
            "token_side": view["side"],
            "price_usd": view["price_usd"],
            "price_native": view["price_native"],
            "quote_token": view["counter_symbol"],
            "market_cap": _num(main_pair.marketCap) if is_base else 0.0,
            "fdv": _num(main_pair.fdv) if is_base else 0.0,
            "liquidity_usd": main_pair.liquidity_usd,
            "volume_24h": _num(main_pair.volume.get("h24")),
            "price_change": {"h1": view["h1"], "h24": view["h24"]},
            "transactions": {"h24": {"buys": view["buys"], "sells": view["sells"]}},
            "pair_address": main_pair.pairAddress,
            "dex": main_pair.dexId,
            "links": {"dexscreener": main_pair.url, **self._links_for(address, ranked)},
            "all_pairs": [],
            "timestamp": self.now_iso(),
        }

        for pair in ranked:
            pair_view = orient_pair(pair, address)
            market["all_pairs"].append({
                "dex": pair.dexId,
                "pair_address": pair.pairAddress,
                "quote_token": pair_view["counter_symbol"],
                "token_side": pair_view["side"],
                "price_usd": pair_view["price_usd"],
                "liquidity_usd": pair.liquidity_usd,
                "volume_24h": _num(pair.volume.get("h24")),
            })

        if view["sells"] > 0:
            market["buy_sell_ratio"] = round(view["buys"] / view["sells"], 2)

        return market

    async def get_market_data(self, address: str) -> Dict[str, Any]:
        """Get market data for a Solana token from its most liquid pair.

        Args:
            address: SPL token mint address

        Returns:
            dict: Market envelope; ``data_source`` names the provider that answered.
            Fails with "No trading pairs found for this token" when every
            provider answered without pairs.
        """
        try:
            address = self._resolve_identifier(
                address, "token address",
                resolver_func=lambda a: a if DataValidator.is_solana_address(a) else None,
            )
        except ValueError as e:
            return self.response_builder.validation_error_response("address", address, [str(e)])

        cache_key = f"market:{address}"
        cached = self._get_cached_data(cache_key)
        if cached is not None:
            logger.debug(f"Market data cache hit for {address}")
            return self.response_builder.success_response(
                data=cached["data"], data_source=cached["data_source"], cached=True, token=address
            )

        errors: List[str] = []
        for provider, path_template in MARKET_PROVIDERS:
            try:
                pairs = await self._fetch_pairs(provider, path_template, address)
            except Exception as e:
                logger.warning(f"{provider} failed for {address}: {e}")
                errors.append(f"{provider}: {e}")
                continue

            if not pairs:
                logger.info(f"{provider} returned no pairs for {address}")
                continue

            market = self._build_market_data(address, pairs, provider)
            self._cache_data(cache_key, {"data": market, "data_source": provider})

            logger.success(
                f"{market['token_symbol']}: ${market['price_usd']} "
                f"({market['token_side']} side of {market['pair_address']}, {len(pairs)} pairs)"
            )
            return self.response_builder.success_response(
                data=market,
                message=f"Found {len(pairs)} trading pairs",
                data_source=provider,
                token=address,
            )

        if len(errors) == len(MARKET_PROVIDERS):
            logger.error(f"All market providers failed for {address}")
            return self.response_builder.error_response(
                f"Failed to fetch DexScreener data: {'; '.join(errors)}",
                error_type="api_error",
                data_source="failed",
                token=address,
            )

        return self.response_builder.error_response(
            NO_PAIRS_ERROR,
            error_type="not_found",
            data_source="none",
            token=address,
        )

    async def aclose(self):
        """Close all HTTP clients and clean up resources."""
        await self._http_client.aclose()
        logger.debug("Closed DexScreenerToolkit and all clients")
