from __future__ import annotations

"""On-Chain Metrics Toolkit
==========================

An Agno-compatible toolkit that summarizes on-chain activity for a Solana
token by combining three independent analyses:

- **Transaction patterns**: the last 100 signatures touching the mint and the
  resulting transactions-per-hour rate
- **Whale activity**: a shallow holder scan (3 pages of 20 accounts) through
  the token holders toolkit
- **Liquidity metrics**: price, liquidity and volume from the market toolkit

``analyze_onchain_metrics`` runs all three concurrently and keeps every
sub-result whether or not its siblings succeeded.
"""

import asyncio
import os
from pathlib import Path
from typing import Any, Dict, Optional

from agno.tools import Toolkit
from loguru import logger

from ..base import BaseAPIToolkit, BaseDataToolkit, BaseSolanaRPCToolkit
from ..utils import DataValidator, RetryPolicy
from ..utils.data_validator import SignatureInfo
from .dexscreener_toolkit import DexScreenerToolkit
from .token_holders_toolkit import TokenHoldersToolkit

__all__ = ["OnChainMetricsToolkit"]

SIGNATURE_LIMIT = 100
RECENT_SIGNATURES = 10
WHALE_SCAN_PAGES = 3
WHALE_SCAN_PAGE_SIZE = 20

SUB_ANALYSES = ("transaction_patterns", "whale_activity", "liquidity_metrics")


class OnChainMetricsToolkit(Toolkit, BaseDataToolkit, BaseAPIToolkit, BaseSolanaRPCToolkit):
    """On-Chain Metrics Toolkit

    Composes the holders and market toolkits with direct RPC signature
    lookups. Pass existing toolkits to share their HTTP clients and caches.
    """

    _toolkit_category = "blockchain"
    _toolkit_type = "analytics"
    _toolkit_icon = "⛓️"

    def __init__(
        self,
        rpc_url: str | None = None,
        helius_api_key: str | None = None,
        holders_toolkit: Optional[TokenHoldersToolkit] = None,
        market_toolkit: Optional[DexScreenerToolkit] = None,
        retry_policy: Optional[RetryPolicy] = None,
        data_dir: str | Path = "./data/onchain",
        http_client: Optional[Any] = None,
        http_timeout: float = 30.0,
        name: str = "onchain_metrics_toolkit",
        **kwargs: Any,
    ):
        """Initialize the On-Chain Metrics Toolkit.

        Args:
            rpc_url: Solana RPC URL. If None, reads SOLANA_RPC_URL.
            helius_api_key: Helius API key. If None, reads HELIUS_API_KEY.
            holders_toolkit: Toolkit used for the whale scan (created if None)
            market_toolkit: Toolkit used for liquidity metrics (created if None)
            retry_policy: Backoff for signature lookups (default: default preset)
            data_dir: Directory for snapshots
            http_client: Shared DataHTTPClient
            http_timeout: HTTP request timeout in seconds
            name: Name identifier for this toolkit instance
            **kwargs: Additional arguments passed to Toolkit
        """
        self._policy = retry_policy or RetryPolicy.preset("default")

        self._init_standard_configuration(http_timeout=http_timeout, http_client=http_client)
        self._init_rpc_helpers(
            rpc_url=rpc_url or os.getenv("SOLANA_RPC_URL"),
            helius_api_key=helius_api_key or os.getenv("HELIUS_API_KEY"),
        )

        self.holders_toolkit = holders_toolkit or TokenHoldersToolkit(
            helius_api_key=self._helius_api_key,
            rpc_url=self._rpc_url,
            http_client=self._http_client,
        )
        self.market_toolkit = market_toolkit or DexScreenerToolkit(http_client=self._http_client)

        available_tools = [
            self.analyze_transaction_patterns,
            self.analyze_whale_activity,
            self.analyze_liquidity_metrics,
            self.analyze_onchain_metrics,
        ]

        super().__init__(name=name, tools=available_tools, **kwargs)

        self._init_data_helpers(data_dir, toolkit_name="onchain_metrics", source_tag="on_chain")

        logger.debug("Initialized OnChainMetricsToolkit")

    async def analyze_transaction_patterns(self, address: str) -> Dict[str, Any]:
        """Summarize the most recent transactions touching a token mint.

        Args:
            address: SPL token mint address

        Returns:
            dict: Envelope with total_transactions, recent_signatures and
            transaction_frequency (transactions per hour over the sampled span)
        """
        try:
            raw = await self._rpc(
                "getSignaturesForAddress",
                [address, {"limit": SIGNATURE_LIMIT}],
                policy=self._policy,
            )
            signatures = DataValidator.parse_list(SignatureInfo, raw, "getSignaturesForAddress")
        except Exception as e:
            logger.error(f"Transaction pattern analysis failed for {address}: {e}")
            return self.response_builder.error_response(
                f"Failed to analyze transaction patterns: {e}",
                error_type="api_error",
            )

        patterns = {
            "total_transactions": len(signatures),
            "recent_signatures": [s.signature for s in signatures[:RECENT_SIGNATURES]],
            "failed_transactions": sum(1 for s in signatures if s.err is not None),
            "transaction_frequency": 0.0,
            "large_transactions": 0,
        }

        if len(signatures) > 1:
            # Signatures arrive newest first
            newest = signatures[0].blockTime or 0
            oldest = signatures[-1].blockTime or 0
            time_span = newest - oldest
            if time_span > 0:
                patterns["transaction_frequency"] = round(len(signatures) / (time_span / 3600), 2)

        return self.response_builder.success_response(data=patterns, data_source="solana_rpc")

    async def analyze_whale_activity(self, address: str) -> Dict[str, Any]:
        """Summarize holder concentration from a shallow holder scan.

        Uses full enumeration limited to 3 pages of 20 accounts. A scan that
        fails without partial data is retried in basic mode.

        Args:
            address: SPL token mint address

        Returns:
            dict: Envelope with total_holders, top_holders,
            concentration_percentage and distribution
        """
        holders = await self.holders_toolkit.fetch_all_token_holders(
            address,
            page_size=WHALE_SCAN_PAGE_SIZE,
            max_pages=WHALE_SCAN_PAGES,
            save_to_file=False,
        )
        if not holders["success"] and holders.get("data") is None:
            logger.info(f"Holder scan unavailable for {address} ({holders['error']}), using basic mode")
            holders = await self.holders_toolkit.fetch_basic_token_holders(address)

        data = holders.get("data")
        if data is None:
            logger.error(f"Whale activity analysis failed for {address}: {holders['error']}")
            return self.response_builder.error_response(
                f"Failed to analyze whale activity: {holders['error']}",
                error_type=holders.get("error_type", "api_error"),
            )

        if "largest_accounts" in data:
            whale = {
                "total_holders": data["holder_count"],
                "top_holders": [
                    {"owner": account["address"], "balance": account["amount"]}
                    for account in data["largest_accounts"]
                ],
                "concentration_percentage": 0,
                "distribution": {},
            }
        else:
            whale = {
                "total_holders": data["unique_holder_count"],
                "top_holders": data["top_holders"],
                "concentration_percentage": data["top10_concentration_percent"],
                "distribution": data["holders_by_balance_range"],
            }
        whale["data_source"] = holders.get("data_source")

        return self.response_builder.success_response(data=whale, data_source=whale["data_source"])

    async def analyze_liquidity_metrics(self, address: str) -> Dict[str, Any]:
        """Price, liquidity and volume for a token from the market toolkit.

        Args:
            address: SPL token mint address

        Returns:
            dict: Envelope with source, price_usd, liquidity_usd, volume_24h
            and data_timestamp
        """
        market = await self.market_toolkit.get_market_data(address)
        if not market["success"]:
            return self.response_builder.error_response(
                f"Failed to analyze liquidity metrics: {market['error']}",
                error_type=market.get("error_type", "api_error"),
            )

        data = market["data"]
        liquidity = {
            "source": market.get("data_source"),
            "price_usd": data["price_usd"],
            "liquidity_usd": data["liquidity_usd"],
            "volume_24h": data["volume_24h"],
            "data_timestamp": self.now_iso(),
        }
        return self.response_builder.success_response(data=liquidity, data_source=market.get("data_source"))

    async def analyze_onchain_metrics(self, address: str) -> Dict[str, Any]:
        """Run every on-chain analysis concurrently and merge the results.

        A sub-analysis that raises is recorded as
        ``{"success": False, "error": "Analysis failed"}``; the others keep
        their real results. Convenience fields are lifted to the top of
        ``data`` from whichever sub-result succeeded.

        Args:
            address: SPL token mint address

        Returns:
            dict: Envelope whose data holds transaction_patterns,
            whale_activity, liquidity_metrics, the lifted fields and a timestamp
        """
        try:
            address = self._resolve_identifier(
                address, "token address",
                resolver_func=lambda a: a if DataValidator.is_solana_address(a) else None,
            )
        except ValueError as e:
            return self.response_builder.validation_error_response("address", address, [str(e)])

        logger.info(f"Running on-chain analyses for {address}")
        outcomes = await asyncio.gather(
            self.analyze_transaction_patterns(address),
            self.analyze_whale_activity(address),
            self.analyze_liquidity_metrics(address),
            return_exceptions=True,
        )

        merged: Dict[str, Any] = {}
        for key, outcome in zip(SUB_ANALYSES, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"On-chain sub-analysis {key} raised for {address}: {outcome}")
                merged[key] = {"success": False, "error": "Analysis failed"}
            else:
                merged[key] = outcome

        def lifted(key: str, field: str) -> Any:
            sub = merged[key]
            return sub["data"].get(field) if sub.get("success") and sub.get("data") else None

        merged.update({
            "total_transactions": lifted("transaction_patterns", "total_transactions"),
            "transaction_frequency": lifted("transaction_patterns", "transaction_frequency"),
            "total_holders": lifted("whale_activity", "total_holders"),
            "concentration_percentage": lifted("whale_activity", "concentration_percentage"),
            "liquidity_usd": lifted("liquidity_metrics", "liquidity_usd"),
            "volume_24h": lifted("liquidity_metrics", "volume_24h"),
            "timestamp": self.now_iso(),
        })

        succeeded = [key for key in SUB_ANALYSES if merged[key].get("success")]
        if not succeeded:
            return self.response_builder.error_response(
                "Failed to analyze on-chain metrics: every analysis failed",
                error_type="api_error",
                data=merged,
            )

        return self.response_builder.success_response(
            data=merged,
            message=f"{len(succeeded)}/{len(SUB_ANALYSES)} on-chain analyses succeeded",
        )

    async def aclose(self):
        """Close all HTTP clients and clean up resources."""
        await self._http_client.aclose()
        logger.debug("Closed OnChainMetricsToolkit and all clients")
