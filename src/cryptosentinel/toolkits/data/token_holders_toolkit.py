from __future__ import annotations

"""Solana Token Holders Toolkit
==============================

An Agno-compatible toolkit that enumerates the holders of an SPL token and
summarizes how concentrated its supply is.

## Modes

**Full enumeration** (``fetch_all_token_holders``)
- Pages through Helius ``getTokenAccounts`` with the paginated collector
- Each page retried with the ``holder_pages`` backoff preset
- Requires ``HELIUS_API_KEY``
- Partial results survive a failed page (``data_source: failed_with_partial_data``)

**Basic** (``fetch_basic_token_holders``)
- One small Helius page, retried directly, good enough for an approximate top 10
- Falls back to the public RPC ``getTokenLargestAccounts`` without a key or on failure

## Environment Variables

- `HELIUS_API_KEY`: Helius API key (required for full enumeration)
- `SOLANA_RPC_URL`: Solana RPC node (default: https://api.mainnet-beta.solana.com)

## Response Format

```json
{
  "success": true,
  "data": {
    "unique_holder_count": 1523,
    "token_accounts_count": 1611,
    "top_holders": [{"owner": "...", "balance": 1250000.0}],
    "top10_concentration_percent": 61.42,
    "holders_by_balance_range": {"Whales (>1%)": 9, "...": 0},
    "balance_units": "tokens"
  },
  "error": null,
  "source_tag": "token_holders",
  "data_source": "helius_paginated"
}
```
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from agno.tools import Toolkit
from loguru import logger

from ...exceptions import CollectionAbortedError
from ..base import BaseAPIToolkit, BaseDataToolkit, BaseSolanaRPCToolkit
from ..utils import (
    AccountRecord,
    CollectionResult,
    CollectorConfig,
    DataValidator,
    PageResult,
    RetryPolicy,
    StatisticalAnalyzer,
    collect_all_pages,
    retry_with_backoff,
)
from ..utils.data_validator import HeliusTokenAccount, HeliusTokenAccountsResult, LargestAccountsResult

__all__ = ["TokenHoldersToolkit"]

DEFAULT_DATA_DIR = Path("data") / "holders"
DEFAULT_PAGE_SIZE = 1000
DEFAULT_BASIC_PAGE_SIZE = 20
TOP_HOLDERS_LIMIT = 10


class TokenHoldersToolkit(Toolkit, BaseDataToolkit, BaseAPIToolkit, BaseSolanaRPCToolkit):
    """Solana Token Holders Toolkit

    Enumerates holders of an SPL token through Helius and the Solana RPC and
    computes the holder aggregate: unique holders, stable top-10 ranking,
    top-10 concentration, four balance buckets and the Gini coefficient.

    Percentages are computed against the sum of observed account balances.
    That sum only approximates the real supply, and covers only the pages
    actually fetched when ``max_pages`` limits the scan.
    """

    _toolkit_category = "blockchain"
    _toolkit_type = "analytics"
    _toolkit_icon = "👥"

    def __init__(
        self,
        helius_api_key: str | None = None,
        rpc_url: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = 0,
        delay_between_pages: float = 1.5,
        basic_page_size: int = DEFAULT_BASIC_PAGE_SIZE,
        page_retry_policy: Optional[RetryPolicy] = None,
        basic_retry_policy: Optional[RetryPolicy] = None,
        save_to_file: bool = False,
        data_dir: str | Path = DEFAULT_DATA_DIR,
        http_client: Optional[Any] = None,
        http_timeout: float = 30.0,
        name: str = "token_holders_toolkit",
        **kwargs: Any,
    ):
        """Initialize the Token Holders Toolkit.

        Args:
            helius_api_key: Helius API key. If None, reads HELIUS_API_KEY. Without
                it only basic mode (via public RPC) is available.
            rpc_url: Solana RPC URL. If None, reads SOLANA_RPC_URL.
            page_size: Accounts per page in full enumeration (max 1000)
            max_pages: Page limit for full enumeration (0 = unlimited)
            delay_between_pages: Pacing delay between page requests in seconds
            basic_page_size: Accounts fetched in basic mode
            page_retry_policy: Backoff for each page (default: holder_pages preset)
            basic_retry_policy: Backoff for basic mode (default: basic_holders preset)
            save_to_file: Write ``<data_dir>/<token>_holders.json`` after full enumeration
            data_dir: Directory for holder snapshots
            http_client: Shared DataHTTPClient
            http_timeout: HTTP request timeout in seconds
            name: Name identifier for this toolkit instance
            **kwargs: Additional arguments passed to Toolkit

        Example:
            ```python
            toolkit = TokenHoldersToolkit(helius_api_key="...", max_pages=10)
            holders = await toolkit.fetch_all_token_holders(
                "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
            )
            ```
        """
        if not 1 <= page_size <= 1000:
            raise ValueError("page_size must be between 1 and 1000")
        if max_pages < 0:
            raise ValueError("max_pages must be >= 0")

        self.page_size = page_size
        self.max_pages = max_pages
        self.delay_between_pages = delay_between_pages
        self.basic_page_size = basic_page_size
        self.save_to_file = save_to_file
        self._page_policy = page_retry_policy or RetryPolicy.preset("holder_pages")
        self._basic_policy = basic_retry_policy or RetryPolicy.preset("basic_holders")

        self._init_standard_configuration(http_timeout=http_timeout, http_client=http_client)
        self._init_rpc_helpers(
            rpc_url=rpc_url or os.getenv("SOLANA_RPC_URL"),
            helius_api_key=helius_api_key or os.getenv("HELIUS_API_KEY"),
        )

        available_tools = [
            self.fetch_all_token_holders,
            self.fetch_basic_token_holders,
            self.analyze_token_holders,
        ]

        super().__init__(name=name, tools=available_tools, **kwargs)

        self._init_data_helpers(data_dir, toolkit_name="token_holders", source_tag="token_holders")

        logger.debug(
            f"Initialized TokenHoldersToolkit (helius={'yes' if self.has_helius else 'no'}, "
            f"page_size={page_size}, max_pages={max_pages or 'unlimited'})"
        )

    def _validate_mint(self, token: str) -> Optional[str]:
        return token if DataValidator.is_solana_address(token) else None

    async def _fetch_token_accounts_page(
        self, token: str, page_number: int, limit: int, retry: bool, decimals: Optional[int] = None,
    ) -> PageResult:
        """Fetch and parse one ``getTokenAccounts`` page.

        Helius rows carry raw base-unit amounts and no decimals, so balances
        are only scaled when the mint's ``decimals`` is passed in.
        """
        raw = await self._helius_rpc(
            "getTokenAccounts",
            {"page": page_number, "limit": limit, "displayOptions": {}, "mint": token},
            policy=self._basic_policy,
            request_id="helius-token-holders",
            retry=retry,
        )
        result = DataValidator.parse(HeliusTokenAccountsResult, raw, "helius getTokenAccounts")
        accounts = DataValidator.parse_items_lenient(HeliusTokenAccount, result.token_accounts, "helius getTokenAccounts")

        records = [
            AccountRecord(
                owner=a.owner,
                account=a.address,
                amount=a.amount,
                decimals=a.decimals if decimals is None else decimals,
            )
            for a in accounts
        ]
        return PageResult(page_number=page_number, page_size=limit, items=records)

    def _summarize(
        self, token: str, collection: CollectionResult, data_source: str, decimals: Optional[int] = None,
    ) -> Dict[str, Any]:
        aggregate = StatisticalAnalyzer.build_holder_aggregate(
            ((record.owner, record.ui_amount) for record in collection.records),
            total_supply=collection.total_supply_estimate,
            top_n=TOP_HOLDERS_LIMIT,
        )
        summary = aggregate.to_dict()
        summary.update({
            "token": token,
            "token_accounts_count": len(collection.records),
            "total_supply_estimate": collection.total_supply_estimate,
            "supply_is_estimate": True,
            "balance_units": "raw" if decimals is None else "tokens",
            "pages_fetched": collection.pages_fetched,
            "has_more_pages": collection.has_more_pages,
            "data_source": data_source,
        })
        return summary

    async def fetch_all_token_holders(
        self,
        token: str,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        save_to_file: Optional[bool] = None,
        decimals: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Enumerate every holder of a token through Helius pagination.

        Pages are requested one at a time until an empty page, a short page or
        the page limit. A page that exhausts its retries ends the scan; the
        pages collected before it are summarized and returned inside a failed
        envelope with ``data_source: "failed_with_partial_data"``.

        Args:
            token: SPL token mint address
            page_size: Override the configured page size
            max_pages: Override the configured page limit (0 = unlimited)
            save_to_file: Override snapshot writing
            decimals: Mint decimals used to scale balances; without it
                balances stay in raw base units (``balance_units: "raw"``)

        Returns:
            dict: Holder aggregate envelope
        """
        try:
            token = self._resolve_identifier(token, "token address", resolver_func=self._validate_mint)
        except ValueError as e:
            return self.response_builder.validation_error_response("token", token, [str(e)])

        if not self.has_helius:
            logger.error("Full holder enumeration requested without HELIUS_API_KEY")
            return self.response_builder.error_response(
                "HELIUS_API_KEY is required for this operation",
                error_type="configuration_error",
                token=token,
            )

        config = CollectorConfig(
            page_size=page_size or self.page_size,
            max_pages=self.max_pages if max_pages is None else max_pages,
            delay_between_pages=self.delay_between_pages,
            retry_policy=self._page_policy,
        )

        async def fetch_page(page_number: int) -> PageResult:
            return await self._fetch_token_accounts_page(token, page_number, config.page_size, retry=False, decimals=decimals)

        logger.info(f"Analyzing holders of {token} (page_size={config.page_size}, max_pages={config.max_pages or 'unlimited'})")

        try:
            collection = await collect_all_pages(fetch_page, config, description=f"Holder page for {token[:8]}")
        except CollectionAbortedError as e:
            partial = self._summarize(token, e.partial_result, "failed_with_partial_data", decimals)
            logger.error(f"Holder enumeration for {token} aborted at page {e.page_number}: {e.cause}")
            return self.response_builder.error_response(
                f"Holder enumeration aborted at page {e.page_number}: {e.cause}",
                error_type="partial_data",
                data=partial,
                data_source="failed_with_partial_data",
                token=token,
            )

        summary = self._summarize(token, collection, "helius_paginated", decimals)

        if self.save_to_file if save_to_file is None else save_to_file:
            try:
                summary["file_path"] = self._store_json(summary, f"{token}_holders")
            except OSError as e:
                logger.warning(f"Could not save holder snapshot for {token}: {e}")

        logger.success(
            f"{token}: {summary['unique_holder_count']} holders, "
            f"top 10 hold {summary['top10_concentration_percent']}%"
        )
        return self.response_builder.success_response(
            data=summary,
            message=f"Collected {summary['unique_holder_count']} holders over {collection.pages_fetched} pages",
            data_source="helius_paginated",
            token=token,
        )

    async def fetch_basic_token_holders(self, token: str, decimals: Optional[int] = None) -> Dict[str, Any]:
        """Approximate top holders from a single small request.

        Uses one Helius ``getTokenAccounts`` page when a key is configured,
        otherwise (or when Helius fails) the RPC ``getTokenLargestAccounts``.

        Args:
            token: SPL token mint address
            decimals: Mint decimals for scaling Helius balances

        Returns:
            dict: Envelope with ``holder_count`` and ``top_holders`` or ``largest_accounts``
        """
        try:
            token = self._resolve_identifier(token, "token address", resolver_func=self._validate_mint)
        except ValueError as e:
            return self.response_builder.validation_error_response("token", token, [str(e)])

        if self.has_helius:
            try:
                page = await retry_with_backoff(
                    lambda: self._fetch_token_accounts_page(token, 1, self.basic_page_size, retry=False, decimals=decimals),
                    self._basic_policy,
                    description=f"Basic holders for {token[:8]}",
                )
                collection = CollectionResult(pages_fetched=1, has_more_pages=not page.is_last_page)
                for record in page.items:
                    collection.add(record)
                summary = self._summarize(token, collection, "helius", decimals)
                summary["holder_count"] = summary["unique_holder_count"]
                return self.response_builder.success_response(data=summary, data_source="helius", token=token)
            except Exception as e:
                logger.warning(f"Helius basic holders failed for {token}, falling back to RPC: {e}")

        try:
            raw = await self._rpc("getTokenLargestAccounts", [token], policy=self._basic_policy)
            result = DataValidator.parse(LargestAccountsResult, raw, "getTokenLargestAccounts")
            largest = [
                {
                    "address": account.address,
                    "amount": account.uiAmount if account.uiAmount is not None
                    else int(account.amount) / (10 ** account.decimals),
                }
                for account in result.value
            ]
            return self.response_builder.success_response(
                data={
                    "token": token,
                    "holder_count": len(largest),
                    "largest_accounts": largest,
                    "data_source": "solana_rpc",
                },
                data_source="solana_rpc",
                token=token,
            )
        except Exception as e:
            logger.error(f"Basic holder lookup failed for {token}: {e}")
            return self.response_builder.exception_response("getTokenLargestAccounts", e, token=token)

    async def analyze_token_holders(
        self,
        token: str,
        fetch_full_list: bool = True,
        max_pages: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Holder analysis entry point.

        Args:
            token: SPL token mint address
            fetch_full_list: Full paginated enumeration (True) or basic mode (False)
            max_pages: Page limit for full enumeration

        Returns:
            dict: Result of ``fetch_all_token_holders`` or ``fetch_basic_token_holders``
        """
        if fetch_full_list:
            return await self.fetch_all_token_holders(token, max_pages=max_pages)
        return await self.fetch_basic_token_holders(token)

    async def aclose(self):
        """Close all HTTP clients and clean up resources."""
        await self._http_client.aclose()
        logger.debug("Closed TokenHoldersToolkit and all clients")
