from __future__ import annotations

"""Solana Program & Token Mint Toolkit
=====================================

An Agno-compatible toolkit that introspects a Solana account: whether it is a
program or a token mint, who controls the mint, its Metaplex metadata,
Token-2022 extensions and recent transaction activity.

## Account layouts

**SPL mint** (82 bytes, shared by Token and Token-2022):

| Offset | Size | Field |
|--------|------|-------|
| 0  | 4  | mint authority COption tag |
| 4  | 32 | mint authority |
| 36 | 8  | supply (u64 LE) |
| 44 | 1  | decimals |
| 45 | 1  | is_initialized |
| 46 | 4  | freeze authority COption tag |
| 50 | 32 | freeze authority |

Token-2022 mints carry extension TLVs after byte 82.

**Metaplex metadata** lives at the PDA of
``["metadata", metadata_program, mint]``: key (1), update authority (32),
mint (32), then Borsh strings (u32 LE length + bytes, NUL padded) for name,
symbol and uri.

## Environment Variables

- `SOLANA_RPC_URL`: Solana RPC node (default: https://api.mainnet-beta.solana.com)
"""

import asyncio
import base64
import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from agno.tools import Toolkit
from loguru import logger
from solders.pubkey import Pubkey

from ...exceptions import StructuralUpstreamError
from ..base import BaseAPIToolkit, BaseDataToolkit, BaseSolanaRPCToolkit
from ..utils import DataValidator, RetryPolicy, StatisticalAnalyzer
from ..utils.data_validator import AccountInfoResult, AccountValue, BalanceResult, JupiterPriceResponse, SignatureInfo
from .token_holders_toolkit import TokenHoldersToolkit

__all__ = ["SolanaProgramToolkit", "parse_mint_account", "parse_metadata_account"]

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")

TOKEN_TYPES = {
    TOKEN_PROGRAM_ID: "Standard SPL Token",
    TOKEN_2022_PROGRAM_ID: "Token-2022 (Enhanced Features)",
}

MINT_ACCOUNT_SIZE = 82
LAMPORTS_PER_SOL = 10 ** 9

JUPITER_ENDPOINT = "jupiter"
JUPITER_BASE_URL = "https://lite-api.jup.ag"

PROGRAM_SECURITY_NOTE = (
    "This appears to be a program, not a token mint. Source code is not available "
    "for security analysis, which is common for Solana programs."
)

SECURITY_ANALYSIS_PROMPT = """Analyze this Solana token for security risks:

Token Data:
{token_data}

Please focus on:
1. Mint authority control - Can new tokens be minted? Is it centralized?
2. Token program type - Is it using standard SPL Token or Token-2022?
3. Supply considerations - What's the total supply? Is it reasonable?
4. Token metadata - Does the token have proper metadata?
5. Holder distribution - How concentrated is token ownership?
6. Any extensions or special features that might present risks

Provide a clear summary of security considerations and potential risks:"""


def _format_amount(raw: int, decimals: int) -> str:
    if decimals <= 0:
        return str(raw)
    whole, fraction = divmod(raw, 10 ** decimals)
    return f"{whole}.{fraction:0{decimals}d}"


def parse_mint_account(data: bytes) -> Dict[str, Any]:
    """Decode the base SPL mint layout.

    Raises:
        StructuralUpstreamError: Fewer than 82 bytes of account data
    """
    if len(data) < MINT_ACCOUNT_SIZE:
        raise StructuralUpstreamError(
            f"Mint account data is {len(data)} bytes, expected at least {MINT_ACCOUNT_SIZE}",
            source="getAccountInfo",
        )

    has_mint_authority = int.from_bytes(data[0:4], "little") == 1
    has_freeze_authority = int.from_bytes(data[46:50], "little") == 1
    raw_supply = int.from_bytes(data[36:44], "little")
    decimals = data[44]

    mint_authority = str(Pubkey.from_bytes(data[4:36])) if has_mint_authority else None
    freeze_authority = str(Pubkey.from_bytes(data[50:82])) if has_freeze_authority else None

    return {
        "mintAuthority": mint_authority,
        "canMintMore": mint_authority is not None,
        "supply": _format_amount(raw_supply, decimals),
        "rawSupply": raw_supply,
        "decimals": decimals,
        "isInitialized": bool(data[45]),
        "freezeAuthority": freeze_authority,
        "canFreeze": freeze_authority is not None,
    }


def _read_borsh_string(data: bytes, offset: int) -> Tuple[str, int]:
    if offset + 4 > len(data):
        raise StructuralUpstreamError("Metadata account truncated before string length", source="metadata")
    length = int.from_bytes(data[offset:offset + 4], "little")
    start = offset + 4
    end = start + length
    if end > len(data):
        raise StructuralUpstreamError("Metadata string runs past end of account", source="metadata")
    value = data[start:end].decode("utf-8", errors="replace").replace("\x00", "").strip()
    return value, end


def parse_metadata_account(data: bytes) -> Dict[str, str]:
    """Decode name, symbol and uri from a Metaplex metadata account."""
    # key (1) + update authority (32) + mint (32)
    offset = 1 + 32 + 32
    name, offset = _read_borsh_string(data, offset)
    symbol, offset = _read_borsh_string(data, offset)
    uri, _ = _read_borsh_string(data, offset)
    return {"name": name, "symbol": symbol, "uri": uri}


def find_metadata_address(mint: str) -> str:
    mint_key = Pubkey.from_string(mint)
    address, _bump = Pubkey.find_program_address(
        [b"metadata", bytes(METADATA_PROGRAM_ID), bytes(mint_key)],
        METADATA_PROGRAM_ID,
    )
    return str(address)


class SolanaProgramToolkit(Toolkit, BaseDataToolkit, BaseAPIToolkit, BaseSolanaRPCToolkit):
    """Solana Program & Token Mint Toolkit

    Account info is cached for ``account_cache_seconds`` so the mint,
    extension and program lookups of one analysis share a single RPC call.

    An optional ``llm_client`` (anything with ``async complete(prompt) -> str``)
    adds a written security assessment to ``analyze_solana_program``.
    """

    _toolkit_category = "blockchain"
    _toolkit_type = "contract"
    _toolkit_icon = "🔍"

    def __init__(
        self,
        rpc_url: str | None = None,
        llm_client: Optional[Any] = None,
        holders_toolkit: Optional[TokenHoldersToolkit] = None,
        retry_policy: Optional[RetryPolicy] = None,
        account_cache_seconds: int = 30,
        data_dir: str | Path = "./data/programs",
        http_client: Optional[Any] = None,
        http_timeout: float = 30.0,
        name: str = "solana_program_toolkit",
        **kwargs: Any,
    ):
        """Initialize the Solana Program Toolkit.

        Args:
            rpc_url: Solana RPC URL. If None, reads SOLANA_RPC_URL.
            llm_client: Optional completion client for the security assessment
            holders_toolkit: Toolkit used for basic holder data (created if None)
            retry_policy: Backoff for account lookups (default: default preset)
            account_cache_seconds: How long fetched account info is reused
            data_dir: Directory for snapshots
            http_client: Shared DataHTTPClient
            http_timeout: HTTP request timeout in seconds
            name: Name identifier for this toolkit instance
            **kwargs: Additional arguments passed to Toolkit
        """
        self.llm_client = llm_client
        self._policy = retry_policy or RetryPolicy.preset("default")
        self._signatures_policy = RetryPolicy.preset("basic_holders")
        self._jupiter_policy = RetryPolicy.preset("jupiter")

        self._init_standard_configuration(
            http_timeout=http_timeout,
            cache_ttl_seconds=account_cache_seconds,
            http_client=http_client,
        )
        self._init_rpc_helpers(rpc_url=rpc_url or os.getenv("SOLANA_RPC_URL"))

        self.holders_toolkit = holders_toolkit or TokenHoldersToolkit(
            rpc_url=self._rpc_url,
            http_client=self._http_client,
        )

        available_tools = [
            self.fetch_program_data,
            self.analyze_mint_authority,
            self.fetch_token_metadata,
            self.analyze_token_extensions,
            self.analyze_token_performance,
            self.analyze_solana_program,
        ]

        super().__init__(name=name, tools=available_tools, **kwargs)

        self._init_data_helpers(data_dir, toolkit_name="solana_program", source_tag="contract")

    # =========================================================================
    # RPC helpers
    # =========================================================================

    async def _get_account(self, address: str) -> Optional[AccountValue]:
        cache_key = f"account:{address}"
        cached = self._get_cached_data(cache_key)
        if cached is not None:
            return cached

        raw = await self._rpc("getAccountInfo", [address, {"encoding": "base64"}], policy=self._policy)
        account = DataValidator.parse(AccountInfoResult, raw, "getAccountInfo").value
        if account is not None:
            self._cache_data(cache_key, account)
        return account

    @staticmethod
    def _account_bytes(account: AccountValue) -> bytes:
        try:
            return base64.b64decode(account.data[0])
        except (IndexError, ValueError) as e:
            raise StructuralUpstreamError(f"Undecodable account data: {e}", source="getAccountInfo") from e

    async def _get_signatures(self, address: str, limit: int, policy: Optional[RetryPolicy] = None):
        raw = await self._rpc("getSignaturesForAddress", [address, {"limit": limit}], policy=policy or self._policy)
        return DataValidator.parse_list(SignatureInfo, raw, "getSignaturesForAddress")

    async def _fetch_jupiter_price(self, address: str) -> Optional[Dict[str, Any]]:
        if JUPITER_ENDPOINT not in self._http_client.get_endpoints():
            await self._http_client.add_endpoint(
                JUPITER_ENDPOINT, JUPITER_BASE_URL, headers={"Accept": "application/json"}
            )
        try:
            raw = await self._http_client.get(
                JUPITER_ENDPOINT, "/price/v2", params={"ids": address}, policy=self._jupiter_policy
            )
            price = DataValidator.parse(JupiterPriceResponse, raw, "jupiter price").data.get(address)
        except Exception as e:
            logger.warning(f"Jupiter price lookup failed for {address}: {e}")
            return None

        if price is None:
            logger.debug(f"Jupiter has no price for {address}")
            return None
        return {
            "price_usd": price.price,
            "source": "jupiter",
            "type": price.type,
            "timestamp": self.now_iso(),
        }

    def _validate(self, address: str) -> str:
        return self._resolve_identifier(
            address, "Solana address",
            resolver_func=lambda a: a if DataValidator.is_solana_address(a) else None,
        )

    # =========================================================================
    # Tools
    # =========================================================================

    async def fetch_program_data(self, address: str) -> Dict[str, Any]:
        """Account overview: owner, executability, balance and recent activity.

        Args:
            address: Program or token mint address

        Returns:
            dict: Envelope with programId, executable, owner, lamports,
            dataSize, balance (SOL), recent_transactions, last_transaction
            and tokenType
        """
        try:
            address = self._validate(address)
            account = await self._get_account(address)
            if account is None:
                return self.response_builder.error_response(
                    "Program not found on Solana blockchain", error_type="not_found", address=address
                )
            signatures = await self._get_signatures(address, 10)
            balance = DataValidator.parse(
                BalanceResult, await self._rpc("getBalance", [address], policy=self._policy), "getBalance"
            )
            data_size = len(self._account_bytes(account))
        except ValueError as e:
            return self.response_builder.validation_error_response("address", address, [str(e)])
        except Exception as e:
            logger.error(f"Failed to fetch Solana program {address}: {e}")
            return self.response_builder.exception_response("getAccountInfo", e, address=address)

        program = {
            "programId": address,
            "executable": account.executable,
            "owner": account.owner,
            "lamports": account.lamports,
            "dataSize": data_size,
            "balance": balance.value / LAMPORTS_PER_SOL,
            "recent_transactions": len(signatures),
            "last_transaction": signatures[0].blockTime if signatures else None,
            "tokenType": TOKEN_TYPES.get(account.owner, "Unknown"),
        }
        return self.response_builder.success_response(data=program, data_source="solana_rpc")

    async def analyze_mint_authority(self, address: str) -> Dict[str, Any]:
        """Decode mint authority, supply, decimals and freeze authority.

        Args:
            address: Token mint address

        Returns:
            dict: Envelope with mintAuthority, canMintMore, supply (decimal
            string), decimals, freezeAuthority and canFreeze
        """
        try:
            account = await self._get_account(address)
            if account is None:
                return self.response_builder.error_response(
                    "Token mint account not found", error_type="not_found", address=address
                )
            mint = parse_mint_account(self._account_bytes(account))
        except Exception as e:
            logger.error(f"Failed to analyze mint authority for {address}: {e}")
            return self.response_builder.exception_response("getAccountInfo", e, address=address)

        return self.response_builder.success_response(data=mint, data_source="solana_rpc")

    async def fetch_token_metadata(self, address: str) -> Dict[str, Any]:
        """Read Metaplex name, symbol and uri for a mint.

        Args:
            address: Token mint address

        Returns:
            dict: Envelope with name, symbol, uri and metadataAddress; fails
            with "No metadata found for this token" when the PDA is empty
        """
        try:
            metadata_address = find_metadata_address(address)
            account = await self._get_account(metadata_address)
            if account is None:
                return self.response_builder.error_response(
                    "No metadata found for this token",
                    error_type="not_found",
                    metadataAddress=metadata_address,
                )
            metadata = parse_metadata_account(self._account_bytes(account))
        except Exception as e:
            logger.error(f"Failed to fetch token metadata for {address}: {e}")
            return self.response_builder.exception_response("getAccountInfo", e, address=address)

        metadata["metadataAddress"] = metadata_address
        return self.response_builder.success_response(data=metadata, data_source="solana_rpc")

    async def analyze_token_extensions(self, address: str) -> Dict[str, Any]:
        """Report whether a Token-2022 mint carries extension data.

        Extension TLVs are detected but not decoded.
        """
        try:
            account = await self._get_account(address)
            if account is None:
                return self.response_builder.error_response(
                    "Token mint account not found", error_type="not_found", address=address
                )
            data_size = len(self._account_bytes(account))
        except Exception as e:
            logger.error(f"Failed to analyze token extensions for {address}: {e}")
            return self.response_builder.exception_response("getAccountInfo", e, address=address)

        has_extensions = account.owner == TOKEN_2022_PROGRAM_ID and data_size > MINT_ACCOUNT_SIZE
        return self.response_builder.success_response(data={
            "has_extensions": has_extensions,
            "extensions": ["Detected but not parsed"] if has_extensions else [],
        })

    async def analyze_token_performance(self, address: str) -> Dict[str, Any]:
        """Transaction momentum over the last 100 signatures plus a Jupiter price.

        ``activity_ratio`` is the 24h count scaled to a week (``day / week * 7``);
        ``activity_score`` is ``min(round(0.4*day + 0.3*week + 0.2*month + 10*ratio), 100)``.

        Args:
            address: Token mint address

        Returns:
            dict: Envelope with transaction_counts, performance_metrics,
            price_data (None when Jupiter has no price) and last_transaction
        """
        try:
            signatures = await self._get_signatures(address, 100, policy=self._signatures_policy)
        except Exception as e:
            logger.error(f"Failed to analyze token performance for {address}: {e}")
            return self.response_builder.exception_response("getSignaturesForAddress", e, address=address)

        now = time.time()
        block_times = [s.blockTime for s in signatures if s.blockTime]
        day = sum(1 for t in block_times if t > now - 86400)
        week = sum(1 for t in block_times if t > now - 7 * 86400)
        month = sum(1 for t in block_times if t > now - 30 * 86400)

        activity_ratio = day / week * 7 if week else 0.0
        activity_score = min(round(day * 0.4 + week * 0.3 + month * 0.2 + activity_ratio * 10), 100)

        avg_gap = None
        if len(block_times) > 1:
            ordered = sorted(block_times, reverse=True)
            avg_gap = round((ordered[0] - ordered[-1]) / (len(ordered) - 1))

        last_transaction = None
        if signatures:
            newest = signatures[0]
            last_transaction = {
                "signature": newest.signature,
                "time": self.unix_to_iso(newest.blockTime) if newest.blockTime else None,
            }

        performance = {
            "transaction_counts": {
                "last_24h": day,
                "last_7d": week,
                "last_30d": month,
                "total_analyzed": len(signatures),
            },
            "performance_metrics": {
                "activity_score": activity_score,
                "activity_ratio": round(activity_ratio, 2),
                "avg_time_between_txs": f"{avg_gap} seconds" if avg_gap else None,
                "trend": StatisticalAnalyzer.classify_activity_trend(activity_ratio),
            },
            "price_data": await self._fetch_jupiter_price(address),
            "last_transaction": last_transaction,
        }
        return self.response_builder.success_response(data=performance, data_source="solana_rpc")

    async def _security_assessment(self, token_data: Dict[str, Any]) -> str:
        if self.llm_client is None:
            return "Unable to perform detailed analysis"

        prompt = SECURITY_ANALYSIS_PROMPT.format(token_data=json.dumps(token_data, indent=2, default=str))
        try:
            return await self.llm_client.complete(prompt)
        except Exception as e:
            logger.error(f"Security assessment failed: {e}")
            return f"Error analyzing token security: {e}"

    async def analyze_solana_program(self, address: str) -> Dict[str, Any]:
        """Full contract analysis for a program or token mint.

        Token mints (owned by the Token or Token-2022 program) get mint,
        metadata, extension, performance and basic holder analyses plus a
        security assessment; other programs only get their account overview.

        Args:
            address: Program or token mint address

        Returns:
            dict: Envelope with program_data, token_analysis and security_analysis
        """
        program = await self.fetch_program_data(address)
        if not program["success"]:
            return self.response_builder.error_response(
                f"Failed to analyze Solana program: {program['error']}",
                error_type=program.get("error_type", "api_error"),
                address=address,
            )

        program_data = program["data"]
        address = program_data["programId"]

        if program_data["owner"] not in TOKEN_TYPES:
            logger.info(f"{address} is owned by {program_data['owner']}, not a token program")
            return self.response_builder.success_response(data={
                "program_data": program_data,
                "token_analysis": {"is_token": False},
                "security_analysis": PROGRAM_SECURITY_NOTE,
            })

        mint_info, metadata, extensions = await asyncio.gather(
            self.analyze_mint_authority(address),
            self.fetch_token_metadata(address),
            self.analyze_token_extensions(address),
        )
        performance = await self.analyze_token_performance(address)
        decimals = (mint_info.get("data") or {}).get("decimals") if mint_info.get("success") else None
        holders = await self.holders_toolkit.fetch_basic_token_holders(address, decimals=decimals)

        token_analysis = {
            "is_token": True,
            "mint_info": mint_info,
            "metadata": metadata,
            "holders": holders,
            "extensions": extensions,
            "performance": performance,
        }
        security = await self._security_assessment({
            "program_data": program_data,
            "token_analysis": token_analysis,
        })

        return self.response_builder.success_response(data={
            "program_data": program_data,
            "token_analysis": token_analysis,
            "security_analysis": security,
        })

    async def aclose(self):
        """Close all HTTP clients and clean up resources."""
        await self._http_client.aclose()
        logger.debug("Closed SolanaProgramToolkit and all clients")
