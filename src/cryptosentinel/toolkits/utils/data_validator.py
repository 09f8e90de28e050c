"""Data Validation Utilities
==========================

One pydantic schema per upstream response, validated on ingress.

A payload that does not match its schema raises ``StructuralUpstreamError``;
adapters never try alternative nested shapes for the same field. Optional
upstream fields are declared optional here and nowhere else.
"""

import re
from typing import Any, Dict, List, Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, Field, ValidationError
from solders.pubkey import Pubkey

from ...exceptions import StructuralUpstreamError

__all__ = [
    "DataValidator",
    "HeliusTokenAccount",
    "HeliusTokenAccountsResult",
    "LargestAccountsResult",
    "SignatureInfo",
    "AccountInfoResult",
    "BalanceResult",
    "DexPair",
    "DexScreenerTokensResponse",
    "JupiterPriceResponse",
    "Tweet",
    "TwitterUser",
    "TweetSearchResponse",
    "GitHubUser",
    "GitHubRepo",
    "GitHubRepoSummary",
    "CommitActivityWeek",
]

M = TypeVar("M", bound=BaseModel)

SOLANA_ADDRESS_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


class _Upstream(BaseModel):
    class Config:
        extra = "ignore"


# ---------------------------------------------------------------------------
# Solana RPC / Helius
# ---------------------------------------------------------------------------

class HeliusTokenAccount(_Upstream):
    owner: str = ""
    address: str = ""
    amount: float = 0
    decimals: int = 0


class HeliusTokenAccountsResult(_Upstream):
    total: Optional[int] = None
    token_accounts: List[Dict[str, Any]]


class LargestAccount(_Upstream):
    address: str
    amount: str
    decimals: int = 0
    uiAmount: Optional[float] = None


class LargestAccountsResult(_Upstream):
    value: List[LargestAccount]


class SignatureInfo(_Upstream):
    signature: str
    blockTime: Optional[int] = None
    slot: Optional[int] = None
    err: Optional[Any] = None


class AccountValue(_Upstream):
    data: List[str]
    owner: str
    lamports: int
    executable: bool = False


class AccountInfoResult(_Upstream):
    value: Optional[AccountValue]


class BalanceResult(_Upstream):
    value: int


# ---------------------------------------------------------------------------
# DexScreener / Jupiter
# ---------------------------------------------------------------------------

class DexToken(_Upstream):
    address: str
    name: Optional[str] = None
    symbol: Optional[str] = None


class DexTxnCounts(_Upstream):
    buys: int = 0
    sells: int = 0


class DexLiquidity(_Upstream):
    usd: Optional[float] = None
    base: Optional[float] = None
    quote: Optional[float] = None


class DexLink(_Upstream):
    url: str
    type: Optional[str] = None
    label: Optional[str] = None


class DexInfo(_Upstream):
    imageUrl: Optional[str] = None
    websites: List[DexLink] = Field(default_factory=list)
    socials: List[DexLink] = Field(default_factory=list)


class DexPair(_Upstream):
    chainId: Optional[str] = None
    dexId: Optional[str] = None
    url: Optional[str] = None
    pairAddress: str
    baseToken: DexToken
    quoteToken: DexToken
    priceNative: Optional[float] = None
    priceUsd: Optional[float] = None
    txns: Dict[str, DexTxnCounts] = Field(default_factory=dict)
    volume: Dict[str, Optional[float]] = Field(default_factory=dict)
    priceChange: Dict[str, Optional[float]] = Field(default_factory=dict)
    liquidity: Optional[DexLiquidity] = None
    fdv: Optional[float] = None
    marketCap: Optional[float] = None
    info: Optional[DexInfo] = None

    @property
    def liquidity_usd(self) -> float:
        return (self.liquidity.usd or 0.0) if self.liquidity else 0.0


class DexScreenerTokensResponse(_Upstream):
    # The key must be present; DexScreener sends null for unknown tokens
    pairs: Optional[List[DexPair]]


class JupiterPrice(_Upstream):
    id: Optional[str] = None
    type: Optional[str] = None
    price: Optional[float] = None


class JupiterPriceResponse(_Upstream):
    data: Dict[str, Optional[JupiterPrice]]


# ---------------------------------------------------------------------------
# X (Twitter) v2
# ---------------------------------------------------------------------------

class TweetMetrics(_Upstream):
    like_count: int = 0
    retweet_count: int = 0
    reply_count: int = 0
    quote_count: int = 0


class Tweet(_Upstream):
    id: str
    text: str
    created_at: Optional[str] = None
    author_id: Optional[str] = None
    public_metrics: TweetMetrics = Field(default_factory=TweetMetrics)


class TwitterUser(_Upstream):
    id: str
    username: str
    name: Optional[str] = None
    description: str = ""
    verified: bool = False


class TweetIncludes(_Upstream):
    users: List[TwitterUser] = Field(default_factory=list)


class TweetSearchResponse(_Upstream):
    data: List[Tweet] = Field(default_factory=list)
    includes: TweetIncludes = Field(default_factory=TweetIncludes)
    meta: Dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------

class GitHubUser(_Upstream):
    login: str
    name: Optional[str] = None
    bio: Optional[str] = None
    followers: int = 0
    following: int = 0
    public_repos: int = 0
    created_at: Optional[str] = None
    html_url: Optional[str] = None


class GitHubRepoSummary(_Upstream):
    name: str
    stargazers_count: int = 0
    forks_count: int = 0


class GitHubRepo(_Upstream):
    name: str
    full_name: str
    description: Optional[str] = None
    language: Optional[str] = None
    stargazers_count: int = 0
    forks_count: int = 0
    watchers_count: int = 0
    open_issues_count: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    html_url: Optional[str] = None


class CommitActivityWeek(_Upstream):
    total: int = 0
    week: int
    days: List[int] = Field(default_factory=list)


class DataValidator:
    """Utility class for validating upstream payloads and identifiers."""

    @staticmethod
    def parse(model: Type[M], payload: Any, source: str) -> M:
        """Validate ``payload`` against ``model``.

        Raises:
            StructuralUpstreamError: The payload does not match the schema
        """
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.debug(f"{source} payload failed {model.__name__} validation: {e}")
            raise StructuralUpstreamError(
                f"{source} response does not match {model.__name__}: {e.error_count()} validation errors",
                source=source,
                cause=e,
            ) from e

    @staticmethod
    def parse_list(model: Type[M], payload: Any, source: str) -> List[M]:
        """Validate a JSON array where every item must match ``model``."""
        if not isinstance(payload, list):
            raise StructuralUpstreamError(
                f"{source} response is {type(payload).__name__}, expected list",
                source=source,
            )
        return [DataValidator.parse(model, item, source) for item in payload]

    @staticmethod
    def parse_items_lenient(model: Type[M], items: List[Any], source: str) -> List[M]:
        """Validate items one by one, dropping (and logging) malformed ones."""
        parsed: List[M] = []
        for item in items:
            try:
                parsed.append(model.model_validate(item))
            except ValidationError:
                logger.debug(f"Skipping malformed {model.__name__} from {source}: {item!r}")
        return parsed

    @staticmethod
    def is_solana_address(value: str) -> bool:
        """True for a base58 string that decodes to a 32-byte public key."""
        if not value or not SOLANA_ADDRESS_PATTERN.match(value):
            return False
        try:
            Pubkey.from_string(value)
        except ValueError:
            return False
        return True
