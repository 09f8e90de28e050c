"""
Token aggregator: fan-out over the source toolkits and fan-in into one state.

Every applicable toolkit runs concurrently and the aggregator waits for all
of them (``asyncio.gather(..., return_exceptions=True)``). A toolkit that
raises, or returns something that is not a valid envelope, is replaced with
``SourceResult.failed(tag)`` so the synthesizer always sees the same keys.
"""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, Optional

from loguru import logger
from pydantic import ValidationError

from ..exceptions import handle_exception
from ..toolkits import (
    DataHTTPClient,
    DataValidator,
    DexScreenerToolkit,
    OnChainMetricsToolkit,
    SocialSentimentToolkit,
    SolanaProgramToolkit,
    SourceResult,
    TokenHoldersToolkit,
)

ADDRESS_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
TOKEN_PREFIX = "token:"
NOT_APPLICABLE = "Not applicable for project name queries"

CONTRACT_ADDRESS = "contract_address"
PROJECT_NAME = "project_name"


def classify_input(query: str) -> Dict[str, str]:
    """Decide whether a user query names a token address or a project.

    Returns:
        ``{"type": "contract_address" | "project_name", "value": ..., "confidence": "high" | "low"}``
    """
    text = (query or "").replace("\x00", "").strip()

    if text.lower().startswith(TOKEN_PREFIX):
        return {"type": CONTRACT_ADDRESS, "value": text[len(TOKEN_PREFIX):].strip(), "confidence": "high"}

    if ADDRESS_PATTERN.match(text) and DataValidator.is_solana_address(text):
        return {"type": CONTRACT_ADDRESS, "value": text, "confidence": "high"}

    return {"type": PROJECT_NAME, "value": text, "confidence": "low"}


def blend_sentiment(base: float, price_change_pct: float) -> float:
    """Nudge a sentiment score by 24h price momentum.

    ``clamp(base + clamp(pct / 50, -0.5, 0.5), -1, 1)``. A heuristic, not a
    fitted model: a 25% move shifts the score by 0.5 at most.
    """
    adjustment = max(-0.5, min(0.5, price_change_pct / 50))
    return max(-1.0, min(1.0, base + adjustment))


@dataclass
class AggregatedState:
    """Everything gathered about one query, keyed by capability."""

    input_type: str
    identifier: str
    contract: SourceResult
    token: SourceResult
    on_chain: SourceResult
    social: SourceResult
    market: SourceResult
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    SOURCE_KEYS = ("contract", "token", "on_chain", "social", "market")

    def has_sufficient_data(self) -> bool:
        """True when contract, token or market data is available."""
        return self.contract.success or self.token.success or self.market.success

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "input_type": self.input_type,
            "identifier": self.identifier,
            "timestamp": self.timestamp,
        }
        for key in self.SOURCE_KEYS:
            result[key] = getattr(self, key).model_dump()
        return result


def _as_source_result(raw: Any, source_tag: str) -> SourceResult:
    if isinstance(raw, BaseException):
        error = handle_exception(raw, source=source_tag)
        logger.bind(error=error.to_dict()).error(f"{source_tag} analysis raised {type(raw).__name__}: {raw}")
        return SourceResult.failed(source_tag)
    if isinstance(raw, SourceResult):
        return raw
    try:
        result = SourceResult.model_validate(raw)
    except ValidationError as e:
        logger.error(f"{source_tag} analysis returned an invalid envelope: {e}")
        return SourceResult.failed(source_tag)
    if result.source_tag == "unknown":
        result.source_tag = source_tag
    return result


def _data(result: SourceResult) -> Dict[str, Any]:
    return result.data if result.success and isinstance(result.data, dict) else {}


def _envelope_data(envelope: Any) -> Dict[str, Any]:
    if isinstance(envelope, dict) and envelope.get("success") and isinstance(envelope.get("data"), dict):
        return envelope["data"]
    return {}


def extract_token_data(contract: SourceResult) -> Dict[str, Any]:
    """Token facts from a contract analysis (metadata, mint info, holders)."""
    analysis = _data(contract).get("token_analysis") or {}
    if not analysis.get("is_token"):
        return {}

    metadata = _envelope_data(analysis.get("metadata"))
    mint = _envelope_data(analysis.get("mint_info"))
    holders = _envelope_data(analysis.get("holders"))
    program = _data(contract).get("program_data") or {}

    token: Dict[str, Any] = {
        "name": metadata.get("name") or None,
        "symbol": metadata.get("symbol") or None,
        "address": program.get("programId"),
        "token_type": program.get("tokenType"),
    }
    if mint:
        token.update({
            "decimals": mint.get("decimals"),
            "supply": mint.get("supply"),
            "mint_authority": mint.get("mintAuthority"),
            "can_mint_more": mint.get("canMintMore"),
            "freeze_authority": mint.get("freezeAuthority"),
        })
    if holders:
        token["holder_count"] = holders.get("holder_count")
    return token


def enrich_with_market(token: Dict[str, Any], market: SourceResult) -> Dict[str, Any]:
    """Fill name and symbol from market data and add price metrics."""
    data = _data(market)
    if not data:
        return token

    enriched = dict(token)
    enriched["name"] = enriched.get("name") or data.get("token_name")
    enriched["symbol"] = enriched.get("symbol") or data.get("token_symbol")
    enriched.update({
        "price_usd": data.get("price_usd"),
        "market_cap": data.get("market_cap"),
        "fdv": data.get("fdv"),
        "liquidity_usd": data.get("liquidity_usd"),
        "volume_24h": data.get("volume_24h"),
        "price_change_24h": (data.get("price_change") or {}).get("h24"),
    })
    return enriched


class TokenAggregator:
    """Runs the source toolkits for a query and merges their envelopes."""

    def __init__(
        self,
        program_toolkit: SolanaProgramToolkit,
        market_toolkit: DexScreenerToolkit,
        onchain_toolkit: OnChainMetricsToolkit,
        social_toolkit: SocialSentimentToolkit,
        http_client: Optional[DataHTTPClient] = None,
    ):
        self.program_toolkit = program_toolkit
        self.market_toolkit = market_toolkit
        self.onchain_toolkit = onchain_toolkit
        self.social_toolkit = social_toolkit
        self._http_client = http_client

    @classmethod
    def from_config(cls, config: Any, llm_client: Optional[Any] = None) -> "TokenAggregator":
        """Wire every toolkit from a ``SentinelConfig`` around one shared HTTP client."""
        sources = config.data_sources
        http_client = DataHTTPClient(
            default_timeout=sources.http_timeout,
            default_policy=config.retry.get_policy("default"),
        )

        holders = TokenHoldersToolkit(
            helius_api_key=sources.helius_api_key,
            rpc_url=sources.solana_rpc_url,
            page_size=config.collector.page_size,
            max_pages=config.collector.max_pages,
            delay_between_pages=config.collector.delay_between_pages,
            page_retry_policy=config.retry.get_policy("holder_pages"),
            basic_retry_policy=config.retry.get_policy("basic_holders"),
            save_to_file=config.collector.save_to_file,
            data_dir=config.collector.output_dir,
            http_client=http_client,
        )
        market = DexScreenerToolkit(
            retry_policy=config.retry.get_policy("dexscreener"),
            http_client=http_client,
        )
        program = SolanaProgramToolkit(
            rpc_url=sources.solana_rpc_url,
            llm_client=llm_client,
            holders_toolkit=holders,
            retry_policy=config.retry.get_policy("default"),
            http_client=http_client,
        )
        onchain = OnChainMetricsToolkit(
            rpc_url=sources.solana_rpc_url,
            helius_api_key=sources.helius_api_key,
            holders_toolkit=holders,
            market_toolkit=market,
            retry_policy=config.retry.get_policy("default"),
            http_client=http_client,
        )
        social = SocialSentimentToolkit(
            bearer_token=sources.twitter_bearer_token,
            market_toolkit=market,
            retry_policy=config.retry.get_policy("twitter"),
            http_client=http_client,
        )
        return cls(program, market, onchain, social, http_client=http_client)

    async def _settle(self, calls: Dict[str, Awaitable[Any]]) -> Dict[str, SourceResult]:
        tags = list(calls)
        outcomes = await asyncio.gather(*calls.values(), return_exceptions=True)
        return {tag: _as_source_result(outcome, tag) for tag, outcome in zip(tags, outcomes)}

    async def aggregate(self, identifier: str) -> AggregatedState:
        """Gather contract, market, on-chain and social data for a query.

        Never raises: every failure ends up as a failed ``SourceResult``.
        """
        classification = classify_input(identifier)
        value = classification["value"]
        logger.info(f"Aggregating {classification['type']} '{value}'")

        try:
            if classification["type"] == CONTRACT_ADDRESS:
                results = await self._settle({
                    "contract": self.program_toolkit.analyze_solana_program(value),
                    "market": self.market_toolkit.get_market_data(value),
                    "on_chain": self.onchain_toolkit.analyze_onchain_metrics(value),
                    "social": self.social_toolkit.analyze_social_sentiment(value),
                })
            else:
                results = await self._settle({
                    "social": self.social_toolkit.analyze_social_sentiment(value),
                })
                for tag in ("contract", "market", "on_chain"):
                    results[tag] = SourceResult.failed(tag, NOT_APPLICABLE)
        except Exception as e:
            logger.exception(f"Aggregation of '{value}' failed: {e}")
            results = {tag: SourceResult.failed(tag) for tag in AggregatedState.SOURCE_KEYS}

        # Derived data only; a failure here never discards settled sources
        try:
            results["token"] = self._derive_token(results)
        except Exception as e:
            logger.exception(f"Token derivation for '{value}' failed: {e}")
            results["token"] = SourceResult.failed("token")
        for step in (self._attach_market_to_onchain, self._blend_social):
            try:
                step(results)
            except Exception as e:
                logger.warning(f"Skipped {step.__name__} for '{value}': {e}")

        succeeded = [tag for tag in AggregatedState.SOURCE_KEYS if results[tag].success]
        logger.info(f"Aggregation of '{value}' finished, sources with data: {succeeded or 'none'}")

        return AggregatedState(
            input_type=classification["type"],
            identifier=value,
            contract=results["contract"],
            token=results["token"],
            on_chain=results["on_chain"],
            social=results["social"],
            market=results["market"],
        )

    @staticmethod
    def _derive_token(results: Dict[str, SourceResult]) -> SourceResult:
        token = extract_token_data(results["contract"])
        if not token:
            token_info = _data(results["social"]).get("token_info") or {}
            token = {"name": token_info.get("name"), "symbol": token_info.get("symbol")}
        token = enrich_with_market(token, results["market"])

        if not any(v is not None for v in token.values()):
            return SourceResult.failed("token", "No token data available")
        return SourceResult(success=True, data=token, source_tag="token")

    @staticmethod
    def _attach_market_to_onchain(results: Dict[str, SourceResult]) -> None:
        market = _data(results["market"])
        on_chain = results["on_chain"]
        if not market or not isinstance(on_chain.data, dict):
            return
        on_chain.data["market_data"] = {
            "price_usd": market.get("price_usd"),
            "market_cap": market.get("market_cap"),
            "fdv": market.get("fdv"),
            "liquidity_usd": market.get("liquidity_usd"),
            "volume_24h": market.get("volume_24h"),
            "price_change_24h": (market.get("price_change") or {}).get("h24"),
        }

    @staticmethod
    def _blend_social(results: Dict[str, SourceResult]) -> None:
        social = _data(results["social"])
        price_change = _data(results["token"]).get("price_change_24h")
        base = social.get("overall_sentiment_score")
        if base is None or price_change is None:
            return

        blended = round(blend_sentiment(float(base), float(price_change)), 2)
        social["base_sentiment_score"] = base
        social["overall_sentiment_score"] = blended
        logger.debug(f"Blended sentiment {base} with {price_change}% price change -> {blended}")

    async def aclose(self):
        """Close the shared HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
        else:
            for toolkit in (self.program_toolkit, self.market_toolkit, self.onchain_toolkit, self.social_toolkit):
                await toolkit.aclose()
