"""Tests for input classification and the settle-all aggregator."""

import pytest
from unittest.mock import patch

from cryptosentinel.agents.aggregator import (
    NOT_APPLICABLE,
    AggregatedState,
    blend_sentiment,
    classify_input,
    enrich_with_market,
    extract_token_data,
)
from cryptosentinel.toolkits.utils import SourceResult

from .conftest import USDC_MINT, contract_envelope, market_envelope, social_envelope


# ============================================================================
# INPUT CLASSIFICATION
# ============================================================================

class TestClassifyInput:
    """Token address versus project name."""

    def test_mint_address(self):
        assert classify_input(USDC_MINT) == {"type": "contract_address", "value": USDC_MINT, "confidence": "high"}

    def test_address_with_whitespace(self):
        assert classify_input(f"  {USDC_MINT}\n")["type"] == "contract_address"

    @pytest.mark.parametrize("prefix", ["token:", "TOKEN:", "Token: "])
    def test_token_prefix(self, prefix):
        result = classify_input(f"{prefix}{USDC_MINT}")
        assert result["type"] == "contract_address"
        assert result["value"] == USDC_MINT

    @pytest.mark.parametrize("query", ["some random project", "Jupiter", "0x1234", "", "I" * 40])
    def test_project_name(self, query):
        result = classify_input(query)
        assert result["type"] == "project_name"
        assert result["confidence"] == "low"


class TestBlendSentiment:
    """Price momentum adjustment."""

    @pytest.mark.parametrize("base,pct,expected", [
        (0.2, 10.0, 0.4),
        (0.2, -10.0, 0.0),
        (0.0, 100.0, 0.5),
        (0.0, -100.0, -0.5),
        (0.9, 50.0, 1.0),
        (-0.9, -50.0, -1.0),
    ])
    def test_blend(self, base, pct, expected):
        assert blend_sentiment(base, pct) == pytest.approx(expected)


# ============================================================================
# TOKEN DERIVATION
# ============================================================================

class TestTokenData:
    """Token facts from contract and market results."""

    def test_extract_from_contract(self):
        token = extract_token_data(SourceResult.model_validate(contract_envelope()))

        assert token["name"] == "USD Coin"
        assert token["symbol"] == "USDC"
        assert token["address"] == USDC_MINT
        assert token["decimals"] == 6
        assert token["can_mint_more"] is False
        assert token["holder_count"] == 20

    def test_non_token_contract(self):
        program = SourceResult(success=True, data={"program_data": {}, "token_analysis": {"is_token": False}})
        assert extract_token_data(program) == {}

    def test_enrich_fills_missing_identity(self):
        token = enrich_with_market({"name": None, "symbol": None}, SourceResult.model_validate(market_envelope()))

        assert token["name"] == "USD Coin"
        assert token["symbol"] == "USDC"
        assert token["price_change_24h"] == 10.0
        assert token["market_cap"] == 4_000_000.0


# ============================================================================
# AGGREGATION
# ============================================================================

class TestAggregate:
    """Fan-out over toolkits and merge."""

    @pytest.mark.asyncio
    async def test_contract_address_runs_every_source(self, aggregator, toolkits):
        state = await aggregator.aggregate(USDC_MINT)

        assert isinstance(state, AggregatedState)
        assert state.input_type == "contract_address"
        for key in AggregatedState.SOURCE_KEYS:
            assert getattr(state, key).success is True, key
        toolkits["program"].analyze_solana_program.assert_awaited_once_with(USDC_MINT)
        toolkits["market"].get_market_data.assert_awaited_once_with(USDC_MINT)
        toolkits["onchain"].analyze_onchain_metrics.assert_awaited_once_with(USDC_MINT)
        toolkits["social"].analyze_social_sentiment.assert_awaited_once_with(USDC_MINT)

    @pytest.mark.asyncio
    async def test_token_enriched_with_market(self, aggregator):
        state = await aggregator.aggregate(USDC_MINT)

        assert state.token.data["name"] == "USD Coin"
        assert state.token.data["price_usd"] == 1.0
        assert state.token.data["holder_count"] == 20

    @pytest.mark.asyncio
    async def test_market_attached_to_on_chain(self, aggregator):
        state = await aggregator.aggregate(USDC_MINT)

        assert state.on_chain.data["market_data"]["liquidity_usd"] == 1_000_000.0
        assert state.on_chain.data["total_holders"] == 42

    @pytest.mark.asyncio
    async def test_social_blended_with_price_change(self, aggregator):
        state = await aggregator.aggregate(USDC_MINT)

        # 0.2 + 10% / 50
        assert state.social.data["overall_sentiment_score"] == pytest.approx(0.4)
        assert state.social.data["base_sentiment_score"] == 0.2

    @pytest.mark.asyncio
    async def test_unusable_social_score_keeps_sources(self, aggregator, toolkits):
        toolkits["social"].analyze_social_sentiment.return_value = social_envelope(score="very bullish")

        state = await aggregator.aggregate(USDC_MINT)

        assert state.market.success is True
        assert state.contract.success is True
        assert state.token.data["price_usd"] == 1.0
        assert state.social.data["overall_sentiment_score"] == "very bullish"
        assert "base_sentiment_score" not in state.social.data

    @pytest.mark.asyncio
    async def test_token_derivation_error_only_fails_token(self, aggregator):
        with patch('cryptosentinel.agents.aggregator.extract_token_data', side_effect=KeyError("mint_info")):
            state = await aggregator.aggregate(USDC_MINT)

        assert state.token.success is False
        assert state.token.error == "Analysis failed"
        assert state.market.success is True
        assert state.contract.success is True
        assert state.on_chain.data["market_data"]["price_usd"] == 1.0

    @pytest.mark.asyncio
    async def test_raising_toolkit_does_not_discard_others(self, aggregator, toolkits):
        toolkits["onchain"].analyze_onchain_metrics.side_effect = RuntimeError("connection reset")

        state = await aggregator.aggregate(USDC_MINT)

        assert state.on_chain.success is False
        assert state.on_chain.error == "Analysis failed"
        assert state.on_chain.source_tag == "on_chain"
        assert state.contract.success is True
        assert state.market.success is True
        assert state.social.success is True

    @pytest.mark.asyncio
    async def test_invalid_envelope_treated_as_failure(self, aggregator, toolkits):
        toolkits["market"].get_market_data.return_value = "not an envelope"

        state = await aggregator.aggregate(USDC_MINT)

        assert state.market.success is False
        assert state.token.success is True
        assert "price_usd" not in state.token.data

    @pytest.mark.asyncio
    async def test_project_name_only_runs_social(self, aggregator, toolkits):
        state = await aggregator.aggregate("some random project")

        assert state.input_type == "project_name"
        toolkits["social"].analyze_social_sentiment.assert_awaited_once_with("some random project")
        toolkits["program"].analyze_solana_program.assert_not_called()
        toolkits["market"].get_market_data.assert_not_called()
        for key in ("contract", "market", "on_chain"):
            assert getattr(state, key).error == NOT_APPLICABLE
        assert state.token.data == {"name": "USD Coin", "symbol": "USDC"}

    @pytest.mark.asyncio
    async def test_nothing_found(self, aggregator, toolkits):
        for name, method in (("program", "analyze_solana_program"), ("market", "get_market_data"),
                             ("onchain", "analyze_onchain_metrics"), ("social", "analyze_social_sentiment")):
            getattr(toolkits[name], method).side_effect = RuntimeError("down")

        state = await aggregator.aggregate(USDC_MINT)

        assert state.token.success is False
        assert state.token.error == "No token data available"
        assert state.has_sufficient_data() is False

    @pytest.mark.asyncio
    async def test_to_dict_has_every_source(self, aggregator):
        state = await aggregator.aggregate(USDC_MINT)

        result = state.to_dict()
        assert set(AggregatedState.SOURCE_KEYS) <= set(result)
        assert result["market"]["data_source"] == "dexscreener_tokens"

    @pytest.mark.asyncio
    async def test_aclose_closes_toolkits_without_shared_client(self, aggregator, toolkits):
        await aggregator.aclose()

        for toolkit in toolkits.values():
            toolkit.aclose.assert_awaited_once()
