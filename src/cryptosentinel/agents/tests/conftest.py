"""
Shared fixtures for agent tests: fake toolkits, fake LLM and sample envelopes.
"""
import pytest
from unittest.mock import AsyncMock, Mock, patch

from cryptosentinel.agents.aggregator import AggregatedState, TokenAggregator
from cryptosentinel.toolkits.utils import SourceResult


USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


@pytest.fixture(autouse=True)
def mock_logger():
    """Auto-use fixture to mock logger across all agent tests."""
    with patch('cryptosentinel.agents.aggregator.logger') as mock_aggregator_log, \
         patch('cryptosentinel.agents.synthesizer.logger') as mock_synth_log, \
         patch('cryptosentinel.agents.research_bot.logger') as mock_bot_log, \
         patch('cryptosentinel.agents.json_extraction.logger') as mock_json_log:
        yield {
            'aggregator': mock_aggregator_log,
            'synthesizer': mock_synth_log,
            'bot': mock_bot_log,
            'json': mock_json_log,
        }


# ============================================================================
# SAMPLE ENVELOPES
# ============================================================================

def ok(data, tag, **fields):
    return {"success": True, "data": data, "error": None, "source_tag": tag, **fields}


def contract_envelope():
    return ok({
        "program_data": {"programId": USDC_MINT, "owner": "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
                         "tokenType": "Standard SPL Token"},
        "token_analysis": {
            "is_token": True,
            "mint_info": ok({"decimals": 6, "supply": "1000.000000", "mintAuthority": None,
                             "canMintMore": False, "freezeAuthority": None}, "contract"),
            "metadata": ok({"name": "USD Coin", "symbol": "USDC", "uri": ""}, "contract"),
            "holders": ok({"holder_count": 20}, "token_holders"),
            "extensions": ok({"has_extensions": False, "extensions": []}, "contract"),
            "performance": ok({}, "contract"),
        },
        "security_analysis": "Mint authority renounced.",
    }, "contract")


def market_envelope(h24=10.0):
    return ok({
        "token_name": "USD Coin",
        "token_symbol": "USDC",
        "price_usd": 1.0,
        "market_cap": 4_000_000.0,
        "fdv": 5_000_000.0,
        "liquidity_usd": 1_000_000.0,
        "volume_24h": 250_000.0,
        "price_change": {"h1": 0.5, "h24": h24},
        "links": {
            "dexscreener": "https://dexscreener.com/solana/pair",
            "website": "https://www.circle.com",
            "socials": [{"type": "telegram", "url": "https://t.me/usdc"}],
        },
        "all_pairs": [{"dex": "raydium", "pair_address": "Pair1"}],
    }, "market", data_source="dexscreener_tokens")


def onchain_envelope():
    return ok({"total_transactions": 100, "total_holders": 42}, "on_chain")


def social_envelope(score=0.2, handle="circle"):
    return ok({
        "source": "twitter",
        "token_info": {"name": "USD Coin", "symbol": "USDC", "address": USDC_MINT},
        "twitter": {"twitter_handle": handle, "total_tweets": 12},
        "overall_sentiment_score": score,
    }, "social", data_source="twitter")


@pytest.fixture
def toolkits():
    """Fake program, market, on-chain and social toolkits returning sample envelopes."""
    program = Mock()
    program.analyze_solana_program = AsyncMock(return_value=contract_envelope())
    market = Mock()
    market.get_market_data = AsyncMock(return_value=market_envelope())
    onchain = Mock()
    onchain.analyze_onchain_metrics = AsyncMock(return_value=onchain_envelope())
    social = Mock()
    social.analyze_social_sentiment = AsyncMock(return_value=social_envelope())
    for toolkit in (program, market, onchain, social):
        toolkit.aclose = AsyncMock()
    return {"program": program, "market": market, "onchain": onchain, "social": social}


@pytest.fixture
def aggregator(toolkits):
    return TokenAggregator(toolkits["program"], toolkits["market"], toolkits["onchain"], toolkits["social"])


@pytest.fixture
def fake_llm():
    llm = Mock()
    llm.complete = AsyncMock(return_value='{"final_recommendation": "Hold"}')
    return llm


def make_state(**overrides):
    """AggregatedState built from the sample envelopes."""
    fields = {
        "input_type": "contract_address",
        "identifier": USDC_MINT,
        "contract": SourceResult.model_validate(contract_envelope()),
        "token": SourceResult(success=True, data={
            "name": "USD Coin", "symbol": "USDC", "price_usd": 1.0, "market_cap": 4_000_000.0,
            "fdv": 5_000_000.0, "price_change_24h": 10.0,
        }, source_tag="token"),
        "on_chain": SourceResult.model_validate(onchain_envelope()),
        "social": SourceResult.model_validate(social_envelope()),
        "market": SourceResult.model_validate(market_envelope()),
    }
    fields.update(overrides)
    return AggregatedState(**fields)


@pytest.fixture
def state_factory():
    return make_state
