"""
Tests for DexScreenerToolkit: pair orientation, provider fallback and caching.
"""
import pytest

from cryptosentinel.toolkits.data import DexScreenerToolkit
from cryptosentinel.toolkits.data.dexscreener_toolkit import orient_pair
from cryptosentinel.toolkits.utils import HTTPClientError
from cryptosentinel.toolkits.utils.data_validator import DexPair

from .conftest import SOL_MINT, USDC_MINT, make_pair


@pytest.fixture
def toolkit(mock_http_client, fast_policy, tmp_path):
    return DexScreenerToolkit(retry_policy=fast_policy, data_dir=tmp_path, http_client=mock_http_client)


# ============================================================================
# PAIR ORIENTATION
# ============================================================================

class TestOrientPair:
    """Directional fields seen from the analyzed token."""

    def test_base_side_passthrough(self):
        view = orient_pair(DexPair.model_validate(make_pair()), USDC_MINT)

        assert view["side"] == "base"
        assert view["price_usd"] == pytest.approx(1.0)
        assert view["price_native"] == pytest.approx(0.005)
        assert view["h24"] == pytest.approx(-4.0)
        assert (view["buys"], view["sells"]) == (300, 200)
        assert view["counter_symbol"] == "SOL"

    def test_quote_side_inverted(self):
        view = orient_pair(DexPair.model_validate(make_pair()), SOL_MINT)

        assert view["side"] == "quote"
        assert view["token"].symbol == "SOL"
        assert view["price_usd"] == pytest.approx(200.0)
        assert view["price_native"] == pytest.approx(200.0)
        assert view["h1"] == pytest.approx(-1.5)
        assert view["h24"] == pytest.approx(4.0)
        assert (view["buys"], view["sells"]) == (200, 300)

    def test_zero_native_price_on_quote_side(self):
        view = orient_pair(DexPair.model_validate(make_pair(price_native=0)), SOL_MINT)

        assert view["price_usd"] == 0.0
        assert view["price_native"] == 0.0


# ============================================================================
# MARKET DATA
# ============================================================================

class TestGetMarketData:
    """Provider fallback, most-liquid pair selection and caching."""

    @pytest.mark.asyncio
    async def test_base_side_market_data(self, toolkit, mock_http_client):
        mock_http_client.get.return_value = {"pairs": [make_pair()]}

        result = await toolkit.get_market_data(USDC_MINT)

        assert result["success"] is True
        assert result["data_source"] == "dexscreener_tokens"
        data = result["data"]
        assert data["token_symbol"] == "USDC"
        assert data["token_side"] == "base"
        assert data["market_cap"] == 4_000_000.0
        assert data["fdv"] == 5_000_000.0
        assert data["volume_24h"] == 250_000.0
        assert data["buy_sell_ratio"] == 1.5
        assert data["links"]["website"] == "https://www.circle.com"
        assert data["links"]["socials"][0]["url"] == "https://x.com/circle"
        assert data["links"]["dexscreener"].startswith("https://dexscreener.com/solana/")

    @pytest.mark.asyncio
    async def test_quote_side_market_data(self, toolkit, mock_http_client):
        mock_http_client.get.return_value = {"pairs": [make_pair()]}

        result = await toolkit.get_market_data(SOL_MINT)

        data = result["data"]
        assert data["token_side"] == "quote"
        assert data["token_symbol"] == "SOL"
        assert data["price_usd"] == pytest.approx(200.0)
        assert data["price_change"]["h24"] == pytest.approx(4.0)
        assert data["transactions"]["h24"] == {"buys": 200, "sells": 300}
        assert data["market_cap"] == 0.0
        assert data["fdv"] == 0.0
        assert data["links"]["website"] is None
        assert data["links"]["socials"] == []

    @pytest.mark.asyncio
    async def test_most_liquid_pair_selected(self, toolkit, mock_http_client):
        mock_http_client.get.return_value = {"pairs": [
            make_pair(pair_address="Shallow", liquidity=10_000.0, price_usd=0.99),
            make_pair(pair_address="Deep", liquidity=9_000_000.0, price_usd=1.01),
        ]}

        result = await toolkit.get_market_data(USDC_MINT)

        data = result["data"]
        assert data["pair_address"] == "Deep"
        assert data["price_usd"] == pytest.approx(1.01)
        assert [p["pair_address"] for p in data["all_pairs"]] == ["Deep", "Shallow"]

    @pytest.mark.asyncio
    async def test_unrelated_pairs_filtered(self, toolkit, mock_http_client):
        other = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
        mock_http_client.get.side_effect = [
            {"pairs": [make_pair(base_address=other)]},
            [],
        ]

        result = await toolkit.get_market_data(USDC_MINT)

        assert result["success"] is False
        assert result["error"] == "No trading pairs found for this token"
        assert result["error_type"] == "not_found"

    @pytest.mark.asyncio
    async def test_falls_back_to_second_provider(self, toolkit, mock_http_client):
        mock_http_client.get.side_effect = [
            HTTPClientError("HTTP 500 error: boom", 500, "boom"),
            [make_pair()],
        ]

        result = await toolkit.get_market_data(USDC_MINT)

        assert result["success"] is True
        assert result["data_source"] == "dexscreener_token_pairs"
        paths = [call.args[1] for call in mock_http_client.get.call_args_list]
        assert paths == [
            f"/latest/dex/tokens/{USDC_MINT}",
            f"/token-pairs/v1/solana/{USDC_MINT}",
        ]

    @pytest.mark.asyncio
    async def test_null_pairs_then_empty_list(self, toolkit, mock_http_client):
        mock_http_client.get.side_effect = [{"pairs": None}, []]

        result = await toolkit.get_market_data(USDC_MINT)

        assert result["success"] is False
        assert result["error"] == "No trading pairs found for this token"

    @pytest.mark.asyncio
    async def test_all_providers_failing(self, toolkit, mock_http_client):
        mock_http_client.get.side_effect = [
            HTTPClientError("HTTP 503 error: down", 503, "down"),
            {"unexpected": "shape"},
        ]

        result = await toolkit.get_market_data(USDC_MINT)

        assert result["success"] is False
        assert result["error_type"] == "api_error"
        assert result["error"].startswith("Failed to fetch DexScreener data")

    @pytest.mark.asyncio
    async def test_cache_hit_skips_network(self, toolkit, mock_http_client):
        mock_http_client.get.return_value = {"pairs": [make_pair()]}

        first = await toolkit.get_market_data(USDC_MINT)
        second = await toolkit.get_market_data(USDC_MINT)

        assert mock_http_client.get.call_count == 1
        assert second["cached"] is True
        assert second["data"] == first["data"]
        assert second["data_source"] == "dexscreener_tokens"

    @pytest.mark.asyncio
    async def test_invalid_address(self, toolkit, mock_http_client):
        result = await toolkit.get_market_data("bitcoin")

        assert result["success"] is False
        assert result["error_type"] == "validation_error"
        mock_http_client.get.assert_not_called()
