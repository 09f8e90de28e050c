"""
Shared fixtures and configuration for toolkit tests.
This file provides common fixtures, mocks, and utilities used across all toolkit tests.
"""
import pytest
from unittest.mock import AsyncMock, Mock, patch

from cryptosentinel.toolkits.utils import RetryPolicy


# Well-formed mint addresses (USDC, wrapped SOL)
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
SOL_MINT = "So11111111111111111111111111111111111111112"


# ============================================================================
# SHARED MOCKS AND PATCHES
# ============================================================================

@pytest.fixture(autouse=True)
def mock_logger():
    """Auto-use fixture to mock logger across all toolkit tests."""
    with patch('cryptosentinel.toolkits.base.base_data.logger') as mock_log, \
         patch('cryptosentinel.toolkits.utils.http_client.logger') as mock_http_log, \
         patch('cryptosentinel.toolkits.utils.retry.logger') as mock_retry_log, \
         patch('cryptosentinel.toolkits.utils.pagination.logger') as mock_pagination_log, \
         patch('cryptosentinel.toolkits.data.token_holders_toolkit.logger') as mock_holders_log, \
         patch('cryptosentinel.toolkits.data.dexscreener_toolkit.logger') as mock_market_log:
        yield {
            'base': mock_log,
            'http': mock_http_log,
            'retry': mock_retry_log,
            'pagination': mock_pagination_log,
            'holders': mock_holders_log,
            'market': mock_market_log,
        }


@pytest.fixture
def mock_sleep():
    """Patch asyncio.sleep so backoff and pacing delays are instant."""
    with patch('asyncio.sleep', new_callable=AsyncMock) as sleep:
        yield sleep


@pytest.fixture
def fast_policy():
    """Retry policy with tiny delays and no jitter."""
    return RetryPolicy(
        max_retries=2,
        initial_delay=0.01,
        max_delay=0.1,
        backoff_factor=2.0,
        jitter_factor=0.0,
        min_delay=0.0,
    )


@pytest.fixture
def mock_httpx_client():
    """Mock httpx.AsyncClient for HTTP testing."""
    mock_client = AsyncMock()
    mock_response = Mock()
    mock_response.status_code = 200
    mock_response.json.return_value = {"status": "success", "data": []}
    mock_response.text = '{"status": "success"}'
    mock_response.raise_for_status = Mock()

    mock_client.request.return_value = mock_response
    mock_client.aclose = AsyncMock()

    return mock_client


@pytest.fixture
def mock_http_client():
    """Stand-in for a shared DataHTTPClient passed to toolkits."""
    client = Mock()
    client.get_endpoints.return_value = {}
    client.add_endpoint = AsyncMock()
    client.get = AsyncMock()
    client.post = AsyncMock()
    client.json_rpc = AsyncMock()
    client.aclose = AsyncMock()
    return client


# ============================================================================
# DATA FIXTURES
# ============================================================================

def make_pair(
    base_address=USDC_MINT,
    quote_address=SOL_MINT,
    price_native=0.005,
    price_usd=1.0,
    liquidity=1_000_000.0,
    h1=1.5,
    h24=-4.0,
    buys=300,
    sells=200,
    pair_address="PairAddress111",
    **overrides,
):
    """Build a raw DexScreener pair payload."""
    pair = {
        "chainId": "solana",
        "dexId": "raydium",
        "url": f"https://dexscreener.com/solana/{pair_address}",
        "pairAddress": pair_address,
        "baseToken": {"address": base_address, "name": "USD Coin", "symbol": "USDC"},
        "quoteToken": {"address": quote_address, "name": "Wrapped SOL", "symbol": "SOL"},
        "priceNative": str(price_native),
        "priceUsd": str(price_usd),
        "txns": {"h24": {"buys": buys, "sells": sells}},
        "volume": {"h24": 250_000.0},
        "priceChange": {"h1": h1, "h24": h24},
        "liquidity": {"usd": liquidity},
        "fdv": 5_000_000.0,
        "marketCap": 4_000_000.0,
        "info": {
            "websites": [{"url": "https://www.circle.com", "label": "Website"}],
            "socials": [{"url": "https://x.com/circle", "type": "twitter"}],
        },
    }
    pair.update(overrides)
    return pair


@pytest.fixture
def pair_factory():
    return make_pair


@pytest.fixture
def helius_page_factory():
    """Factory for Helius getTokenAccounts results."""
    def _page(count, start=0, amount=100.0, decimals=0):
        return {
            "total": count,
            "token_accounts": [
                {
                    "address": f"account{start + i}",
                    "owner": f"owner{start + i}",
                    "amount": amount,
                    "decimals": decimals,
                }
                for i in range(count)
            ],
        }
    return _page
