"""
CryptoSentinel Toolkits

Source adapters for the token research pipeline, built as Agno toolkits so the
same methods can be called directly by the aggregator or exposed to an agent.

Architecture:
- base/: Helper base classes (API business logic, data helpers, Solana RPC)
- utils/: Retrier, paginated collector, HTTP client, envelopes, schemas, statistics
- data/: One toolkit per upstream capability
- tests/: Test suite for all components

Usage:
    from cryptosentinel.toolkits import (
        DexScreenerToolkit, TokenHoldersToolkit,   # Data toolkits
        RetryPolicy, retry_with_backoff,           # Utilities
    )
"""

# Base classes for building custom toolkits
from .base import (
    BaseDataToolkit,
    BaseAPIToolkit,
    BaseSolanaRPCToolkit,
)

# Utility modules for common functionality
from .utils import (
    DataValidator,
    ResponseBuilder,
    SourceResult,
    DataHTTPClient,
    HTTPClientError,
    RetryPolicy,
    retry_with_backoff,
    collect_all_pages,
    StatisticalAnalyzer,
)

# Specialized data toolkits
from .data import (
    TokenHoldersToolkit,
    DexScreenerToolkit,
    OnChainMetricsToolkit,
    SocialSentimentToolkit,
    GitHubToolkit,
    SolanaProgramToolkit,
)

__all__ = [
    # Base classes
    "BaseDataToolkit",
    "BaseAPIToolkit",
    "BaseSolanaRPCToolkit",

    # Utility modules
    "DataValidator",
    "ResponseBuilder",
    "SourceResult",
    "DataHTTPClient",
    "HTTPClientError",
    "RetryPolicy",
    "retry_with_backoff",
    "collect_all_pages",
    "StatisticalAnalyzer",

    # Data toolkits
    "TokenHoldersToolkit",
    "DexScreenerToolkit",
    "OnChainMetricsToolkit",
    "SocialSentimentToolkit",
    "GitHubToolkit",
    "SolanaProgramToolkit",
]
