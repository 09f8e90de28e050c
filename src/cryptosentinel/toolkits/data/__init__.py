from __future__ import annotations
from .token_holders_toolkit import TokenHoldersToolkit
from .dexscreener_toolkit import DexScreenerToolkit
from .onchain_metrics_toolkit import OnChainMetricsToolkit
from .social_sentiment_toolkit import SocialSentimentToolkit
from .github_toolkit import GitHubToolkit
from .solana_program_toolkit import SolanaProgramToolkit

__all__ = [
    "TokenHoldersToolkit",
    "DexScreenerToolkit",
    "OnChainMetricsToolkit",
    "SocialSentimentToolkit",
    "GitHubToolkit",
    "SolanaProgramToolkit",
]
