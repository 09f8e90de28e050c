"""
CryptoSentinel: Solana token research.

Aggregates on-chain, market, social and development data about a token and
asks a language model for a structured investment report.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
