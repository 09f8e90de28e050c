"""
Default configurations for CryptoSentinel.

Retry presets are tuned per upstream: Helius pages are expensive and throttle
hard, DexScreener and Jupiter recover quickly, and the X search API is given
a single retry because its rate-limit windows last minutes.
"""

from typing import Dict, Any

# Backoff presets, all durations in seconds
DEFAULT_RETRY_POLICIES: Dict[str, Dict[str, Any]] = {
    "default": {
        "max_retries": 5,
        "initial_delay": 1.0,
        "max_delay": 30.0,
        "backoff_factor": 2.0,
    },
    "holder_pages": {
        "max_retries": 5,
        "initial_delay": 2.0,
        "max_delay": 45.0,
        "backoff_factor": 2.5,
    },
    "basic_holders": {
        "max_retries": 4,
        "initial_delay": 1.5,
        "max_delay": 30.0,
        "backoff_factor": 2.0,
    },
    "dexscreener": {
        "max_retries": 3,
        "initial_delay": 1.0,
        "max_delay": 15.0,
        "backoff_factor": 2.0,
    },
    "jupiter": {
        "max_retries": 3,
        "initial_delay": 1.0,
        "max_delay": 15.0,
        "backoff_factor": 2.0,
    },
    "github": {
        "max_retries": 3,
        "initial_delay": 1.0,
        "max_delay": 15.0,
        "backoff_factor": 2.0,
    },
    "twitter": {
        "max_retries": 1,
        "initial_delay": 1.0,
        "max_delay": 5.0,
        "backoff_factor": 2.0,
    },
}

DEFAULT_LLM_CONFIG = {
    "provider": "openai",
    "model": "gpt-4o-mini",
    "temperature": 0.0,
    "max_tokens": 2000,
    "timeout": 60.0,
}

DEFAULT_COLLECTOR_CONFIG = {
    "page_size": 1000,
    "max_pages": 10,
    "delay_between_pages": 1.5,
}

DEFAULT_LOGGING_CONFIG = {
    "level": "INFO",
    "enable_console": True,
    "enable_file": False,
    "file_path": "logs/cryptosentinel.log",
    "file_rotation": "10 MB",
    "file_retention": 3,
}

DEFAULT_SOLANA_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_HELIUS_RPC_URL = "https://mainnet.helius-rpc.com"
