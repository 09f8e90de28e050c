from __future__ import annotations

"""Base API Toolkit Helper Class
===============================

A helper class providing common API business logic for data toolkits.
Focuses on API-specific concerns like identifier cleaning, caching and
standard transport configuration - separate from HTTP transport
(DataHTTPClient) and result storage (BaseDataToolkit).

Key Features:
- Identifier cleaning and validation (addresses, handles, URLs)
- TTL cache for upstream lookups shared between tool calls
- Standard HTTP client configuration with a default retry policy
- Timestamp conversion helpers
"""

import time
from typing import Any, Callable, Dict, Optional, Union
from datetime import datetime, timezone

from loguru import logger

__all__ = ["BaseAPIToolkit"]


class BaseAPIToolkit:
    """Helper class for API business logic functionality.

    This class should be inherited alongside other base classes:

    Example:
        ```python
        class DexScreenerToolkit(Toolkit, BaseDataToolkit, BaseAPIToolkit):
            def __init__(self, **kwargs):
                self._init_standard_configuration(http_timeout=15.0)
                super().__init__(name="dexscreener", tools=[self.get_market_data], **kwargs)
                self._init_data_helpers("./data", toolkit_name="dexscreener")

            async def get_market_data(self, address: str):
                address = self._resolve_identifier(address, "token address")
                try:
                    result = await self._http_client.get("dexscreener", f"/latest/dex/tokens/{address}")
                    return self.response_builder.success_response(data=result)
                except Exception as e:
                    return self.response_builder.exception_response("/latest/dex/tokens", e)
        ```
    """

    def _resolve_identifier(
        self,
        identifier: str,
        identifier_type: str = "identifier",
        resolver_func: Optional[Callable[[str], Optional[str]]] = None,
        fallback_value: Optional[str] = None,
    ) -> str:
        """Clean and validate an identifier (address, handle, URL, name).

        NUL characters are stripped and whitespace trimmed before validation.

        Args:
            identifier: The identifier to resolve
            identifier_type: Type of identifier for error messages
            resolver_func: Optional function mapping the cleaned value to its
                canonical form; returning None means "cannot resolve"
            fallback_value: Fallback value if resolution fails

        Returns:
            str: Resolved identifier

        Raises:
            ValueError: If identifier is invalid and no fallback provided
        """
        if not identifier or not isinstance(identifier, str):
            if fallback_value:
                logger.warning(f"Invalid {identifier_type} '{identifier}', using fallback: {fallback_value}")
                return fallback_value
            raise ValueError(f"Invalid {identifier_type}: {identifier}")

        cleaned = identifier.replace("\x00", "").strip()
        if not cleaned:
            if fallback_value:
                logger.warning(f"Empty {identifier_type}, using fallback: {fallback_value}")
                return fallback_value
            raise ValueError(f"Empty {identifier_type} provided")

        if resolver_func:
            resolved = resolver_func(cleaned)
            if resolved:
                return resolved
            if fallback_value:
                logger.warning(f"Cannot resolve {identifier_type} '{cleaned}', using fallback: {fallback_value}")
                return fallback_value
            raise ValueError(f"Cannot resolve {identifier_type}: {cleaned}")

        return cleaned

    # =========================================================================
    # DateTime Utilities
    # =========================================================================

    @staticmethod
    def unix_to_iso(unix_timestamp: Union[int, float]) -> str:
        """Convert Unix timestamp (seconds or milliseconds) to ISO 8601.

        Raises:
            ValueError: If timestamp is invalid
        """
        try:
            if unix_timestamp > 1e10:
                unix_timestamp = unix_timestamp / 1000
            dt = datetime.fromtimestamp(unix_timestamp, timezone.utc)
            return dt.isoformat().replace('+00:00', 'Z')
        except (OverflowError, OSError, TypeError) as e:
            raise ValueError(f"Invalid Unix timestamp '{unix_timestamp}': {e}")

    @staticmethod
    def now_iso() -> str:
        return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')

    # =========================================================================
    # Caching
    # =========================================================================

    def _init_cache_system(self, cache_ttl_seconds: int = 300) -> None:
        """Initialize the TTL cache.

        Args:
            cache_ttl_seconds: Time-to-live for cached data in seconds
        """
        self._cache_ttl = cache_ttl_seconds
        self._data_caches: Dict[str, Dict[str, Any]] = {}
        self._cache_timestamps: Dict[str, float] = {}

        logger.debug(f"Initialized cache system with TTL: {cache_ttl_seconds}s")

    def _is_cache_valid(self, cache_key: str) -> bool:
        if not hasattr(self, '_cache_timestamps') or cache_key not in self._cache_timestamps:
            return False

        age = time.time() - self._cache_timestamps[cache_key]
        return age < getattr(self, '_cache_ttl', 300)

    def _evict(self, cache_key: str) -> None:
        if hasattr(self, "_data_caches"):
            self._data_caches.pop(cache_key, None)
            self._cache_timestamps.pop(cache_key, None)

    def _cache_data(self, cache_key: str, data: Any) -> None:
        """Cache any data under ``cache_key``. Expired entries are swept first."""
        if not hasattr(self, '_data_caches'):
            self._init_cache_system()

        for stale_key in [key for key in self._cache_timestamps if not self._is_cache_valid(key)]:
            self._evict(stale_key)

        self._data_caches[cache_key] = {"data": data}
        self._cache_timestamps[cache_key] = time.time()
        logger.debug(f"Cached {type(data).__name__} data for key '{cache_key}'")

    def _get_cached_data(self, cache_key: str) -> Optional[Any]:
        """Retrieve cached data if still valid, otherwise None. Stale entries are dropped."""
        if not self._is_cache_valid(cache_key):
            self._evict(cache_key)
            return None
        return self._data_caches.get(cache_key, {}).get("data")

    # =========================================================================
    # HTTP Client Initialization
    # =========================================================================

    def _init_standard_configuration(
        self,
        http_timeout: float = 30.0,
        retry_policy: Optional[Any] = None,
        cache_ttl_seconds: int = 300,
        http_client: Optional[Any] = None,
    ) -> None:
        """Initialize standard configuration for API toolkits.

        Args:
            http_timeout: HTTP request timeout in seconds
            retry_policy: Default RetryPolicy for calls that pass none
            cache_ttl_seconds: Cache time-to-live in seconds
            http_client: Pre-built DataHTTPClient to share between toolkits
        """
        from ..utils import DataHTTPClient

        self._init_cache_system(cache_ttl_seconds)

        self._http_client = http_client or DataHTTPClient(
            default_timeout=http_timeout,
            default_policy=retry_policy,
        )

        logger.debug(f"Initialized standard configuration: timeout={http_timeout}s, cache_ttl={cache_ttl_seconds}s")
