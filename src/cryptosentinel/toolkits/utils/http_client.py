from __future__ import annotations

"""Async HTTP Client for Data Toolkits
=====================================

A reusable HTTP client shared by the Solana, DexScreener, X and GitHub
toolkits. Each named endpoint gets its own ``httpx.AsyncClient`` with its own
base URL, headers, timeout and minimum request spacing.

Key Features:
- Multiple endpoint support with different base URLs
- Custom headers per endpoint or globally
- Automatic JSON parsing; non-JSON bodies are structural errors
- Every request goes through ``retry_with_backoff`` with a per-call policy
- JSON-RPC helper that turns in-body ``error`` objects into classified failures
- Proper async resource management
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
from loguru import logger

from ...exceptions import StructuralUpstreamError, UpstreamError
from .retry import RetryPolicy, retry_with_backoff

__all__ = ["DataHTTPClient", "HTTPClientError", "JsonRpcError"]

# JSON-RPC error codes some providers use for throttling
RPC_RATE_LIMIT_CODES = {429, -32429}


class HTTPClientError(UpstreamError):
    """Raised for non-2xx responses and transport failures."""

    def __init__(self, message: str, status_code: int = None, response_text: str = None,
                 retry_after: Optional[float] = None, source: Optional[str] = None):
        super().__init__(message, source=source, status_code=status_code, response_text=response_text)
        self.retry_after = retry_after


class JsonRpcError(UpstreamError):
    """Raised when a JSON-RPC response carries an ``error`` object.

    ``status_code`` is set to 429 for throttling codes, left empty for the
    reserved server-error range (-32099..-32000) and 400 otherwise, so the
    retrier classifies RPC errors the same way as HTTP ones.
    """

    def __init__(self, message: str, rpc_code: Optional[int] = None, source: Optional[str] = None):
        if rpc_code in RPC_RATE_LIMIT_CODES:
            status_code = 429
        elif isinstance(rpc_code, int) and -32099 <= rpc_code <= -32000:
            status_code = None
        else:
            status_code = 400
        super().__init__(message, source=source, status_code=status_code)
        self.rpc_code = rpc_code


def _parse_retry_after(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def raise_for_rpc_error(payload: Any, source: str) -> None:
    """Validate the JSON-RPC envelope, raising on ``error`` or a non-object body."""
    if not isinstance(payload, dict):
        raise StructuralUpstreamError(f"{source} returned a non-object JSON-RPC response", source=source)

    error = payload.get("error")
    if error is None:
        return

    if isinstance(error, dict):
        code = error.get("code")
        message = error.get("message", "unknown error")
    else:
        code, message = None, str(error)
    raise JsonRpcError(f"{source} API error: {message}", rpc_code=code, source=source)


class DataHTTPClient:
    """Async HTTP client for data toolkit operations.

    Provides a unified interface for making HTTP requests across the
    different upstream APIs. Supports multiple endpoints, authentication
    headers, per-endpoint request spacing and automatic resource management.

    Example:
        ```python
        client = DataHTTPClient()
        await client.add_endpoint("dexscreener", "https://api.dexscreener.com")
        pairs = await client.get("dexscreener", f"/latest/dex/tokens/{address}",
                                 policy=RetryPolicy.preset("dexscreener"))

        await client.add_endpoint("solana_rpc", "https://api.mainnet-beta.solana.com")
        result = await client.json_rpc("solana_rpc", "getBalance", [address])
        ```
    """

    def __init__(
        self,
        default_timeout: float = 30.0,
        default_headers: Optional[Dict[str, str]] = None,
        default_policy: Optional[RetryPolicy] = None,
        default_rate_limit: Optional[float] = None,
    ):
        """Initialize the HTTP client.

        Args:
            default_timeout: Default timeout for all requests in seconds
            default_headers: Default headers applied to all requests
            default_policy: Retry policy used when a call does not pass one
            default_rate_limit: Default minimum seconds between requests (None = no limit)
        """
        self._default_timeout = default_timeout
        self._default_headers = default_headers or {}
        self._default_policy = default_policy or RetryPolicy.preset("default")
        self._default_rate_limit = default_rate_limit

        self._endpoints: Dict[str, Dict[str, Any]] = {}
        self._clients: Dict[str, httpx.AsyncClient] = {}
        self._last_request_times: Dict[str, float] = {}

        logger.debug(f"Initialized DataHTTPClient with {default_timeout}s timeout")

    async def add_endpoint(
        self,
        name: str,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        rate_limit: Optional[float] = None,
        **client_kwargs: Any,
    ) -> None:
        """Add a new endpoint configuration.

        Args:
            name: Unique identifier for this endpoint
            base_url: Base URL for the endpoint
            headers: Additional headers specific to this endpoint
            timeout: Custom timeout for this endpoint (overrides default)
            rate_limit: Minimum seconds between requests to this endpoint (overrides default)
            **client_kwargs: Additional arguments passed to httpx.AsyncClient
        """
        if name in self._endpoints:
            logger.warning(f"Endpoint '{name}' already exists, updating configuration")
            if name in self._clients:
                await self._clients[name].aclose()
                del self._clients[name]

        endpoint_headers = {**self._default_headers}
        if headers:
            endpoint_headers.update(headers)

        self._endpoints[name] = {
            "base_url": base_url,
            "headers": endpoint_headers,
            "timeout": timeout or self._default_timeout,
            "rate_limit": rate_limit if rate_limit is not None else self._default_rate_limit,
            "client_kwargs": client_kwargs,
        }

        logger.debug(f"Added endpoint '{name}' with base URL: {base_url}")

    def _get_client(self, endpoint_name: str) -> httpx.AsyncClient:
        """Get or create HTTP client for the specified endpoint.

        Raises:
            ValueError: If endpoint is not configured
        """
        if endpoint_name not in self._endpoints:
            available = list(self._endpoints.keys())
            raise ValueError(f"Endpoint '{endpoint_name}' not configured. Available: {available}")

        if endpoint_name not in self._clients:
            config = self._endpoints[endpoint_name]

            self._clients[endpoint_name] = httpx.AsyncClient(
                base_url=config["base_url"],
                headers=config["headers"],
                timeout=config["timeout"],
                **config["client_kwargs"],
            )

            logger.debug(f"Created HTTP client for endpoint '{endpoint_name}'")

        return self._clients[endpoint_name]

    async def _apply_rate_limit(self, endpoint_name: str) -> None:
        """Sleep until the endpoint's minimum request spacing has elapsed."""
        rate_limit = self._endpoints.get(endpoint_name, {}).get("rate_limit")
        if rate_limit is None:
            return

        current_time = time.time()
        last_request_time = self._last_request_times.get(endpoint_name, 0)

        time_since_last = current_time - last_request_time
        if time_since_last < rate_limit:
            sleep_time = rate_limit - time_since_last
            logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s for endpoint '{endpoint_name}'")
            await asyncio.sleep(sleep_time)

        self._last_request_times[endpoint_name] = time.time()

    async def get(
        self,
        endpoint_name: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        policy: Optional[RetryPolicy] = None,
        response_check: Optional[Callable[[Any], None]] = None,
        retry: bool = True,
    ) -> Union[Dict[str, Any], List[Any]]:
        """Make a GET request to the specified endpoint.

        Args:
            endpoint_name: Name of the configured endpoint
            path: URL path (relative to endpoint base URL)
            params: Query parameters
            headers: Additional headers for this request
            timeout: Custom timeout for this request
            policy: Retry policy for this request
            response_check: Optional callable run on the parsed body inside
                each attempt; raising from it fails that attempt
            retry: Set to False for a single attempt without backoff

        Returns:
            Parsed JSON response

        Raises:
            HTTPClientError: For HTTP errors once retries are spent
            StructuralUpstreamError: For non-JSON bodies
        """
        return await self._make_request(
            endpoint_name, "GET", path, params=params, headers=headers,
            timeout=timeout, policy=policy, response_check=response_check, retry=retry
        )

    async def post(
        self,
        endpoint_name: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        policy: Optional[RetryPolicy] = None,
        response_check: Optional[Callable[[Any], None]] = None,
        retry: bool = True,
    ) -> Union[Dict[str, Any], List[Any]]:
        """Make a POST request to the specified endpoint. See ``get`` for arguments."""
        return await self._make_request(
            endpoint_name, "POST", path, json_data=json_data, params=params,
            headers=headers, timeout=timeout, policy=policy, response_check=response_check,
            retry=retry,
        )

    async def json_rpc(
        self,
        endpoint_name: str,
        method: str,
        params: Optional[Union[List[Any], Dict[str, Any]]] = None,
        path: str = "",
        query: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
        retry: bool = True,
    ) -> Any:
        """Call a JSON-RPC 2.0 method and return its ``result``.

        An ``error`` object in the body is raised inside the retried attempt,
        so throttling reported in-band is retried like an HTTP 429.

        Example:
            ```python
            signatures = await client.json_rpc(
                "solana_rpc", "getSignaturesForAddress", [address, {"limit": 100}]
            )
            ```
        """
        payload = {
            "jsonrpc": "2.0",
            "id": request_id or method,
            "method": method,
            "params": params if params is not None else [],
        }
        response = await self._make_request(
            endpoint_name, "POST", path, json_data=payload, params=query, policy=policy, retry=retry,
            response_check=lambda body: raise_for_rpc_error(body, endpoint_name),
        )
        return response.get("result")

    async def _make_request(
        self,
        endpoint_name: str,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        policy: Optional[RetryPolicy] = None,
        response_check: Optional[Callable[[Any], None]] = None,
        retry: bool = True,
    ) -> Any:
        """Make an HTTP request wrapped in the backoff retrier.

        With ``retry=False`` a single attempt is made; callers that run their
        own retry loop around this request (the paginated collector) use it.
        """
        client = self._get_client(endpoint_name)

        async def attempt() -> Any:
            await self._apply_rate_limit(endpoint_name)
            logger.debug(f"Making {method} request to {endpoint_name}{path}")

            try:
                response = await client.request(
                    method=method,
                    url=path,
                    params=params,
                    json=json_data,
                    headers=headers,
                    timeout=timeout,
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise HTTPClientError(
                    f"HTTP {e.response.status_code} error: {e.response.text}",
                    e.response.status_code,
                    e.response.text,
                    retry_after=_parse_retry_after(e.response.headers.get("retry-after")),
                    source=endpoint_name,
                ) from e
            except httpx.RequestError as e:
                raise HTTPClientError(f"Request failed: {e}", source=endpoint_name) from e

            try:
                body = response.json()
            except ValueError as e:
                raise StructuralUpstreamError(
                    f"Invalid JSON response from {endpoint_name}: {e}",
                    source=endpoint_name,
                    status_code=response.status_code,
                ) from e

            if response_check is not None:
                response_check(body)
            return body

        if not retry:
            return await attempt()

        return await retry_with_backoff(
            attempt,
            policy or self._default_policy,
            description=f"{method} {endpoint_name}{path}",
        )

    def get_endpoints(self) -> Dict[str, str]:
        """Get a summary of configured endpoints.

        Returns:
            dict: Mapping of endpoint names to their base URLs
        """
        return {name: config["base_url"] for name, config in self._endpoints.items()}

    async def aclose(self) -> None:
        """Close all HTTP clients and clean up resources."""
        for name, client in self._clients.items():
            try:
                await client.aclose()
                logger.debug(f"Closed HTTP client for endpoint '{name}'")
            except Exception as e:
                logger.warning(f"Error closing client for endpoint '{name}': {e}")

        self._clients.clear()
        logger.debug("All HTTP clients closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
