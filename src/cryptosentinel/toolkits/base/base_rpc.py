from __future__ import annotations

"""Base Solana RPC Helper Class
==============================

Shared JSON-RPC access for toolkits that talk to Solana: the public (or
configured) RPC node and the Helius RPC, which adds the DAS and token-account
enumeration methods.

Key Features:
- Lazy endpoint registration on the shared DataHTTPClient
- Helius calls fail fast with ``MissingConfigurationError`` without an API key
- Per-call retry policies
"""

from typing import Any, Dict, List, Optional, Union

from loguru import logger

from ...config.defaults import DEFAULT_HELIUS_RPC_URL, DEFAULT_SOLANA_RPC_URL
from ...exceptions import MissingConfigurationError

__all__ = ["BaseSolanaRPCToolkit", "SOLANA_RPC_ENDPOINT", "HELIUS_RPC_ENDPOINT"]

SOLANA_RPC_ENDPOINT = "solana_rpc"
HELIUS_RPC_ENDPOINT = "helius_rpc"


class BaseSolanaRPCToolkit:
    """Helper class adding Solana JSON-RPC calls to a toolkit.

    Requires ``_init_standard_configuration`` (for ``self._http_client``) to
    have been called first.
    """

    def _init_rpc_helpers(
        self,
        rpc_url: Optional[str] = None,
        helius_api_key: Optional[str] = None,
        helius_rpc_url: str = DEFAULT_HELIUS_RPC_URL,
    ) -> None:
        self._rpc_url = (rpc_url or DEFAULT_SOLANA_RPC_URL).rstrip("/")
        self._helius_api_key = helius_api_key
        self._helius_rpc_url = helius_rpc_url.rstrip("/")

    @property
    def has_helius(self) -> bool:
        return bool(self._helius_api_key)

    async def _ensure_rpc_endpoint(self, name: str) -> None:
        if name in self._http_client.get_endpoints():
            return
        base_url = self._rpc_url if name == SOLANA_RPC_ENDPOINT else self._helius_rpc_url
        await self._http_client.add_endpoint(
            name,
            base_url,
            headers={"Content-Type": "application/json"},
        )
        logger.debug(f"Registered RPC endpoint '{name}' at {base_url}")

    async def _rpc(
        self,
        method: str,
        params: Optional[Union[List[Any], Dict[str, Any]]] = None,
        policy: Optional[Any] = None,
    ) -> Any:
        """Call a standard Solana RPC method on the configured node."""
        await self._ensure_rpc_endpoint(SOLANA_RPC_ENDPOINT)
        return await self._http_client.json_rpc(SOLANA_RPC_ENDPOINT, method, params, policy=policy)

    async def _helius_rpc(
        self,
        method: str,
        params: Optional[Union[List[Any], Dict[str, Any]]] = None,
        policy: Optional[Any] = None,
        request_id: Optional[str] = None,
        retry: bool = True,
    ) -> Any:
        """Call a Helius RPC/DAS method.

        Raises:
            MissingConfigurationError: No Helius API key configured
        """
        if not self._helius_api_key:
            raise MissingConfigurationError("HELIUS_API_KEY")

        await self._ensure_rpc_endpoint(HELIUS_RPC_ENDPOINT)
        return await self._http_client.json_rpc(
            HELIUS_RPC_ENDPOINT,
            method,
            params,
            path="/",
            query={"api-key": self._helius_api_key},
            request_id=request_id,
            policy=policy,
            retry=retry,
        )
