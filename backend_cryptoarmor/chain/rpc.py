"""
JSON-RPC client with sequential endpoint failover.

Responsibilities:
- Try each endpoint of a network once, in priority order (operator override
  first, then the registry list), each attempt bounded by its own timeout.
- Advance on timeout, transport error, non-2xx status, undecodable body, RPC
  error object, or a result the caller's decoder rejects. First good result wins.
- Refuse chain id 1 before any I/O and fail closed when an endpoint reports it.
"""

from __future__ import annotations

import asyncio
import itertools
import random
from typing import Any, Callable, TypeVar

import httpx
from pydantic import ValidationError

from backend_cryptoarmor.armor_logging import get_logger
from backend_cryptoarmor.chain.networks import MAINNET_CHAIN_ID, NetworkProfile, get_network, rpc_networks
from backend_cryptoarmor.chain.schemas import RpcEnvelope, parse_quantity
from backend_cryptoarmor.config import Settings, get_settings
from backend_cryptoarmor.config.env import get_rpc_override
from backend_cryptoarmor.core.exceptions import (
    AllEndpointsFailed,
    ChainIdMismatch,
    EndpointTimeout,
    EndpointUnavailable,
    MainnetChainRejected,
    UnsupportedNetwork,
)

logger = get_logger(__name__)

T = TypeVar("T")

_request_ids = itertools.count(1)


def _build_rpc_body(method: str, params: list[Any]) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": next(_request_ids), "method": method, "params": params}


def _identity(value: Any) -> Any:
    return value


def ensure_not_mainnet(profile: NetworkProfile) -> None:
    """Chain-id guard: refuse any RPC work on an EVM profile registered as chain id 1."""
    if profile.is_evm and (profile.chain_id == MAINNET_CHAIN_ID or profile.is_mainnet):
        raise MainnetChainRejected(profile.id, expected=profile.chain_id, actual=None)


class RpcClient:
    """
    Read-only JSON-RPC access to the EVM testnets in the registry.

    The httpx.AsyncClient is owned by the caller (ChainDataClient) so one
    connection pool serves every sub-query of a request.
    """

    def __init__(self, http: httpx.AsyncClient, settings: Settings | None = None) -> None:
        self._http = http
        self._settings = settings or get_settings()

    def endpoints_for(self, profile: NetworkProfile) -> list[str]:
        """Operator override (if set) followed by registry defaults, without duplicates."""
        urls: list[str] = []
        override = get_rpc_override(profile.rpc_env_var)
        for url in ([override] if override else []) + list(profile.rpc_endpoints):
            url = url.rstrip("/")
            if url and url not in urls:
                urls.append(url)
        return urls

    async def call(
        self,
        network: str,
        method: str,
        params: list[Any] | None = None,
        decode: Callable[[Any], T] = _identity,
    ) -> T:
        """
        Run one JSON-RPC method with failover across the network's endpoints.

        decode is applied per endpoint; a ValueError/TypeError from it counts as a
        malformed result and moves on to the next endpoint.
        Raises MainnetChainRejected, UnsupportedNetwork, or AllEndpointsFailed.
        """
        profile = get_network(network)
        ensure_not_mainnet(profile)
        if not profile.supports_rpc:
            raise UnsupportedNetwork(network, [p.id for p in rpc_networks()])
        endpoints = self.endpoints_for(profile)
        params = list(params or [])
        last_error: Exception | None = None

        for attempt, url in enumerate(endpoints, start=1):
            if attempt > 1 and self._settings.rpc_failover_backoff_sec > 0:
                await asyncio.sleep(random.uniform(0, self._settings.rpc_failover_backoff_sec))
            try:
                raw = await self._post(url, method, params)
                value = decode(raw)
            except EndpointUnavailable as e:
                last_error = e
            except (ValueError, TypeError) as e:
                last_error = EndpointUnavailable(f"Malformed {method} result: {e}", endpoint=url)
            else:
                logger.debug("rpc_call_ok", network=network, method=method, endpoint=url, attempt=attempt)
                return value
            logger.info(
                "rpc_endpoint_failed",
                network=network,
                method=method,
                endpoint=url,
                attempt=attempt,
                remaining=len(endpoints) - attempt,
                error=str(last_error),
            )

        logger.warning("rpc_all_endpoints_failed", network=network, method=method, attempts=len(endpoints))
        raise AllEndpointsFailed(network, method, len(endpoints), last_error)

    async def _post(self, url: str, method: str, params: list[Any]) -> Any:
        """Single attempt against one endpoint; every failure becomes EndpointUnavailable."""
        body = _build_rpc_body(method, params)
        try:
            resp = await self._http.post(url, json=body, timeout=self._settings.rpc_timeout_sec)
        except httpx.TimeoutException as e:
            raise EndpointTimeout(f"RPC timeout after {self._settings.rpc_timeout_sec}s", endpoint=url) from e
        except httpx.HTTPError as e:
            raise EndpointUnavailable(f"RPC transport error: {e}", endpoint=url) from e

        if resp.status_code >= 400:
            raise EndpointUnavailable(
                f"RPC request failed: {resp.status_code} {resp.reason_phrase}", endpoint=url
            )
        try:
            envelope = RpcEnvelope.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise EndpointUnavailable(f"Undecodable RPC response: {e}", endpoint=url) from e
        if envelope.error is not None:
            raise EndpointUnavailable(f"RPC error: {envelope.error.message}", endpoint=url)
        if not envelope.has_result:
            raise EndpointUnavailable("RPC response has no result", endpoint=url)
        return envelope.result

    # -------------------------------------------------------------------------
    # Typed helpers
    # -------------------------------------------------------------------------

    async def get_balance(self, network: str, address: str) -> int:
        logger.debug("rpc_get_balance", network=network, address=address)
        return await self.call(network, "eth_getBalance", [address, "latest"], decode=parse_quantity)

    async def get_transaction_count(self, network: str, address: str) -> int:
        return await self.call(network, "eth_getTransactionCount", [address, "latest"], decode=parse_quantity)

    async def get_block_number(self, network: str) -> int:
        return await self.call(network, "eth_blockNumber", [], decode=parse_quantity)

    async def get_gas_price(self, network: str) -> int:
        return await self.call(network, "eth_gasPrice", [], decode=parse_quantity)

    async def get_code(self, network: str, address: str) -> str:
        def _decode(value: Any) -> str:
            if not isinstance(value, str):
                raise ValueError(f"expected hex code string, got {value!r}")
            return value

        return await self.call(network, "eth_getCode", [address, "latest"], decode=_decode)

    async def get_transaction(self, network: str, tx_hash: str) -> dict[str, Any] | None:
        def _decode(value: Any) -> dict[str, Any] | None:
            if value is not None and not isinstance(value, dict):
                raise ValueError("expected transaction object or null")
            return value

        return await self.call(network, "eth_getTransactionByHash", [tx_hash], decode=_decode)

    async def get_chain_id(self, network: str, verify: bool = True) -> int:
        """
        Fetch eth_chainId. Chain id 1 always fails closed; with verify=True any
        value other than the registered chain id raises ChainIdMismatch. Neither
        error triggers failover to another endpoint.
        """
        profile = get_network(network)
        chain_id = await self.call(network, "eth_chainId", [], decode=parse_quantity)
        if chain_id == MAINNET_CHAIN_ID:
            logger.error("rpc_mainnet_chain_observed", network=network)
            raise MainnetChainRejected(network, expected=profile.chain_id, actual=chain_id)
        if verify and chain_id != profile.chain_id:
            logger.error("rpc_chain_id_mismatch", network=network, expected=profile.chain_id, actual=chain_id)
            raise ChainIdMismatch(network, profile.chain_id, chain_id)
        return chain_id
