"""
Action gateway: {action, address?, network?, txhash?, limit?} -> {success, data?, error?}.

Two variants share one entry point:
- testnet variant (network given): RPC and explorer actions against a
  registered testnet;
- mainnet variant (no network): explorer-only actions against Ethereum
  mainnet, available only when ETHERSCAN_API_KEY is configured.

networks / health need no network. Protocol errors (unknown action or
network, missing fields) are never retried and map to HTTP 400; upstream
failures map to HTTP 502.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

from backend_cryptoarmor import __version__
from backend_cryptoarmor.analytics.address_classifier import is_evm_address
from backend_cryptoarmor.armor_logging import get_logger
from backend_cryptoarmor.chain.client import ChainDataClient
from backend_cryptoarmor.chain.models import format_base_units
from backend_cryptoarmor.chain.networks import (
    ETHEREUM_MAINNET,
    NETWORKS,
    NetworkProfile,
    get_network,
    testnet_ids,
)
from backend_cryptoarmor.core.exceptions import (
    ChainDataError,
    ConfigurationError,
    CryptoArmorError,
    ProtocolError,
    UnsupportedAction,
    UnsupportedNetwork,
)

logger = get_logger(__name__)

MAX_LIMIT = 100

NETWORK_FREE_ACTIONS = ("networks", "health")
EXPLORER_ACTIONS = ("balance", "txlist", "tokentx", "txinfo", "contractinfo", "accountinfo")
RPC_ONLY_ACTIONS = ("blocknumber", "chainid", "gasprice")
TESTNET_ACTIONS = EXPLORER_ACTIONS + RPC_ONLY_ACTIONS
UTXO_ACTIONS = ("balance", "txlist", "accountinfo")
ADDRESS_ACTIONS = ("balance", "txlist", "tokentx", "contractinfo", "accountinfo")

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_BAD_GATEWAY = 502
HTTP_SERVICE_UNAVAILABLE = 503


class GatewayRequest(BaseModel):
    action: str = Field(..., min_length=1, description="Gateway action name")
    address: str | None = Field(None, description="Account or contract address")
    network: str | None = Field(None, description="Registered testnet id; omit for the mainnet variant")
    txhash: str | None = Field(None, description="Transaction hash for txinfo")
    limit: int | None = Field(None, ge=1, le=MAX_LIMIT, description="Max records for txlist / tokentx")


class GatewayResponse(BaseModel):
    success: bool
    data: Any = None
    error: str | None = None
    network: str | None = None
    latency_ms: int | None = None
    status_code: int = Field(HTTP_OK, exclude=True)


Handler = Callable[[ChainDataClient, NetworkProfile, GatewayRequest], Awaitable[Any]]


def _require_address(request: GatewayRequest, profile: NetworkProfile) -> str:
    address = (request.address or "").strip()
    if not address:
        raise ProtocolError(f"address is required for action {request.action}")
    if profile.is_evm and not is_evm_address(address):
        raise ProtocolError(f"Invalid EVM address: {address}")
    return address


def _limit(client: ChainDataClient, request: GatewayRequest) -> int:
    return request.limit or client.settings.tx_history_limit


# -----------------------------------------------------------------------------
# Action handlers
# -----------------------------------------------------------------------------


async def _balance(client: ChainDataClient, profile: NetworkProfile, request: GatewayRequest) -> Any:
    address = _require_address(request, profile)
    if not profile.is_evm:
        balance = (await client.esplora.get_address(profile, address)).balance_sats
    elif profile.is_mainnet:
        balance = await client.explorer.get_balance(profile, address)
    else:
        balance = await client.rpc.get_balance(profile.id, address)
    return {
        "address": address,
        "balance_base_units": str(balance),
        "balance": format_base_units(balance, profile.decimals),
        "symbol": profile.native_symbol,
    }


async def _txlist(client: ChainDataClient, profile: NetworkProfile, request: GatewayRequest) -> Any:
    address = _require_address(request, profile)
    if profile.is_evm:
        records = await client.explorer.list_transactions(profile, address, _limit(client, request))
    else:
        records = await client.esplora.list_transactions(profile, address, _limit(client, request))
    return [r.to_dict() for r in records]


async def _tokentx(client: ChainDataClient, profile: NetworkProfile, request: GatewayRequest) -> Any:
    address = _require_address(request, profile)
    transfers = await client.explorer.list_token_transfers(profile, address, _limit(client, request))
    return [t.to_dict() for t in transfers]


async def _txinfo(client: ChainDataClient, profile: NetworkProfile, request: GatewayRequest) -> Any:
    txhash = (request.txhash or "").strip()
    if not txhash:
        raise ProtocolError("txhash is required for action txinfo")
    if profile.is_mainnet:
        return await client.explorer.get_transaction(profile, txhash)
    return await client.rpc.get_transaction(profile.id, txhash)


async def _contractinfo(client: ChainDataClient, profile: NetworkProfile, request: GatewayRequest) -> Any:
    address = _require_address(request, profile)
    return await client.explorer.get_contract_source_raw(profile, address)


async def _accountinfo(client: ChainDataClient, profile: NetworkProfile, request: GatewayRequest) -> Any:
    address = _require_address(request, profile)
    snapshot = await client.fetch_account_snapshot(address, profile.id)
    return snapshot.to_dict()


async def _blocknumber(client: ChainDataClient, profile: NetworkProfile, request: GatewayRequest) -> Any:
    started = time.monotonic()
    block_number = await client.rpc.get_block_number(profile.id)
    chain_id = await client.rpc.get_chain_id(profile.id, verify=False)
    return {
        "block_number": block_number,
        "chain_id": chain_id,
        "expected_chain_id": profile.chain_id,
        "latency_ms": int((time.monotonic() - started) * 1000),
    }


async def _chainid(client: ChainDataClient, profile: NetworkProfile, request: GatewayRequest) -> Any:
    chain_id = await client.rpc.get_chain_id(profile.id, verify=True)
    return {"chain_id": chain_id, "verified": True}


async def _gasprice(client: ChainDataClient, profile: NetworkProfile, request: GatewayRequest) -> Any:
    wei = await client.rpc.get_gas_price(profile.id)
    gwei = Decimal(wei).scaleb(-9)
    return {"gas_price": hex(wei), "gas_price_wei": str(wei), "gas_price_gwei": f"{gwei:.2f}"}


HANDLERS: dict[str, Handler] = {
    "balance": _balance,
    "txlist": _txlist,
    "tokentx": _tokentx,
    "txinfo": _txinfo,
    "contractinfo": _contractinfo,
    "accountinfo": _accountinfo,
    "blocknumber": _blocknumber,
    "chainid": _chainid,
    "gasprice": _gasprice,
}


async def _network_free(client: ChainDataClient, action: str) -> Any:
    health = [h.to_dict() for h in await client.check_all_networks_health()]
    if action == "networks":
        return health
    return {
        "version": __version__,
        "networks": health,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _resolve_profile(client: ChainDataClient, request: GatewayRequest) -> NetworkProfile:
    """Pick the testnet profile, or the mainnet profile when no network is given."""
    action = request.action
    if request.network:
        if request.network not in NETWORKS or NETWORKS[request.network].is_mainnet:
            raise UnsupportedNetwork(request.network, testnet_ids())
        profile = get_network(request.network)
        allowed = TESTNET_ACTIONS if profile.is_evm else UTXO_ACTIONS
        if action not in allowed:
            raise UnsupportedAction(action)
        return profile

    if action in RPC_ONLY_ACTIONS:
        raise ProtocolError(f"network is required for action {action}")
    if action not in EXPLORER_ACTIONS:
        raise UnsupportedAction(action)
    if not client.settings.etherscan_api_key:
        raise ConfigurationError("Etherscan API key not configured")
    return get_network(ETHEREUM_MAINNET)


async def handle_action(request: GatewayRequest, client: ChainDataClient) -> GatewayResponse:
    """Dispatch one gateway request. Never raises for protocol or upstream errors."""
    started = time.monotonic()
    action = request.action.strip().lower()
    request = request.model_copy(update={"action": action})
    logger.info(
        "gateway_request",
        action=action,
        network=request.network,
        address=request.address or request.txhash,
    )

    def _done(status_code: int, **fields: Any) -> GatewayResponse:
        return GatewayResponse(
            latency_ms=int((time.monotonic() - started) * 1000),
            status_code=status_code,
            **fields,
        )

    try:
        if action in NETWORK_FREE_ACTIONS:
            data = await _network_free(client, action)
            return _done(HTTP_OK, success=True, data=data)
        profile = _resolve_profile(client, request)
        data = await HANDLERS[action](client, profile, request)
    except ProtocolError as e:
        logger.info("gateway_protocol_error", action=action, network=request.network, error=str(e))
        return _done(HTTP_BAD_REQUEST, success=False, error=str(e))
    except ConfigurationError as e:
        logger.error("gateway_configuration_error", action=action, error=str(e))
        return _done(HTTP_SERVICE_UNAVAILABLE, success=False, error=str(e))
    except ChainDataError as e:
        logger.warning("gateway_upstream_error", action=action, network=request.network, error=str(e))
        return _done(HTTP_BAD_GATEWAY, success=False, error=str(e), network=request.network)
    except CryptoArmorError as e:
        logger.warning("gateway_error", action=action, error=str(e))
        return _done(HTTP_BAD_REQUEST, success=False, error=str(e))
    return _done(HTTP_OK, success=True, data=data, network=profile.id)
