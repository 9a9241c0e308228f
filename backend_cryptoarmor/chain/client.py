"""
ChainDataClient: the single boundary between analytics and external backends.

Account snapshots fan out balance, transaction count and contract lookup
concurrently and degrade each independently to safe defaults. History and
token transfers degrade to empty lists. Health checks run one check per RPC
network concurrently. Nothing above this module sees a raw network error.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx

from backend_cryptoarmor.armor_logging import get_logger
from backend_cryptoarmor.chain.esplora import EsploraClient
from backend_cryptoarmor.chain.explorer import ExplorerClient
from backend_cryptoarmor.chain.models import (
    SUBQUERY_BALANCE,
    SUBQUERY_CHAIN_ID,
    SUBQUERY_CONTRACT,
    SUBQUERY_TX_COUNT,
    AccountSnapshot,
    ContractInfo,
    NetworkHealth,
    TokenTransfer,
    TransactionRecord,
    format_base_units,
)
from backend_cryptoarmor.chain.networks import NetworkProfile, get_network, rpc_networks
from backend_cryptoarmor.chain.rpc import RpcClient
from backend_cryptoarmor.chain.schemas import ContractSource
from backend_cryptoarmor.config import Settings, get_settings
from backend_cryptoarmor.core.exceptions import ChainDataError, ChainIdMismatch

logger = get_logger(__name__)

EMPTY_CODE = ("", "0x", "0x0")


def _has_code(code: Any) -> bool:
    return isinstance(code, str) and code.strip().lower() not in EMPTY_CODE


def _contract_info(source: ContractSource | None, code: Any) -> ContractInfo:
    """
    Contract if the address has bytecode or the explorer holds source for it.
    Verified only with non-empty source and an ABI not marked unverified.
    """
    has_source = source is not None and source.has_source
    is_contract = has_source or _has_code(code)
    return ContractInfo(
        is_contract=is_contract,
        contract_name=(source.contract_name or None) if (is_contract and source is not None) else None,
        is_verified=bool(source is not None and source.is_verified),
    )


class ChainDataClient:
    """
    Read-only chain data for one request (or one CLI run).

    Use as an async context manager. When no httpx.AsyncClient is passed in, one
    is created and closed on exit; a caller-provided client is left open.
    """

    def __init__(self, http: httpx.AsyncClient | None = None, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(headers={"User-Agent": "backend-cryptoarmor/0.1"})
        self.rpc = RpcClient(self._http, self.settings)
        self.explorer = ExplorerClient(self._http, self.settings)
        self.esplora = EsploraClient(self._http, self.settings)

    async def __aenter__(self) -> "ChainDataClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # -------------------------------------------------------------------------
    # Account snapshot
    # -------------------------------------------------------------------------

    async def fetch_account_snapshot(self, address: str, network: str) -> AccountSnapshot:
        """
        Concurrent balance / tx count / contract lookup; waits for all to settle.
        A failed sub-query contributes zero balance, zero tx count, or "not a
        contract" and is listed in AccountSnapshot.unavailable.
        """
        profile = get_network(network)
        if not profile.is_evm:
            return await self._utxo_snapshot(address, profile)

        if profile.is_mainnet:
            branches = {
                SUBQUERY_BALANCE: self.explorer.get_balance(profile, address),
                SUBQUERY_TX_COUNT: self.explorer.get_transaction_count(profile, address),
                SUBQUERY_CONTRACT: self._explorer_contract(profile, address),
            }
        else:
            branches = {
                SUBQUERY_BALANCE: self.rpc.get_balance(profile.id, address),
                SUBQUERY_TX_COUNT: self.rpc.get_transaction_count(profile.id, address),
                SUBQUERY_CONTRACT: self._rpc_contract(profile, address),
            }
            if self.settings.verify_chain_id:
                branches[SUBQUERY_CHAIN_ID] = self.rpc.get_chain_id(profile.id)

        names = list(branches)
        results = await asyncio.gather(*branches.values(), return_exceptions=True)
        settled = dict(zip(names, results))

        unavailable: list[str] = []
        for name, result in settled.items():
            if isinstance(result, BaseException):
                self._log_degraded(name, profile, address, result)
                unavailable.append(name)

        chain_error = settled.get(SUBQUERY_CHAIN_ID)
        if isinstance(chain_error, ChainIdMismatch):
            # RPC-sourced values cannot be trusted when the endpoint is on the wrong chain
            for name in (SUBQUERY_BALANCE, SUBQUERY_TX_COUNT, SUBQUERY_CONTRACT):
                if name not in unavailable:
                    unavailable.append(name)
                settled[name] = chain_error

        balance = settled[SUBQUERY_BALANCE]
        balance = balance if isinstance(balance, int) else 0
        tx_count = settled[SUBQUERY_TX_COUNT]
        tx_count = max(0, tx_count) if isinstance(tx_count, int) else 0
        contract = settled[SUBQUERY_CONTRACT]
        contract = contract if isinstance(contract, ContractInfo) else ContractInfo()

        snapshot = AccountSnapshot(
            address=address,
            network=profile.id,
            balance_base_units=balance,
            balance_display=format_base_units(balance, profile.decimals),
            tx_count=tx_count,
            is_contract=contract.is_contract,
            contract_name=contract.contract_name,
            is_verified=contract.is_verified,
            unavailable=tuple(unavailable),
        )
        logger.info(
            "chain_snapshot_fetched",
            network=profile.id,
            address=address,
            balance=snapshot.balance_display,
            tx_count=tx_count,
            is_contract=snapshot.is_contract,
            is_verified=snapshot.is_verified,
            unavailable=list(snapshot.unavailable),
        )
        return snapshot

    async def _rpc_contract(self, profile: NetworkProfile, address: str) -> ContractInfo:
        source, code = await asyncio.gather(
            self.explorer.get_contract_source(profile, address),
            self.rpc.get_code(profile.id, address),
            return_exceptions=True,
        )
        if isinstance(source, BaseException) and isinstance(code, BaseException):
            raise source
        return _contract_info(
            None if isinstance(source, BaseException) else source,
            None if isinstance(code, BaseException) else code,
        )

    async def _explorer_contract(self, profile: NetworkProfile, address: str) -> ContractInfo:
        source, code = await asyncio.gather(
            self.explorer.get_contract_source(profile, address),
            self.explorer.get_code(profile, address),
            return_exceptions=True,
        )
        if isinstance(source, BaseException) and isinstance(code, BaseException):
            raise source
        return _contract_info(
            None if isinstance(source, BaseException) else source,
            None if isinstance(code, BaseException) else code,
        )

    async def _utxo_snapshot(self, address: str, profile: NetworkProfile) -> AccountSnapshot:
        try:
            stats = await self.esplora.get_address(profile, address)
        except ChainDataError as e:
            self._log_degraded("address_stats", profile, address, e)
            return AccountSnapshot(
                address=address,
                network=profile.id,
                balance_display=format_base_units(0, profile.decimals),
                unavailable=(SUBQUERY_BALANCE, SUBQUERY_TX_COUNT, SUBQUERY_CONTRACT),
            )
        balance = stats.balance_sats
        return AccountSnapshot(
            address=address,
            network=profile.id,
            balance_base_units=balance,
            balance_display=format_base_units(balance, profile.decimals),
            tx_count=stats.tx_count,
        )

    @staticmethod
    def _log_degraded(name: str, profile: NetworkProfile, address: str, error: BaseException) -> None:
        logger.warning(
            "chain_subquery_degraded",
            subquery=name,
            network=profile.id,
            address=address,
            error_type=type(error).__name__,
            error=str(error),
        )

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def fetch_transaction_history(
        self, address: str, network: str, limit: int | None = None
    ) -> list[TransactionRecord]:
        """Newest-first, at most limit records. Any failure yields an empty list."""
        profile = get_network(network)
        limit = limit or self.settings.tx_history_limit
        try:
            if profile.is_evm:
                records = await self.explorer.list_transactions(profile, address, limit)
            else:
                records = await self.esplora.list_transactions(profile, address, limit)
        except ChainDataError as e:
            self._log_degraded("txlist", profile, address, e)
            return []
        # unconfirmed (timestamp 0) first, in upstream order; then newest-first
        records.sort(key=lambda r: (not r.timestamp, r.timestamp or 0), reverse=True)
        return records[:limit]

    async def fetch_token_transfers(
        self, address: str, network: str, limit: int | None = None
    ) -> list[TokenTransfer]:
        profile = get_network(network)
        if not profile.is_evm:
            return []
        try:
            return await self.explorer.list_token_transfers(profile, address, limit or self.settings.tx_history_limit)
        except ChainDataError as e:
            self._log_degraded("tokentx", profile, address, e)
            return []

    # -------------------------------------------------------------------------
    # Network health
    # -------------------------------------------------------------------------

    async def check_network_health(self, network: str) -> NetworkHealth:
        profile = get_network(network)
        started = time.monotonic()
        chain_id, block_number = await asyncio.gather(
            self.rpc.get_chain_id(profile.id, verify=False),
            self.rpc.get_block_number(profile.id),
            return_exceptions=True,
        )
        failure = next((r for r in (chain_id, block_number) if isinstance(r, BaseException)), None)
        if failure is not None:
            if not isinstance(failure, ChainDataError):
                raise failure
            logger.warning("network_health_error", network=profile.id, error=str(failure))
            return NetworkHealth(
                network=profile.id,
                status="error",
                chain_id=chain_id if isinstance(chain_id, int) else None,
                expected_chain_id=profile.chain_id,
                block_number=block_number if isinstance(block_number, int) else 0,
                error=str(failure),
            )
        latency_ms = int((time.monotonic() - started) * 1000)
        status = "connected" if chain_id == profile.chain_id else "error"
        error = None if status == "connected" else f"Chain ID mismatch: expected {profile.chain_id}, got {chain_id}"
        return NetworkHealth(
            network=profile.id,
            status=status,
            chain_id=chain_id,
            expected_chain_id=profile.chain_id,
            block_number=block_number,
            latency_ms=latency_ms,
            error=error,
        )

    async def check_all_networks_health(self) -> list[NetworkHealth]:
        """One health check per RPC network, concurrently; merged once all settle."""
        profiles = rpc_networks()
        results = await asyncio.gather(
            *(self.check_network_health(p.id) for p in profiles),
            return_exceptions=True,
        )
        merged: list[NetworkHealth] = []
        for profile, result in zip(profiles, results):
            if isinstance(result, NetworkHealth):
                merged.append(result)
            else:
                merged.append(NetworkHealth(
                    network=profile.id,
                    status="error",
                    expected_chain_id=profile.chain_id,
                    error=str(result),
                ))
        return merged

