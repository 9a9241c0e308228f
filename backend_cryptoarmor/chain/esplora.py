"""
Esplora REST client (Blockstream / mempool.space) for the Bitcoin test networks.

Same resilience policy as the Etherscan-style client: a single endpoint,
bounded linear-backoff retry on HTTP 429, no retry on anything else.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from backend_cryptoarmor.armor_logging import get_logger
from backend_cryptoarmor.chain.explorer import HTTP_TOO_MANY_REQUESTS
from backend_cryptoarmor.chain.models import TransactionRecord
from backend_cryptoarmor.chain.networks import NetworkProfile
from backend_cryptoarmor.chain.schemas import EsploraAddress, EsploraTransaction
from backend_cryptoarmor.config import Settings, get_settings
from backend_cryptoarmor.core.exceptions import EndpointTimeout, EndpointUnavailable, RateLimited

logger = get_logger(__name__)

_TX_LIST = TypeAdapter(list[EsploraTransaction])


class EsploraClient:
    def __init__(self, http: httpx.AsyncClient, settings: Settings | None = None) -> None:
        self._http = http
        self._settings = settings or get_settings()

    async def _get_json(self, profile: NetworkProfile, path: str) -> Any:
        url = f"{profile.explorer_api_url.rstrip('/')}/{path.lstrip('/')}"
        attempts = self._settings.explorer_max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                resp = await self._http.get(url, timeout=self._settings.explorer_timeout_sec)
            except httpx.TimeoutException as e:
                raise EndpointTimeout(f"Esplora timeout: {e}", endpoint=url) from e
            except httpx.HTTPError as e:
                raise EndpointUnavailable(f"Esplora transport error: {e}", endpoint=url) from e
            if resp.status_code != HTTP_TOO_MANY_REQUESTS:
                if resp.status_code >= 400:
                    raise EndpointUnavailable(f"Esplora returned {resp.status_code}", endpoint=url)
                try:
                    return resp.json()
                except ValueError as e:
                    raise EndpointUnavailable(f"Undecodable Esplora response: {e}", endpoint=url) from e
            if attempt < attempts:
                delay = self._settings.explorer_backoff_sec * attempt
                logger.info("esplora_rate_limited", network=profile.id, attempt=attempt, delay_sec=delay)
                await asyncio.sleep(delay)
        raise RateLimited(url, attempts)

    async def get_address(self, profile: NetworkProfile, address: str) -> EsploraAddress:
        data = await self._get_json(profile, f"address/{address}")
        try:
            return EsploraAddress.model_validate(data)
        except ValidationError as e:
            raise EndpointUnavailable(f"Undecodable Esplora address stats: {e}") from e

    async def list_transactions(self, profile: NetworkProfile, address: str, limit: int) -> list[TransactionRecord]:
        """Newest-first confirmed and mempool transactions touching address."""
        data = await self._get_json(profile, f"address/{address}/txs")
        try:
            txs = _TX_LIST.validate_python(data if isinstance(data, list) else [])
        except ValidationError as e:
            raise EndpointUnavailable(f"Undecodable Esplora transactions: {e}") from e
        return [_to_record(tx, address) for tx in txs[:limit]]


def _to_record(tx: EsploraTransaction, address: str) -> TransactionRecord:
    senders = [i.prevout.scriptpubkey_address for i in tx.vin if i.prevout and i.prevout.scriptpubkey_address]
    receivers = [o.scriptpubkey_address for o in tx.vout if o.scriptpubkey_address]
    received = sum(o.value for o in tx.vout if o.scriptpubkey_address == address)
    if address in senders:
        # Outgoing: value is what left the wallet for other addresses
        value = sum(o.value for o in tx.vout if o.scriptpubkey_address != address)
        to_address = next((r for r in receivers if r != address), None)
    else:
        value = received
        to_address = address
    return TransactionRecord(
        hash=tx.txid,
        from_address=senders[0] if senders else "",
        to_address=to_address,
        value_base_units=value,
        timestamp=tx.status.block_time or 0,
        gas_used=tx.fee,
        failed=False,
    )
