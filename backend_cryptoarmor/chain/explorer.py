"""
Etherscan-style explorer API client with bounded rate-limit retry.

One endpoint per network; no failover. A response that signals a rate limit
(status "0" with "rate limit" in the body, or HTTP 429) is retried up to
explorer_max_retries times with linear backoff. Any other status "0" answer,
including "No transactions found", is a successful empty result.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from pydantic import ValidationError

from backend_cryptoarmor.armor_logging import get_logger
from backend_cryptoarmor.chain.models import TokenTransfer, TransactionRecord
from backend_cryptoarmor.chain.networks import NetworkProfile
from backend_cryptoarmor.chain.schemas import (
    ContractSource,
    ExplorerEnvelope,
    ExplorerTokenTransfer,
    ExplorerTransaction,
    parse_int,
    parse_quantity,
)
from backend_cryptoarmor.config import Settings, get_settings
from backend_cryptoarmor.core.exceptions import EndpointTimeout, EndpointUnavailable, RateLimited

logger = get_logger(__name__)

HTTP_TOO_MANY_REQUESTS = 429
END_BLOCK = 99999999


class ExplorerClient:
    def __init__(self, http: httpx.AsyncClient, settings: Settings | None = None) -> None:
        self._http = http
        self._settings = settings or get_settings()

    async def query(self, profile: NetworkProfile, params: dict[str, Any]) -> ExplorerEnvelope:
        """
        GET explorer_api_url with params; retry only on rate limiting.

        Raises RateLimited once the retry bound is spent, EndpointUnavailable on
        transport errors or undecodable bodies.
        """
        url = profile.explorer_api_url
        query = dict(params)
        if self._settings.etherscan_api_key:
            query["apikey"] = self._settings.etherscan_api_key
        attempts = self._settings.explorer_max_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                resp = await self._http.get(url, params=query, timeout=self._settings.explorer_timeout_sec)
            except httpx.TimeoutException as e:
                raise EndpointTimeout(f"Explorer timeout: {e}", endpoint=url) from e
            except httpx.HTTPError as e:
                raise EndpointUnavailable(f"Explorer transport error: {e}", endpoint=url) from e

            envelope: ExplorerEnvelope | None = None
            if resp.status_code != HTTP_TOO_MANY_REQUESTS:
                if resp.status_code >= 400:
                    raise EndpointUnavailable(f"Explorer returned {resp.status_code}", endpoint=url)
                try:
                    envelope = ExplorerEnvelope.model_validate(resp.json())
                except (ValueError, ValidationError) as e:
                    raise EndpointUnavailable(f"Undecodable explorer response: {e}", endpoint=url) from e
                if not envelope.is_rate_limited:
                    return envelope

            if attempt < attempts:
                delay = self._settings.explorer_backoff_sec * attempt
                logger.info(
                    "explorer_rate_limited",
                    network=profile.id,
                    action=params.get("action"),
                    attempt=attempt,
                    max_retries=self._settings.explorer_max_retries,
                    delay_sec=delay,
                )
                await asyncio.sleep(delay)

        logger.warning("explorer_rate_limit_exhausted", network=profile.id, action=params.get("action"), attempts=attempts)
        raise RateLimited(url, attempts)

    # -------------------------------------------------------------------------
    # Account module
    # -------------------------------------------------------------------------

    async def list_transactions(self, profile: NetworkProfile, address: str, limit: int) -> list[TransactionRecord]:
        envelope = await self.query(profile, {
            "module": "account",
            "action": "txlist",
            "address": address,
            "startblock": 0,
            "endblock": END_BLOCK,
            "page": 1,
            "offset": limit,
            "sort": "desc",
        })
        if envelope.is_error:
            logger.debug("explorer_txlist_empty", network=profile.id, address=address, message=envelope.message)
            return []
        records: list[TransactionRecord] = []
        for item in _as_list(envelope.result)[:limit]:
            try:
                tx = ExplorerTransaction.model_validate(item)
            except ValidationError as e:
                logger.debug("explorer_txlist_skip_item", network=profile.id, error=str(e))
                continue
            records.append(TransactionRecord(
                hash=tx.hash,
                from_address=tx.from_address,
                to_address=tx.to or None,
                value_base_units=parse_int(tx.value),
                timestamp=parse_int(tx.time_stamp),
                gas_used=parse_int(tx.gas_used),
                failed=tx.failed,
                function_name=tx.function_name or None,
            ))
        return records

    async def list_token_transfers(self, profile: NetworkProfile, address: str, limit: int) -> list[TokenTransfer]:
        envelope = await self.query(profile, {
            "module": "account",
            "action": "tokentx",
            "address": address,
            "page": 1,
            "offset": limit,
            "sort": "desc",
        })
        if envelope.is_error:
            return []
        transfers: list[TokenTransfer] = []
        for item in _as_list(envelope.result)[:limit]:
            try:
                t = ExplorerTokenTransfer.model_validate(item)
            except ValidationError:
                continue
            transfers.append(TokenTransfer(
                hash=t.hash,
                from_address=t.from_address,
                to_address=t.to,
                value=t.value,
                token_name=t.token_name,
                token_symbol=t.token_symbol,
                token_decimal=parse_int(t.token_decimal),
                timestamp=parse_int(t.time_stamp),
            ))
        return transfers

    async def get_balance(self, profile: NetworkProfile, address: str) -> int:
        """Mainnet variant: balance from the explorer instead of RPC."""
        envelope = await self.query(profile, {
            "module": "account",
            "action": "balance",
            "address": address,
            "tag": "latest",
        })
        if envelope.is_error:
            raise EndpointUnavailable(f"Explorer balance failed: {envelope.message}", endpoint=profile.explorer_api_url)
        return parse_int(envelope.result)

    # -------------------------------------------------------------------------
    # Contract module
    # -------------------------------------------------------------------------

    async def get_contract_source(self, profile: NetworkProfile, address: str) -> ContractSource | None:
        """Return the first getsourcecode entry, or None when the explorer has none."""
        envelope = await self.query(profile, {
            "module": "contract",
            "action": "getsourcecode",
            "address": address,
        })
        if envelope.is_error:
            return None
        entries = _as_list(envelope.result)
        if not entries or not isinstance(entries[0], dict):
            return None
        try:
            return ContractSource.model_validate(entries[0])
        except ValidationError as e:
            raise EndpointUnavailable(f"Undecodable contract source: {e}", endpoint=profile.explorer_api_url) from e

    async def get_contract_source_raw(self, profile: NetworkProfile, address: str) -> Any:
        envelope = await self.query(profile, {
            "module": "contract",
            "action": "getsourcecode",
            "address": address,
        })
        return envelope.result

    # -------------------------------------------------------------------------
    # Proxy module (mainnet variant; JSON-RPC shaped results)
    # -------------------------------------------------------------------------

    async def _proxy(self, profile: NetworkProfile, action: str, **params: Any) -> Any:
        envelope = await self.query(profile, {"module": "proxy", "action": action, **params})
        if envelope.is_error or (isinstance(envelope.result, str) and not envelope.result.startswith("0x")):
            raise EndpointUnavailable(f"Explorer proxy {action} failed: {envelope.result}", endpoint=profile.explorer_api_url)
        return envelope.result

    async def get_transaction_count(self, profile: NetworkProfile, address: str) -> int:
        result = await self._proxy(profile, "eth_getTransactionCount", address=address, tag="latest")
        try:
            return parse_quantity(result)
        except ValueError as e:
            raise EndpointUnavailable(str(e), endpoint=profile.explorer_api_url) from e

    async def get_code(self, profile: NetworkProfile, address: str) -> str:
        result = await self._proxy(profile, "eth_getCode", address=address, tag="latest")
        return result if isinstance(result, str) else "0x"

    async def get_transaction(self, profile: NetworkProfile, tx_hash: str) -> dict[str, Any] | None:
        envelope = await self.query(profile, {"module": "proxy", "action": "eth_getTransactionByHash", "txhash": tx_hash})
        return envelope.result if isinstance(envelope.result, dict) else None


def _as_list(result: Any) -> list[Any]:
    return result if isinstance(result, list) else []
