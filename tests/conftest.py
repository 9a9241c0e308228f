"""
Pytest fixtures for CryptoArmor tests. All HTTP goes through httpx.MockTransport;
no test touches a live RPC endpoint or explorer.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable

import httpx
import pytest

from backend_cryptoarmor.chain.client import ChainDataClient
from backend_cryptoarmor.config import Settings

SEPOLIA_CHAIN_ID = 11155111
HOLESKY_CHAIN_ID = 17000

EXPLORER_HOSTS = ("api-sepolia.etherscan.io", "api-holesky.etherscan.io", "api.etherscan.io")
ESPLORA_HOSTS = ("blockstream.info", "mempool.space")

NO_TRANSACTIONS = {"status": "0", "message": "No transactions found", "result": []}
UNVERIFIED_SOURCE = {
    "status": "1",
    "message": "OK",
    "result": [{"SourceCode": "", "ABI": "Contract source code not verified", "ContractName": ""}],
}


class FakeChain:
    """
    Routes mocked requests by host: JSON-RPC POSTs, Etherscan-style GETs, Esplora GETs.

    rpc_results: method -> result (hex string / object)
    down_hosts / timeout_hosts: RPC hosts that fail with 503 / raise a timeout
    explorer: action -> payload (dict or httpx.Response); explorer_queue: action -> list of payloads
    esplora: path suffix -> payload
    calls: (host, method-or-action) in arrival order
    """

    def __init__(self, chain_id: int = SEPOLIA_CHAIN_ID) -> None:
        self.rpc_results: dict[str, Any] = {
            "eth_chainId": hex(chain_id),
            "eth_getBalance": "0x0",
            "eth_getTransactionCount": "0x0",
            "eth_getCode": "0x",
            "eth_blockNumber": "0x10",
            "eth_gasPrice": hex(2 * 10**9),
            "eth_getTransactionByHash": None,
        }
        self.down_hosts: set[str] = set()
        self.timeout_hosts: set[str] = set()
        self.rpc_errors: dict[str, str] = {}
        self.explorer: dict[str, Any] = {
            "txlist": NO_TRANSACTIONS,
            "tokentx": NO_TRANSACTIONS,
            "getsourcecode": UNVERIFIED_SOURCE,
        }
        self.explorer_queue: dict[str, list[Any]] = {}
        self.esplora: dict[str, Any] = {}
        self.delay_sec = 0.0
        self.calls: list[tuple[str, str]] = []

    def hosts_called(self, name: str) -> list[str]:
        return [host for host, called in self.calls if called == name]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if self.delay_sec:
            await asyncio.sleep(self.delay_sec)
        host = request.url.host
        if host in EXPLORER_HOSTS:
            return self._explorer(request)
        if host in ESPLORA_HOSTS:
            return self._esplora(request)
        return self._rpc(request)

    def _rpc(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        body = json.loads(request.content)
        method = body["method"]
        self.calls.append((host, method))
        if host in self.timeout_hosts:
            raise httpx.ReadTimeout("timed out", request=request)
        if host in self.down_hosts:
            return httpx.Response(503, text="unavailable")
        if method in self.rpc_errors:
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32000, "message": self.rpc_errors[method]}}
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": self.rpc_results.get(method)})

    def _explorer(self, request: httpx.Request) -> httpx.Response:
        action = request.url.params.get("action", "")
        self.calls.append((request.url.host, action))
        queue = self.explorer_queue.get(action)
        payload = queue.pop(0) if queue else self.explorer.get(action, NO_TRANSACTIONS)
        if isinstance(payload, httpx.Response):
            return payload
        return httpx.Response(200, json=payload)

    def _esplora(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.url.host, path))
        for suffix, payload in self.esplora.items():
            if path.endswith(suffix):
                if isinstance(payload, httpx.Response):
                    return payload
                return httpx.Response(200, json=payload)
        return httpx.Response(404, text="not found")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """No operator overrides or keys leak in from the developer's shell."""
    for name in ("SEPOLIA_RPC_URL", "HOLESKY_RPC_URL", "ETHERSCAN_API_KEY", "DEFAULT_NETWORK"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def test_settings() -> Settings:
    """Fast settings: no backoff sleeps, short deadline, explorer key present."""
    return Settings(
        etherscan_api_key="TESTKEY",
        explorer_backoff_sec=0.0,
        rpc_failover_backoff_sec=0.0,
        request_deadline_sec=5.0,
    )


@pytest.fixture
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def run_with_client(fake_chain, test_settings) -> Callable[..., Any]:
    """
    Run fn(client) inside a fresh event loop with a ChainDataClient over fake_chain.

        result = run_with_client(lambda c: c.fetch_account_snapshot(addr, "ethereum-sepolia"))
    """

    def _run(fn: Callable[[ChainDataClient], Awaitable[Any]], settings: Settings | None = None) -> Any:
        async def _go() -> Any:
            async with httpx.AsyncClient(transport=httpx.MockTransport(fake_chain.handler)) as http:
                client = ChainDataClient(http=http, settings=settings or test_settings)
                return await fn(client)

        return asyncio.run(_go())

    return _run


@pytest.fixture
def api_client(fake_chain, test_settings):
    """FastAPI TestClient with the chain client dependency pointed at fake_chain."""
    from fastapi.testclient import TestClient

    from backend_cryptoarmor.api_server.server import app, get_chain_client

    async def _chain_client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(fake_chain.handler)) as http:
            yield ChainDataClient(http=http, settings=test_settings)

    app.dependency_overrides[get_chain_client] = _chain_client
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
