"""
Tests for ChainDataClient: snapshot fan-out, per-sub-query degradation, history, health.
"""

from __future__ import annotations

import httpx

ADDR = "0x" + "ab" * 20
TB1 = "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"
SEPOLIA_HOSTS = (
    "ethereum-sepolia-rpc.publicnode.com",
    "rpc2.sepolia.org",
    "sepolia.gateway.tenderly.co",
)


def _snapshot(run_with_client, network="ethereum-sepolia", address=ADDR):
    return run_with_client(lambda c: c.fetch_account_snapshot(address, network))


def test_snapshot_plain_account(fake_chain, run_with_client):
    fake_chain.rpc_results["eth_getBalance"] = hex(2 * 10**18)
    fake_chain.rpc_results["eth_getTransactionCount"] = hex(32)

    snap = _snapshot(run_with_client)

    assert snap.balance_base_units == 2 * 10**18
    assert snap.balance_display == "2.000000"
    assert snap.tx_count == 32
    assert not snap.is_contract
    assert snap.unavailable == ()
    assert fake_chain.hosts_called("eth_chainId") == [SEPOLIA_HOSTS[0]]


def test_unverified_contract_detected_from_bytecode(fake_chain, run_with_client):
    fake_chain.rpc_results["eth_getCode"] = "0x6080604052"

    snap = _snapshot(run_with_client)

    assert snap.is_contract
    assert not snap.is_verified


def test_verified_contract(fake_chain, run_with_client):
    fake_chain.rpc_results["eth_getCode"] = "0x6080604052"
    fake_chain.explorer["getsourcecode"] = {
        "status": "1",
        "message": "OK",
        "result": [{"SourceCode": "contract Token {}", "ABI": "[]", "ContractName": "Token"}],
    }

    snap = _snapshot(run_with_client)

    assert snap.is_contract and snap.is_verified
    assert snap.contract_name == "Token"


def test_failed_subquery_degrades_alone(fake_chain, run_with_client):
    """Balance fails on every endpoint: zero balance, listed unavailable; others intact."""
    fake_chain.rpc_errors["eth_getBalance"] = "boom"
    fake_chain.rpc_results["eth_getTransactionCount"] = hex(7)

    snap = _snapshot(run_with_client)

    assert snap.unavailable == ("balance",)
    assert snap.balance_base_units == 0
    assert snap.tx_count == 7
    assert not snap.fully_unavailable


def test_everything_down_is_fully_unavailable(fake_chain, run_with_client):
    fake_chain.down_hosts.update(SEPOLIA_HOSTS)
    fake_chain.explorer["getsourcecode"] = httpx.Response(500, text="down")

    snap = _snapshot(run_with_client)

    assert snap.fully_unavailable
    assert snap.balance_base_units == 0
    assert snap.tx_count == 0
    assert not snap.is_contract


def test_chain_id_mismatch_discards_rpc_values(fake_chain, run_with_client):
    fake_chain.rpc_results["eth_chainId"] = hex(17000)
    fake_chain.rpc_results["eth_getBalance"] = hex(10**18)
    fake_chain.rpc_results["eth_getTransactionCount"] = hex(99)

    snap = _snapshot(run_with_client)

    assert snap.balance_base_units == 0
    assert snap.tx_count == 0
    assert set(snap.unavailable) == {"balance", "tx_count", "contract", "chain_id"}
    assert snap.fully_unavailable


def test_chain_id_check_can_be_disabled(fake_chain, run_with_client, test_settings):
    from dataclasses import replace

    fake_chain.rpc_results["eth_chainId"] = hex(17000)

    snap = run_with_client(
        lambda c: c.fetch_account_snapshot(ADDR, "ethereum-sepolia"),
        settings=replace(test_settings, verify_chain_id=False),
    )

    assert snap.unavailable == ()
    assert fake_chain.hosts_called("eth_chainId") == []


def test_utxo_snapshot(fake_chain, run_with_client):
    fake_chain.esplora[f"/address/{TB1}"] = {
        "address": TB1,
        "chain_stats": {"funded_txo_sum": 150_000_000, "spent_txo_sum": 50_000_000, "tx_count": 12},
    }

    snap = _snapshot(run_with_client, "bitcoin-signet", TB1)

    assert snap.balance_base_units == 100_000_000
    assert snap.balance_display == "1.000000"
    assert snap.tx_count == 12
    assert snap.unavailable == ()
    assert fake_chain.calls == [("mempool.space", f"/signet/api/address/{TB1}")]


def test_utxo_snapshot_unavailable(run_with_client):
    snap = _snapshot(run_with_client, "bitcoin-testnet", TB1)
    assert snap.fully_unavailable


def test_history_sorted_newest_first_and_limited(fake_chain, run_with_client):
    def tx(n, ts):
        return {"hash": f"0x{n:064x}", "from": ADDR, "to": ADDR, "value": "0", "timeStamp": str(ts)}

    fake_chain.explorer["txlist"] = {
        "status": "1",
        "message": "OK",
        "result": [tx(1, 100), tx(2, 300), tx(3, 200)],
    }

    records = run_with_client(lambda c: c.fetch_transaction_history(ADDR, "ethereum-sepolia", limit=3))
    assert [r.timestamp for r in records] == [300, 200, 100]


def test_history_puts_unconfirmed_first_in_upstream_order(fake_chain, run_with_client):
    fake_chain.esplora[f"/address/{TB1}/txs"] = [
        {"txid": "a" * 64, "status": {"confirmed": False}},
        {"txid": "b" * 64, "status": {"confirmed": True, "block_time": 100}},
        {"txid": "c" * 64, "status": {"confirmed": False}},
        {"txid": "d" * 64, "status": {"confirmed": True, "block_time": 300}},
    ]

    records = run_with_client(lambda c: c.fetch_transaction_history(TB1, "bitcoin-testnet"))

    assert [r.hash[0] for r in records] == ["a", "c", "d", "b"]
    assert [r.timestamp for r in records] == [0, 0, 300, 100]


def test_history_failure_is_empty(fake_chain, run_with_client):
    fake_chain.explorer["txlist"] = httpx.Response(502, text="bad gateway")
    assert run_with_client(lambda c: c.fetch_transaction_history(ADDR, "ethereum-sepolia")) == []


def test_token_transfers_non_evm_is_empty(fake_chain, run_with_client):
    assert run_with_client(lambda c: c.fetch_token_transfers(TB1, "bitcoin-testnet")) == []
    assert fake_chain.calls == []


def test_health_reports_per_network(fake_chain, run_with_client):
    """Fake endpoints all answer Sepolia's chain id: Sepolia connects, Holesky mismatches."""
    results = run_with_client(lambda c: c.check_all_networks_health())

    by_network = {h.network: h for h in results}
    assert set(by_network) == {"ethereum-sepolia", "ethereum-holesky"}
    assert by_network["ethereum-sepolia"].connected
    assert by_network["ethereum-sepolia"].block_number == 16
    assert by_network["ethereum-sepolia"].latency_ms >= 0
    assert by_network["ethereum-holesky"].status == "error"
    assert "mismatch" in by_network["ethereum-holesky"].error.lower()


def test_health_all_endpoints_down(fake_chain, run_with_client):
    fake_chain.down_hosts.update(SEPOLIA_HOSTS)

    health = run_with_client(lambda c: c.check_network_health("ethereum-sepolia"))

    assert health.status == "error"
    assert health.chain_id is None
    assert health.error


def test_health_failure_waits_for_sibling_query(fake_chain, run_with_client):
    """A failed eth_chainId must not return while eth_blockNumber is still in flight."""
    import asyncio

    fake_chain.rpc_errors["eth_chainId"] = "method unavailable"
    forward = fake_chain.handler

    async def slow_block_number(request):
        if b"eth_blockNumber" in request.content:
            await asyncio.sleep(0.2)
        return await forward(request)

    fake_chain.handler = slow_block_number

    async def check(c):
        health = await c.check_network_health("ethereum-sepolia")
        pending = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
        return health, pending

    health, pending = run_with_client(check)

    assert health.status == "error"
    assert health.chain_id is None
    assert health.block_number == 16
    assert pending == []
