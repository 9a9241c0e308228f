"""
Tests for the network registry: one profile per id, chain id iff EVM, mainnet kept off RPC.
"""

from __future__ import annotations

import pytest


def test_registry_profiles_are_unique_and_consistent():
    from backend_cryptoarmor.chain.networks import NETWORKS, all_networks

    ids = [p.id for p in all_networks()]
    assert len(ids) == len(set(ids)) == len(NETWORKS)
    for p in all_networks():
        assert (p.chain_id is not None) == p.is_evm
        assert p.family in ("EVM", "UTXO")


def test_testnet_chain_ids():
    from backend_cryptoarmor.chain.networks import get_network

    assert get_network("ethereum-sepolia").chain_id == 11155111
    assert get_network("ethereum-holesky").chain_id == 17000
    assert get_network("bitcoin-testnet").chain_id is None
    assert get_network("bitcoin-signet").decimals == 8


def test_mainnet_profile_is_explorer_only():
    from backend_cryptoarmor.chain.networks import ETHEREUM_MAINNET, get_network, rpc_networks

    mainnet = get_network(ETHEREUM_MAINNET)
    assert mainnet.is_mainnet and not mainnet.is_testnet
    assert mainnet.rpc_endpoints == ()
    assert not mainnet.supports_rpc
    assert mainnet not in rpc_networks()


def test_family_listings():
    from backend_cryptoarmor.chain.networks import evm_networks, primary_testnet, rpc_networks, utxo_networks

    assert [p.id for p in evm_networks()] == ["ethereum-sepolia", "ethereum-holesky"]
    assert {p.id for p in utxo_networks()} == {"bitcoin-testnet", "bitcoin-signet"}
    assert [p.id for p in rpc_networks()] == ["ethereum-sepolia", "ethereum-holesky"]
    assert primary_testnet().id == "ethereum-sepolia"


def test_unknown_network_raises_unsupported():
    from backend_cryptoarmor.chain.networks import get_network, is_supported
    from backend_cryptoarmor.core.exceptions import UnsupportedNetwork

    assert not is_supported("polygon-amoy")
    assert not is_supported(None)
    with pytest.raises(UnsupportedNetwork) as exc:
        get_network("polygon-amoy")
    assert "polygon-amoy" in str(exc.value)


def test_chain_id_requires_evm():
    from backend_cryptoarmor.chain.networks import NetworkProfile

    with pytest.raises(ValueError):
        NetworkProfile(
            id="broken",
            display_name="Broken",
            short_name="B",
            native_symbol="X",
            decimals=8,
            is_evm=False,
            explorer_base_url="https://example.org",
            explorer_api_url="https://example.org/api",
            chain_id=5,
        )


def test_duplicate_network_id_is_rejected():
    from dataclasses import replace

    from backend_cryptoarmor.chain.networks import _index_profiles, all_networks

    first = all_networks()[0]
    with pytest.raises(ValueError, match=first.id):
        _index_profiles((first, replace(first, display_name="Copy")))
