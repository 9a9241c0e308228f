"""
Network registry: one immutable profile per supported network id.

Four testnets (two EVM, two UTXO) plus an explorer-only Ethereum mainnet
profile used by the mainnet gateway variant. The mainnet profile has no RPC
endpoints and its chain id (1) is refused by the RPC client.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

from backend_cryptoarmor.core.exceptions import UnsupportedNetwork

MAINNET_CHAIN_ID = 1

ETHEREUM_SEPOLIA = "ethereum-sepolia"
ETHEREUM_HOLESKY = "ethereum-holesky"
BITCOIN_TESTNET = "bitcoin-testnet"
BITCOIN_SIGNET = "bitcoin-signet"
ETHEREUM_MAINNET = "ethereum-mainnet"

PRIMARY_TESTNET = ETHEREUM_SEPOLIA


@dataclass(frozen=True)
class NetworkProfile:
    id: str
    display_name: str
    short_name: str
    native_symbol: str
    decimals: int
    is_evm: bool
    explorer_base_url: str
    explorer_api_url: str
    rpc_endpoints: tuple[str, ...] = ()
    chain_id: int | None = None
    rpc_env_var: str | None = None
    """Env var holding an operator RPC URL tried before rpc_endpoints."""
    is_mainnet: bool = False

    def __post_init__(self) -> None:
        if self.is_evm != (self.chain_id is not None):
            raise ValueError(f"{self.id}: chain_id must be set iff the network is EVM")

    @property
    def family(self) -> str:
        return "EVM" if self.is_evm else "UTXO"

    @property
    def is_testnet(self) -> bool:
        return not self.is_mainnet

    @property
    def supports_rpc(self) -> bool:
        return self.is_evm and not self.is_mainnet and bool(self.rpc_endpoints)


_PROFILES = (
    NetworkProfile(
        id=ETHEREUM_SEPOLIA,
        display_name="Ethereum Sepolia",
        short_name="Sepolia",
        native_symbol="ETH",
        decimals=18,
        is_evm=True,
        chain_id=11155111,
        explorer_base_url="https://sepolia.etherscan.io",
        explorer_api_url="https://api-sepolia.etherscan.io/api",
        rpc_endpoints=(
            "https://ethereum-sepolia-rpc.publicnode.com",
            "https://rpc2.sepolia.org",
            "https://sepolia.gateway.tenderly.co",
        ),
        rpc_env_var="SEPOLIA_RPC_URL",
    ),
    NetworkProfile(
        id=ETHEREUM_HOLESKY,
        display_name="Ethereum Holesky",
        short_name="Holesky",
        native_symbol="ETH",
        decimals=18,
        is_evm=True,
        chain_id=17000,
        explorer_base_url="https://holesky.etherscan.io",
        explorer_api_url="https://api-holesky.etherscan.io/api",
        rpc_endpoints=(
            "https://ethereum-holesky-rpc.publicnode.com",
            "https://holesky.drpc.org",
            "https://rpc.holesky.ethpandaops.io",
        ),
        rpc_env_var="HOLESKY_RPC_URL",
    ),
    NetworkProfile(
        id=BITCOIN_TESTNET,
        display_name="Bitcoin Testnet",
        short_name="BTC Testnet",
        native_symbol="tBTC",
        decimals=8,
        is_evm=False,
        explorer_base_url="https://blockstream.info/testnet",
        explorer_api_url="https://blockstream.info/testnet/api",
    ),
    NetworkProfile(
        id=BITCOIN_SIGNET,
        display_name="Bitcoin Signet",
        short_name="Signet",
        native_symbol="sBTC",
        decimals=8,
        is_evm=False,
        explorer_base_url="https://mempool.space/signet",
        explorer_api_url="https://mempool.space/signet/api",
    ),
    NetworkProfile(
        id=ETHEREUM_MAINNET,
        display_name="Ethereum Mainnet",
        short_name="Mainnet",
        native_symbol="ETH",
        decimals=18,
        is_evm=True,
        chain_id=MAINNET_CHAIN_ID,
        explorer_base_url="https://etherscan.io",
        explorer_api_url="https://api.etherscan.io/api",
        is_mainnet=True,
    ),
)


def _index_profiles(profiles: tuple[NetworkProfile, ...]) -> MappingProxyType[str, NetworkProfile]:
    by_id: dict[str, NetworkProfile] = {}
    for profile in profiles:
        if profile.id in by_id:
            raise ValueError(f"duplicate network id in registry: {profile.id}")
        by_id[profile.id] = profile
    return MappingProxyType(by_id)


NETWORKS: MappingProxyType[str, NetworkProfile] = _index_profiles(_PROFILES)


def is_supported(network_id: str | None) -> bool:
    return bool(network_id) and network_id in NETWORKS


def get_network(network_id: str) -> NetworkProfile:
    """Return the profile for network_id; raise UnsupportedNetwork if unknown."""
    try:
        return NETWORKS[network_id]
    except (KeyError, TypeError):
        raise UnsupportedNetwork(network_id, testnet_ids()) from None


def all_networks() -> list[NetworkProfile]:
    return list(NETWORKS.values())


def testnet_ids() -> list[str]:
    return [p.id for p in NETWORKS.values() if p.is_testnet]


def evm_networks() -> list[NetworkProfile]:
    """EVM testnets (mainnet profile excluded)."""
    return [p for p in NETWORKS.values() if p.is_evm and p.is_testnet]


def utxo_networks() -> list[NetworkProfile]:
    return [p for p in NETWORKS.values() if not p.is_evm]


def rpc_networks() -> list[NetworkProfile]:
    """Networks reachable over JSON-RPC; used for health checks."""
    return [p for p in NETWORKS.values() if p.supports_rpc]


def primary_testnet() -> NetworkProfile:
    return NETWORKS[PRIMARY_TESTNET]
