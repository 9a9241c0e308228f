"""
Chain data access: network registry, JSON-RPC failover, explorer and Esplora
clients, and the ChainDataClient facade used by analytics.
"""

from backend_cryptoarmor.chain.client import ChainDataClient
from backend_cryptoarmor.chain.models import AccountSnapshot, NetworkHealth, TokenTransfer, TransactionRecord
from backend_cryptoarmor.chain.networks import NetworkProfile, get_network

__all__ = [
    "AccountSnapshot",
    "ChainDataClient",
    "NetworkHealth",
    "NetworkProfile",
    "TokenTransfer",
    "TransactionRecord",
    "get_network",
]
