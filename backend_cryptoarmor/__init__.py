"""
Backend CryptoArmor — read-only risk analysis for testnet wallets and transactions.

Classifies addresses, fetches on-chain data through a failover RPC client and a
rate-limit-aware explorer client, and scores the result with a rule-based engine.
Known demo wallets resolve to deterministic fixtures without touching the network.
"""

__version__ = "0.1.0"
