"""
Application settings.

Responsibilities:
- Read configuration from environment variables and the optional .env file.
- Provide defaults for every optional value (timeouts, retry bounds, limits).
- Expose a frozen Settings object to the chain client, orchestrator and API server.
"""

from __future__ import annotations

from dataclasses import dataclass

from backend_cryptoarmor.config.env import (
    env_bool,
    env_float,
    env_int,
    env_str,
    get_etherscan_api_key,
)

DEFAULT_NETWORK = "ethereum-sepolia"
DEFAULT_RPC_TIMEOUT_SEC = 10.0
DEFAULT_EXPLORER_TIMEOUT_SEC = 15.0
DEFAULT_EXPLORER_MAX_RETRIES = 2
DEFAULT_EXPLORER_BACKOFF_SEC = 1.0
DEFAULT_TX_HISTORY_LIMIT = 20
DEFAULT_REQUEST_DEADLINE_SEC = 30.0


@dataclass(frozen=True)
class Settings:
    """Typed settings for the chain client, orchestrator and API server."""

    etherscan_api_key: str | None = None
    default_network: str = DEFAULT_NETWORK
    rpc_timeout_sec: float = DEFAULT_RPC_TIMEOUT_SEC
    """Per-attempt timeout for one RPC endpoint."""
    rpc_failover_backoff_sec: float = 0.0
    """Upper bound of the jittered pause between endpoints; 0 disables it."""
    explorer_timeout_sec: float = DEFAULT_EXPLORER_TIMEOUT_SEC
    explorer_max_retries: int = DEFAULT_EXPLORER_MAX_RETRIES
    """Retries after the first attempt, only on rate-limit responses."""
    explorer_backoff_sec: float = DEFAULT_EXPLORER_BACKOFF_SEC
    """Linear backoff unit: attempt n waits n * explorer_backoff_sec."""
    tx_history_limit: int = DEFAULT_TX_HISTORY_LIMIT
    request_deadline_sec: float = DEFAULT_REQUEST_DEADLINE_SEC
    verify_chain_id: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000


def get_settings() -> Settings:
    """
    Return settings built from the current environment.

    Not cached: tests and the CLI may change env between calls.
    """
    return Settings(
        etherscan_api_key=get_etherscan_api_key(),
        default_network=env_str("DEFAULT_NETWORK", DEFAULT_NETWORK),
        rpc_timeout_sec=env_float("RPC_TIMEOUT_SEC", DEFAULT_RPC_TIMEOUT_SEC),
        rpc_failover_backoff_sec=env_float("RPC_FAILOVER_BACKOFF_SEC", 0.0),
        explorer_timeout_sec=env_float("EXPLORER_TIMEOUT_SEC", DEFAULT_EXPLORER_TIMEOUT_SEC),
        explorer_max_retries=max(0, env_int("EXPLORER_MAX_RETRIES", DEFAULT_EXPLORER_MAX_RETRIES)),
        explorer_backoff_sec=env_float("EXPLORER_BACKOFF_SEC", DEFAULT_EXPLORER_BACKOFF_SEC),
        tx_history_limit=max(1, env_int("TX_HISTORY_LIMIT", DEFAULT_TX_HISTORY_LIMIT)),
        request_deadline_sec=env_float("REQUEST_DEADLINE_SEC", DEFAULT_REQUEST_DEADLINE_SEC),
        verify_chain_id=env_bool("VERIFY_CHAIN_ID", True),
        api_host=env_str("API_HOST", "0.0.0.0"),
        api_port=env_int("API_PORT", 8000),
    )
