"""
Environment variable loading for CryptoArmor.

- ETHERSCAN_API_KEY: explorer API key (required for the mainnet gateway variant)
- SEPOLIA_RPC_URL / HOLESKY_RPC_URL: RPC endpoint tried before the registry defaults
- DEFAULT_NETWORK: network used when an EVM address arrives without a hint
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_cryptoarmor/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

TRUE_VALUES = ("1", "true", "yes", "on")


def load_armor_env() -> None:
    """Load .env from project root. Existing environment variables win; safe to call repeatedly."""
    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)


def env_str(name: str, default: str = "") -> str:
    load_armor_env()
    return (os.getenv(name) or default).strip()


def env_float(name: str, default: float) -> float:
    raw = env_str(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_int(name: str, default: int) -> int:
    raw = env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_bool(name: str, default: bool) -> bool:
    raw = env_str(name).lower()
    if not raw:
        return default
    return raw in TRUE_VALUES


def get_etherscan_api_key() -> str | None:
    """Return ETHERSCAN_API_KEY or None when unset."""
    return env_str("ETHERSCAN_API_KEY") or None


def get_rpc_override(env_var: str | None) -> str | None:
    """
    Return the operator-configured RPC URL for a network, if any.
    The env var name comes from the network profile (e.g. SEPOLIA_RPC_URL).
    """
    if not env_var:
        return None
    return env_str(env_var) or None
