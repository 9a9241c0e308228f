"""
Data models for chain client output.

Created fresh per request and never cached. Balances and values are kept in
base units (wei / satoshi) as Python ints; display strings are derived with
Decimal so no precision is lost on large balances.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any

DISPLAY_PLACES = 6

# Snapshot sub-query names recorded in AccountSnapshot.unavailable
SUBQUERY_BALANCE = "balance"
SUBQUERY_TX_COUNT = "tx_count"
SUBQUERY_CONTRACT = "contract"
SUBQUERY_CHAIN_ID = "chain_id"
SNAPSHOT_SUBQUERIES = (SUBQUERY_BALANCE, SUBQUERY_TX_COUNT, SUBQUERY_CONTRACT)


def format_base_units(value: int, decimals: int, places: int = DISPLAY_PLACES) -> str:
    """Render an integer amount of base units as a fixed-point decimal string."""
    amount = Decimal(int(value)).scaleb(-decimals)
    return f"{amount:.{places}f}"


def to_base_units(amount: str | int | float | Decimal | None, decimals: int) -> int:
    """Parse a native-unit amount ("1.5" ETH) into base units. Invalid input -> 0."""
    if amount is None or amount == "":
        return 0
    try:
        value = Decimal(str(amount)).scaleb(decimals)
    except ArithmeticError:
        return 0
    if not value.is_finite() or value < 0:
        return 0
    return int(value)


@dataclass(frozen=True)
class AccountSnapshot:
    """Point-in-time account state for one address on one network."""

    address: str
    network: str
    balance_base_units: int = 0
    balance_display: str = format_base_units(0, 18)
    tx_count: int = 0
    is_contract: bool = False
    contract_name: str | None = None
    is_verified: bool = False
    unavailable: tuple[str, ...] = ()
    """Sub-queries that failed and contributed safe defaults."""

    @property
    def fully_unavailable(self) -> bool:
        return all(name in self.unavailable for name in SNAPSHOT_SUBQUERIES)

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["balance_base_units"] = str(self.balance_base_units)
        out["unavailable"] = list(self.unavailable)
        return out


@dataclass(frozen=True)
class TransactionRecord:
    hash: str
    from_address: str
    to_address: str | None
    """None for contract creation."""
    value_base_units: int
    timestamp: int
    """Unix seconds; 0 when unconfirmed or unknown."""
    gas_used: int = 0
    failed: bool = False
    function_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["value_base_units"] = str(self.value_base_units)
        return out


@dataclass(frozen=True)
class TokenTransfer:
    hash: str
    from_address: str
    to_address: str
    value: str
    token_name: str
    token_symbol: str
    token_decimal: int
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NetworkHealth:
    network: str
    status: str
    """connected | error"""
    chain_id: int | None = None
    expected_chain_id: int | None = None
    block_number: int = 0
    latency_ms: int = -1
    error: str | None = None

    @property
    def connected(self) -> bool:
        return self.status == "connected"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ContractInfo:
    """Result of the contract lookup branch of the snapshot fan-out."""

    is_contract: bool = False
    contract_name: str | None = None
    is_verified: bool = False
