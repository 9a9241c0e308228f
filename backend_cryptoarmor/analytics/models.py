"""
Analytics data models: validated addresses, risk factors, and assessments.

Every assessment carries its score, the tier derived from that score, the
ordered factors that explain it, and short human-readable flags.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from backend_cryptoarmor.chain.models import AccountSnapshot, TransactionRecord


class AddressFamily(str, Enum):
    EVM = "EVM"
    UTXO = "UTXO"


class RiskSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ValidatedAddress:
    """
    Result of address classification.

    is_mainnet and is_testnet are never both True. An address with is_valid=False
    is never passed to the chain client.
    """

    raw: str
    normalized: str = ""
    family: AddressFamily | None = None
    is_valid: bool = False
    is_mainnet: bool = False
    is_testnet: bool = False
    detected_network: str | None = None
    checksummed: bool = False
    warning: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw": self.raw,
            "normalized": self.normalized,
            "family": self.family.value if self.family else None,
            "is_valid": self.is_valid,
            "is_mainnet": self.is_mainnet,
            "is_testnet": self.is_testnet,
            "detected_network": self.detected_network,
            "checksummed": self.checksummed,
            "warning": self.warning,
            "error": self.error,
        }


@dataclass(frozen=True)
class RiskFactor:
    """One explainable contribution to the score."""

    id: str
    category: str
    title: str
    description: str
    severity: RiskSeverity
    weight: int
    """Signed points applied to the running score."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "weight": self.weight,
        }


@dataclass(frozen=True)
class TransactionContext:
    """Outgoing transaction being scanned before it is signed elsewhere."""

    to_address: str
    value_base_units: int = 0
    calldata: str = ""


@dataclass
class RiskAssessment:
    address: str
    network: str
    score: int
    risk_level: RiskLevel
    factors: list[RiskFactor] = field(default_factory=list)
    flags: list[str] = field(default_factory=list)
    is_simulated: bool = False
    fixture_ref: str | None = None
    """WalletFixture id when produced by the fixture branch."""
    warnings: list[str] = field(default_factory=list)
    snapshot: AccountSnapshot | None = None
    transactions: list[TransactionRecord] = field(default_factory=list)
    account_age: str = "Unknown"
    """Age of the oldest fetched transaction, e.g. "4 months"."""

    @property
    def max_severity(self) -> RiskSeverity | None:
        """Highest severity among factors; None if no factors."""
        if not self.factors:
            return None
        order = (
            RiskSeverity.LOW,
            RiskSeverity.MEDIUM,
            RiskSeverity.HIGH,
            RiskSeverity.CRITICAL,
        )
        return max(self.factors, key=lambda f: order.index(f.severity)).severity

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "network": self.network,
            "score": self.score,
            "risk_level": self.risk_level.value,
            "factors": [f.to_dict() for f in self.factors],
            "flags": list(self.flags),
            "is_simulated": self.is_simulated,
            "fixture_ref": self.fixture_ref,
            "warnings": list(self.warnings),
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
            "transactions": [t.to_dict() for t in self.transactions],
            "account_age": self.account_age,
            "max_severity": self.max_severity.value if self.max_severity else None,
        }
