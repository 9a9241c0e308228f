"""
Fixture wallets: fixed demo/test addresses with precomputed assessments.

The table is loaded once from data/wallet_fixtures.json and never mutated.
resolve() is an exact, case-insensitive address match; the orchestrator calls
it on every request before any network I/O.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from backend_cryptoarmor.armor_logging import get_logger
from backend_cryptoarmor.chain.networks import is_supported

logger = get_logger(__name__)

_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
FIXTURES_JSON = _DATA_DIR / "wallet_fixtures.json"

CATEGORY_LOW_RISK = "low-risk"
CATEGORY_MEDIUM_RISK = "medium-risk"
CATEGORY_HIGH_RISK = "high-risk"
CATEGORY_PHISHING = "phishing"
CATEGORY_DRAINER = "drainer"
CATEGORY_HONEYPOT = "honeypot"

CATEGORIES = (
    CATEGORY_LOW_RISK,
    CATEGORY_MEDIUM_RISK,
    CATEGORY_HIGH_RISK,
    CATEGORY_PHISHING,
    CATEGORY_DRAINER,
    CATEGORY_HONEYPOT,
)
MALICIOUS_CATEGORIES = (CATEGORY_PHISHING, CATEGORY_DRAINER, CATEGORY_HONEYPOT, CATEGORY_HIGH_RISK)


@dataclass(frozen=True)
class WalletFixture:
    id: str
    address: str
    network: str
    label: str
    category: str
    description: str
    expected_score: int
    simulated_flags: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "address": self.address,
            "network": self.network,
            "label": self.label,
            "category": self.category,
            "description": self.description,
            "expected_score": self.expected_score,
            "simulated_flags": list(self.simulated_flags),
            "tags": list(self.tags),
        }


def _fixture_from_row(row: dict[str, Any]) -> WalletFixture:
    fixture = WalletFixture(
        id=str(row["id"]),
        address=str(row["address"]).strip(),
        network=str(row["network"]),
        label=str(row.get("label") or row["id"]),
        category=str(row["category"]),
        description=str(row.get("description") or ""),
        expected_score=int(row["expected_score"]),
        simulated_flags=tuple(row.get("simulated_flags") or ()),
        tags=tuple(row.get("tags") or ()),
    )
    if not is_supported(fixture.network):
        raise ValueError(f"fixture {fixture.id}: unknown network {fixture.network}")
    if fixture.category not in CATEGORIES:
        raise ValueError(f"fixture {fixture.id}: unknown category {fixture.category}")
    if not 0 <= fixture.expected_score <= 100:
        raise ValueError(f"fixture {fixture.id}: expected_score out of range")
    return fixture


def load_fixtures(path: Path = FIXTURES_JSON) -> tuple[WalletFixture, ...]:
    """Read and validate the fixture table. Raises on a malformed file."""
    with open(path, encoding="utf-8") as f:
        rows = json.load(f)
    fixtures = tuple(_fixture_from_row(row) for row in rows)
    logger.debug("fixtures_loaded", path=str(path), count=len(fixtures))
    return fixtures


FIXTURES: tuple[WalletFixture, ...] = load_fixtures()


def index_by_address(fixtures: tuple[WalletFixture, ...]) -> MappingProxyType[str, WalletFixture]:
    """Lowercased address -> fixture. Raises ValueError on a duplicate address."""
    by_address: dict[str, WalletFixture] = {}
    for fixture in fixtures:
        key = fixture.address.lower()
        if key in by_address:
            raise ValueError(f"fixture {fixture.id}: duplicate address (also {by_address[key].id})")
        by_address[key] = fixture
    return MappingProxyType(by_address)


_BY_ADDRESS: MappingProxyType[str, WalletFixture] = index_by_address(FIXTURES)
_BY_ID: MappingProxyType[str, WalletFixture] = MappingProxyType({f.id: f for f in FIXTURES})


def resolve(address: str | None) -> WalletFixture | None:
    """Exact case-insensitive match against the fixture table."""
    if not address:
        return None
    return _BY_ADDRESS.get(address.strip().lower())


def get_fixture_by_id(fixture_id: str) -> WalletFixture | None:
    return _BY_ID.get(fixture_id)


def all_fixtures() -> list[WalletFixture]:
    return list(FIXTURES)


def fixtures_by_network(network: str) -> list[WalletFixture]:
    return [f for f in FIXTURES if f.network == network]


def fixtures_by_category(category: str) -> list[WalletFixture]:
    return [f for f in FIXTURES if f.category == category]


def low_risk_fixtures() -> list[WalletFixture]:
    return fixtures_by_category(CATEGORY_LOW_RISK)


def malicious_fixtures() -> list[WalletFixture]:
    return [f for f in FIXTURES if f.category in MALICIOUS_CATEGORIES]
