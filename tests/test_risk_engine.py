"""
Tests for the risk engine: tier table, live rules, fixture branch, Data Unavailable.
"""

from __future__ import annotations

import pytest

NOW = 1_700_000_000.0
DAY = 86400
ADDR = "0x" + "ab" * 20


def _snapshot(**overrides):
    from backend_cryptoarmor.chain.models import AccountSnapshot

    fields = {
        "address": ADDR,
        "network": "ethereum-sepolia",
        "balance_base_units": 10**18,
        "tx_count": 100,
    }
    fields.update(overrides)
    return AccountSnapshot(**fields)


def _tx(age_days: float, failed: bool = False, n: int = 0):
    from backend_cryptoarmor.chain.models import TransactionRecord

    return TransactionRecord(
        hash=f"0x{n:064x}",
        from_address=ADDR,
        to_address="0x" + "cd" * 20,
        value_base_units=0,
        timestamp=int(NOW - age_days * DAY),
        failed=failed,
    )


def _ids(assessment):
    return [f.id for f in assessment.factors]


# --- Tier table ---


@pytest.mark.parametrize(
    "score,level",
    [(100, "low"), (80, "low"), (79, "medium"), (60, "medium"), (59, "high"), (40, "high"), (39, "critical"), (0, "critical")],
)
def test_risk_level_thresholds(score, level):
    from backend_cryptoarmor.analytics.risk_engine import risk_level_of

    assert risk_level_of(score).value == level


def test_risk_level_is_total_and_monotone():
    from backend_cryptoarmor.analytics.risk_engine import risk_level_of

    order = ["critical", "high", "medium", "low"]
    ranks = [order.index(risk_level_of(s).value) for s in range(0, 101)]
    assert ranks == sorted(ranks)
    assert risk_level_of("garbage").value == "critical"


# --- Live branch ---


def test_clean_established_wallet_scores_low_risk():
    from backend_cryptoarmor.analytics.risk_engine import score

    history = [_tx(400, n=i) for i in range(5)]
    a = score(_snapshot(tx_count=600), history, now=NOW)
    assert _ids(a) == ["tx-count-established", "wallet-age-established"]
    assert a.score == 100
    assert a.risk_level.value == "low"
    assert not a.is_simulated
    assert a.flags == []


def test_empty_unverified_contract_gets_both_penalties():
    from backend_cryptoarmor.analytics.risk_engine import score

    snap = _snapshot(is_contract=True, is_verified=False, balance_base_units=0, tx_count=3)
    a = score(snap, [], now=NOW)
    ids = _ids(a)
    assert "contract-unverified" in ids
    assert "empty-unverified-contract" in ids
    weights = {f.id: f.weight for f in a.factors}
    assert weights["contract-unverified"] == -25
    assert weights["empty-unverified-contract"] == -30
    assert a.score == max(0, 100 - 25 - 15 - 30)
    assert a.risk_level.value == "critical"
    assert "Empty unverified contract" in a.flags


def test_verified_contract_is_informational():
    from backend_cryptoarmor.analytics.risk_engine import score

    a = score(_snapshot(is_contract=True, is_verified=True, contract_name="Token"), [], now=NOW)
    factor = a.factors[0]
    assert factor.id == "contract-verified"
    assert factor.weight == 0
    assert factor.severity.value == "low"
    assert "Token" in factor.description


@pytest.mark.parametrize("tx_count,factor_id,expected", [(3, "tx-count-low", 85), (20, "tx-count-moderate", 95), (100, None, 100)])
def test_tx_count_bands(tx_count, factor_id, expected):
    from backend_cryptoarmor.analytics.risk_engine import score

    a = score(_snapshot(tx_count=tx_count), [], now=NOW)
    assert a.score == expected
    if factor_id:
        assert _ids(a) == [factor_id]
    else:
        assert a.factors == []


def test_failure_ratio_and_new_wallet():
    from backend_cryptoarmor.analytics.risk_engine import score

    history = [_tx(1, failed=True, n=1), _tx(2, failed=True, n=2), _tx(3, n=3)]
    a = score(_snapshot(), history, now=NOW)
    assert _ids(a) == ["high-failure-rate", "wallet-age-new"]
    assert a.score == 60
    assert a.flags == ["High failure rate", "New wallet"]
    assert a.factors[0].description.startswith("67%")


def test_young_wallet_small_penalty():
    from backend_cryptoarmor.analytics.risk_engine import score

    a = score(_snapshot(), [_tx(10, n=1), _tx(2, n=2)], now=NOW)
    assert _ids(a) == ["wallet-age-young"]
    assert a.score == 95


def test_transaction_context_rules():
    from backend_cryptoarmor.analytics.models import TransactionContext
    from backend_cryptoarmor.analytics.risk_engine import score

    calldata = "0x095ea7b3" + "00" * 12 + "cd" * 20 + "f" * 64
    ctx = TransactionContext(to_address=ADDR, value_base_units=11 * 10**18, calldata=calldata)
    a = score(_snapshot(), [], ctx, now=NOW)
    assert _ids(a) == ["unlimited-approval", "high-value"]
    assert a.score == 100 - 35 - 10
    assert a.factors[0].severity.value == "critical"


def test_detect_unlimited_approval():
    from backend_cryptoarmor.analytics.risk_engine import detect_unlimited_approval

    spender = "00" * 12 + "cd" * 20
    assert detect_unlimited_approval("0x095ea7b3" + spender + "f" * 64)
    assert detect_unlimited_approval("0x095ea7b3" + spender + "8" + "0" * 63)
    assert not detect_unlimited_approval("0x095ea7b3" + spender + "0" * 62 + "64")
    assert not detect_unlimited_approval("0xa9059cbb" + spender + "0" * 64)
    assert not detect_unlimited_approval("0xa9059cbb" + spender + "f" * 64)
    assert detect_unlimited_approval("0x39509351" + spender + "f" * 64)
    assert not detect_unlimited_approval("0x095ea7b3" + spender)
    assert not detect_unlimited_approval("")
    assert not detect_unlimited_approval(None)


def test_score_is_clamped_at_zero():
    from backend_cryptoarmor.analytics.models import TransactionContext
    from backend_cryptoarmor.analytics.risk_engine import score

    snap = _snapshot(is_contract=True, balance_base_units=0, tx_count=0)
    history = [_tx(1, failed=True, n=i) for i in range(4)]
    ctx = TransactionContext(to_address=ADDR, value_base_units=50 * 10**18, calldata="0x095ea7b3" + "f" * 128)
    a = score(snap, history, ctx, now=NOW)
    assert a.score == 0
    assert a.risk_level.value == "critical"


def test_partial_snapshot_adds_warnings():
    from backend_cryptoarmor.analytics.risk_engine import score

    a = score(_snapshot(unavailable=("contract",)), [], now=NOW)
    assert a.warnings == ["Partial data: contract unavailable"]


# --- Data unavailable ---


def test_fully_unavailable_snapshot_is_data_unavailable():
    from backend_cryptoarmor.analytics.risk_engine import FLAG_DATA_UNAVAILABLE, score

    snap = _snapshot(unavailable=("balance", "tx_count", "contract"))
    a = score(snap, [], now=NOW)
    assert a.score == 50
    assert a.risk_level.value == "high"
    assert [f.title for f in a.factors] == ["Data Unavailable"]
    assert a.flags == [FLAG_DATA_UNAVAILABLE]


@pytest.mark.parametrize("garbage", [None, {"address": ADDR}, "snapshot"])
def test_garbled_input_never_raises(garbage):
    from backend_cryptoarmor.analytics.risk_engine import score

    a = score(garbage, None)
    assert a.score == 50
    assert a.risk_level.value == "high"


def test_garbled_history_never_raises():
    from backend_cryptoarmor.analytics.risk_engine import score

    a = score(_snapshot(), [object()], now=NOW)
    assert a.score == 50


# --- Fixture branch ---


def test_drainer_fixture_is_simulated_with_critical_factor():
    from backend_cryptoarmor.analytics.fixtures import get_fixture_by_id
    from backend_cryptoarmor.analytics.risk_engine import score_fixture

    a = score_fixture(get_fixture_by_id("sepolia-drainer-1"))
    assert a.is_simulated is True
    assert a.score == 5
    assert a.fixture_ref == "sepolia-drainer-1"
    drainer = [f for f in a.factors if f.title == "Drainer Pattern Detected"]
    assert drainer and drainer[0].severity.value == "critical"
    assert drainer[0].weight == -40
    assert a.risk_level.value == "critical"


def test_fixture_tiers_use_single_table():
    from backend_cryptoarmor.analytics.fixtures import get_fixture_by_id
    from backend_cryptoarmor.analytics.risk_engine import score_fixture

    assert score_fixture(get_fixture_by_id("sepolia-medium-risk-1")).risk_level.value == "high"
    assert score_fixture(get_fixture_by_id("holesky-medium-risk-1")).risk_level.value == "medium"
    assert score_fixture(get_fixture_by_id("holesky-low-risk-1")).risk_level.value == "low"


def test_low_risk_fixture_gets_established_history():
    from backend_cryptoarmor.analytics.fixtures import get_fixture_by_id
    from backend_cryptoarmor.analytics.risk_engine import score_fixture

    a = score_fixture(get_fixture_by_id("sepolia-low-risk-2"))
    assert [f.title for f in a.factors] == ["Established History"]
    assert a.flags == []


def test_every_fixture_flag_maps_to_a_factor():
    from backend_cryptoarmor.analytics.fixtures import FIXTURES
    from backend_cryptoarmor.analytics.risk_engine import FIXTURE_FLAG_FACTORS

    flags = {flag for f in FIXTURES for flag in f.simulated_flags}
    assert flags <= set(FIXTURE_FLAG_FACTORS)


def test_wallet_age_uses_current_time_by_default():
    from unittest.mock import patch

    from backend_cryptoarmor.analytics.risk_engine import score

    with patch("backend_cryptoarmor.analytics.risk_engine.time.time", return_value=NOW):
        a = score(_snapshot(), [_tx(3, n=1)])
    assert [f.id for f in a.factors] == ["wallet-age-new"]


def test_transfer_of_max_amount_is_not_an_approval():
    from backend_cryptoarmor.analytics.models import TransactionContext
    from backend_cryptoarmor.analytics.risk_engine import score

    calldata = "0xa9059cbb" + "00" * 12 + "cd" * 20 + "f" * 64
    a = score(_snapshot(), [], TransactionContext(to_address=ADDR, calldata=calldata), now=NOW)
    assert "unlimited-approval" not in _ids(a)


def test_score_fixture_without_fixture_is_data_unavailable():
    from backend_cryptoarmor.analytics.risk_engine import score_fixture

    a = score_fixture(None)
    assert a.score == 50
    assert a.risk_level.value == "high"
    assert a.factors[0].id == "data-unavailable"
    assert not a.is_simulated


@pytest.mark.parametrize(
    "overrides",
    [{"expected_score": "abc"}, {"simulated_flags": None}],
)
def test_score_fixture_garbled_fields_never_raise(overrides):
    from dataclasses import replace

    from backend_cryptoarmor.analytics.fixtures import FIXTURES
    from backend_cryptoarmor.analytics.risk_engine import score_fixture

    a = score_fixture(replace(FIXTURES[0], **overrides))
    assert a.score == 50
    assert a.factors[0].id == "data-unavailable"


@pytest.mark.parametrize(
    "age_days,expected",
    [
        (None, "Unknown"),
        (0.4, "0 days"),
        (12.9, "12 days"),
        (45, "1 months"),
        (200, "6 months"),
        (400, "1.1 years"),
        (1095, "3.0 years"),
    ],
)
def test_format_account_age(age_days, expected):
    from backend_cryptoarmor.analytics.risk_engine import format_account_age

    assert format_account_age(age_days) == expected


def test_account_age_reported_with_history():
    from backend_cryptoarmor.analytics.risk_engine import score

    a = score(_snapshot(), [_tx(400, n=1), _tx(3, n=2)], now=NOW)
    assert a.account_age == "1.1 years"
    assert a.to_dict()["account_age"] == "1.1 years"
    assert score(_snapshot(), [], now=NOW).account_age == "Unknown"


def test_max_severity_is_serialized():
    from backend_cryptoarmor.analytics.models import TransactionContext
    from backend_cryptoarmor.analytics.risk_engine import score

    calldata = "0x095ea7b3" + "00" * 12 + "cd" * 20 + "f" * 64
    a = score(_snapshot(), [], TransactionContext(to_address=ADDR, calldata=calldata), now=NOW)
    assert a.to_dict()["max_severity"] == "critical"
    assert score(_snapshot(), [], now=NOW).to_dict()["max_severity"] is None
