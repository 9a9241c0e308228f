"""
Risk engine: score an address from live chain data or from a fixture.

Live branch: start at 100, run an ordered rule set over the account snapshot,
the fetched history and (when scanning a transaction) the outgoing call. Each
rule that fires appends one RiskFactor and applies its signed weight. Rules are
independent; several may fire. Final score is clamped to [0, 100].

Fixture branch: score is the fixture's expected_score; factors come from a
fixed flag -> factor table.

Tier: >= 80 LOW, >= 60 MEDIUM, >= 40 HIGH, else CRITICAL. One table for both
branches.

The engine never raises. Missing or garbled input produces the "Data
Unavailable" assessment: score 50, tiered by the same table (HIGH), so
risk_level == risk_level_of(score) holds for every assessment.
"""

from __future__ import annotations

import time
from typing import Any, Sequence

from backend_cryptoarmor.analytics.fixtures import CATEGORY_LOW_RISK, WalletFixture
from backend_cryptoarmor.analytics.models import (
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    RiskSeverity,
    TransactionContext,
)
from backend_cryptoarmor.armor_logging import get_logger
from backend_cryptoarmor.chain.models import AccountSnapshot, TransactionRecord
from backend_cryptoarmor.chain.networks import get_network, is_supported

logger = get_logger(__name__)

BASELINE_SCORE = 100
MIN_SCORE = 0
MAX_SCORE = 100

TIER_LOW_MIN = 80
TIER_MEDIUM_MIN = 60
TIER_HIGH_MIN = 40

DATA_UNAVAILABLE_SCORE = 50
FLAG_DATA_UNAVAILABLE = "Unable to fetch blockchain data"

# Live-branch thresholds
TX_COUNT_LOW = 10
TX_COUNT_MODERATE = 50
TX_COUNT_ESTABLISHED = 500
FAILED_RATIO_MAX = 0.3
WALLET_AGE_NEW_DAYS = 7
WALLET_AGE_YOUNG_DAYS = 30
HIGH_VALUE_NATIVE_UNITS = 10
SECONDS_PER_DAY = 86400
ACCOUNT_AGE_UNKNOWN = "Unknown"

# ERC-20 approve(address,uint256) and increaseAllowance(address,uint256)
APPROVE_SELECTOR = "0x095ea7b3"
INCREASE_ALLOWANCE_SELECTOR = "0x39509351"
ALLOWANCE_SELECTORS = (APPROVE_SELECTOR, INCREASE_ALLOWANCE_SELECTOR)
AMOUNT_WORD = slice(74, 138)
UNLIMITED_APPROVAL_MIN = 2**255

FLAG_UNVERIFIED_CONTRACT = "Unverified contract"
FLAG_LOW_TX_COUNT = "Low transaction count"
FLAG_EMPTY_UNVERIFIED_CONTRACT = "Empty unverified contract"
FLAG_HIGH_FAILURE_RATE = "High failure rate"
FLAG_NEW_WALLET = "New wallet"
FLAG_UNLIMITED_APPROVAL = "Unlimited token approval"
FLAG_HIGH_VALUE = "High value transaction"


def risk_level_of(score: Any) -> RiskLevel:
    """Total, monotone tier mapping. Non-numeric input is treated as 0."""
    try:
        value = float(score)
    except (TypeError, ValueError):
        value = MIN_SCORE
    if value != value:  # NaN
        value = MIN_SCORE
    if value >= TIER_LOW_MIN:
        return RiskLevel.LOW
    if value >= TIER_MEDIUM_MIN:
        return RiskLevel.MEDIUM
    if value >= TIER_HIGH_MIN:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def _clamp(score: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, int(score)))


def detect_unlimited_approval(calldata: str | None) -> bool:
    """
    True when calldata is approve(spender, amount) or increaseAllowance(spender,
    amount) with amount >= 2**255. Other selectors are never flagged, even when
    they carry a max-uint256 argument (e.g. transfer(to, 2**256 - 1)).
    """
    if not calldata or not isinstance(calldata, str):
        return False
    data = calldata.strip().lower()
    if not data.startswith("0x"):
        data = "0x" + data
    if not data.startswith(ALLOWANCE_SELECTORS) or len(data) < AMOUNT_WORD.stop:
        return False
    try:
        amount = int(data[AMOUNT_WORD], 16)
    except ValueError:
        return False
    return amount >= UNLIMITED_APPROVAL_MIN


def format_account_age(age_days: float | None) -> str:
    """Readable age of the oldest fetched transaction: "12 days", "4 months", "1.5 years"."""
    if age_days is None:
        return ACCOUNT_AGE_UNKNOWN
    days = int(age_days)
    if days < WALLET_AGE_YOUNG_DAYS:
        return f"{days} days"
    if days < 365:
        return f"{days // 30} months"
    return f"{days / 365:.1f} years"


# -----------------------------------------------------------------------------
# Data unavailable
# -----------------------------------------------------------------------------


DATA_UNAVAILABLE_FACTOR = RiskFactor(
    id="data-unavailable",
    category="data",
    title="Data Unavailable",
    description="Could not retrieve blockchain data for analysis",
    severity=RiskSeverity.MEDIUM,
    weight=0,
)


def data_unavailable(
    address: str,
    network: str,
    warnings: Sequence[str] = (),
) -> RiskAssessment:
    return RiskAssessment(
        address=address or "",
        network=network or "",
        score=DATA_UNAVAILABLE_SCORE,
        risk_level=risk_level_of(DATA_UNAVAILABLE_SCORE),
        factors=[DATA_UNAVAILABLE_FACTOR],
        flags=[FLAG_DATA_UNAVAILABLE],
        warnings=list(warnings),
    )


# -----------------------------------------------------------------------------
# Live branch
# -----------------------------------------------------------------------------


class _Tally:
    """Running score plus the factors and flags that produced it."""

    def __init__(self) -> None:
        self.score = BASELINE_SCORE
        self.factors: list[RiskFactor] = []
        self.flags: list[str] = []

    def add(
        self,
        id: str,
        category: str,
        title: str,
        description: str,
        severity: RiskSeverity,
        weight: int,
        flag: str | None = None,
    ) -> None:
        self.factors.append(RiskFactor(id, category, title, description, severity, weight))
        self.score += weight
        if flag and flag not in self.flags:
            self.flags.append(flag)


def _contract_rules(tally: _Tally, snapshot: AccountSnapshot) -> None:
    if not snapshot.is_contract:
        return
    name = f" ({snapshot.contract_name})" if snapshot.contract_name else ""
    if not snapshot.is_verified:
        tally.add(
            "contract-unverified", "contract", "Contract Verification",
            f"Contract source code not verified{name}",
            RiskSeverity.HIGH, -25, FLAG_UNVERIFIED_CONTRACT,
        )
    else:
        tally.add(
            "contract-verified", "contract", "Contract Verification",
            f"Contract source code is verified{name}",
            RiskSeverity.LOW, 0,
        )


def _activity_rules(tally: _Tally, snapshot: AccountSnapshot) -> None:
    tx_count = snapshot.tx_count
    if tx_count < TX_COUNT_LOW:
        tally.add(
            "tx-count-low", "activity", "Transaction Volume",
            f"Very few transactions on record ({tx_count})",
            RiskSeverity.MEDIUM, -15, FLAG_LOW_TX_COUNT,
        )
    elif tx_count < TX_COUNT_MODERATE:
        tally.add(
            "tx-count-moderate", "activity", "Transaction Volume",
            f"Moderate transaction history ({tx_count})",
            RiskSeverity.LOW, -5,
        )
    elif tx_count > TX_COUNT_ESTABLISHED:
        tally.add(
            "tx-count-established", "activity", "Transaction Volume",
            f"Long transaction history ({tx_count})",
            RiskSeverity.LOW, 5,
        )


def _balance_rules(tally: _Tally, snapshot: AccountSnapshot) -> None:
    if snapshot.balance_base_units == 0 and snapshot.is_contract and not snapshot.is_verified:
        tally.add(
            "empty-unverified-contract", "balance", "Balance Status",
            "Unverified contract holds zero balance",
            RiskSeverity.CRITICAL, -30, FLAG_EMPTY_UNVERIFIED_CONTRACT,
        )


def _history_rules(tally: _Tally, history: Sequence[TransactionRecord], now: float) -> float | None:
    """Failure-rate and wallet-age rules. Returns the age in days, None when unknown."""
    if not history:
        return None
    failed = sum(1 for tx in history if tx.failed)
    ratio = failed / len(history)
    if ratio > FAILED_RATIO_MAX:
        tally.add(
            "high-failure-rate", "history", "Transaction Failures",
            f"{round(ratio * 100)}% transaction failure rate",
            RiskSeverity.HIGH, -20, FLAG_HIGH_FAILURE_RATE,
        )

    timestamps = [tx.timestamp for tx in history if tx.timestamp and tx.timestamp > 0]
    if not timestamps:
        return None
    age_days = max(0.0, (now - min(timestamps)) / SECONDS_PER_DAY)
    if age_days < WALLET_AGE_NEW_DAYS:
        tally.add(
            "wallet-age-new", "history", "Wallet Age",
            f"Oldest fetched transaction is {age_days:.1f} days old",
            RiskSeverity.HIGH, -20, FLAG_NEW_WALLET,
        )
    elif age_days < WALLET_AGE_YOUNG_DAYS:
        tally.add(
            "wallet-age-young", "history", "Wallet Age",
            f"Oldest fetched transaction is {int(age_days)} days old",
            RiskSeverity.LOW, -5,
        )
    else:
        tally.add(
            "wallet-age-established", "history", "Wallet Age",
            f"Activity going back at least {int(age_days)} days",
            RiskSeverity.LOW, 5,
        )
    return age_days


def _transaction_rules(tally: _Tally, context: TransactionContext, decimals: int) -> None:
    if detect_unlimited_approval(context.calldata):
        tally.add(
            "unlimited-approval", "transaction", "Unlimited Token Approval",
            "Transaction grants unlimited token spending approval",
            RiskSeverity.CRITICAL, -35, FLAG_UNLIMITED_APPROVAL,
        )
    if context.value_base_units > HIGH_VALUE_NATIVE_UNITS * 10**decimals:
        tally.add(
            "high-value", "transaction", "Transaction Value",
            f"Sending more than {HIGH_VALUE_NATIVE_UNITS} native units",
            RiskSeverity.MEDIUM, -10, FLAG_HIGH_VALUE,
        )


def score(
    snapshot: AccountSnapshot | None,
    history: Sequence[TransactionRecord] | None = None,
    context: TransactionContext | None = None,
    now: float | None = None,
) -> RiskAssessment:
    """
    Live-branch assessment. Returns the Data Unavailable assessment when the
    snapshot is missing, every snapshot sub-query failed, or input is garbled.
    """
    address = getattr(snapshot, "address", "") or ""
    network = getattr(snapshot, "network", "") or ""
    if not isinstance(snapshot, AccountSnapshot) or snapshot.fully_unavailable:
        logger.info("risk_engine_data_unavailable", address=address, network=network)
        return data_unavailable(address, network)

    try:
        history = list(history or [])
        now = time.time() if now is None else now
        decimals = get_network(network).decimals if is_supported(network) else 18

        tally = _Tally()
        _contract_rules(tally, snapshot)
        _activity_rules(tally, snapshot)
        _balance_rules(tally, snapshot)
        age_days = _history_rules(tally, history, now)
        if context is not None:
            _transaction_rules(tally, context, decimals)
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning("risk_engine_garbled_input", address=address, network=network, error=str(e))
        return data_unavailable(address, network)

    final = _clamp(tally.score)
    warnings = [f"Partial data: {name} unavailable" for name in snapshot.unavailable]
    assessment = RiskAssessment(
        address=address,
        network=network,
        score=final,
        risk_level=risk_level_of(final),
        factors=tally.factors,
        flags=tally.flags,
        warnings=warnings,
        snapshot=snapshot,
        transactions=history,
        account_age=format_account_age(age_days),
    )
    logger.debug(
        "risk_engine_result",
        address=address,
        network=network,
        score=final,
        risk_level=assessment.risk_level.value,
        factors=[f.id for f in tally.factors],
    )
    return assessment


# -----------------------------------------------------------------------------
# Fixture branch
# -----------------------------------------------------------------------------

# flag -> (category, title, description, severity, weight)
FIXTURE_FLAG_FACTORS: dict[str, tuple[str, str, str, RiskSeverity, int]] = {
    "new-wallet": ("history", "Wallet Age", "Newly created wallet with limited history", RiskSeverity.HIGH, -20),
    "unverified-contract": ("contract", "Contract Verification", "Smart contract code is not verified", RiskSeverity.CRITICAL, -30),
    "drainer-pattern": ("threat", "Drainer Pattern Detected", "Contract exhibits known drainer behavior patterns", RiskSeverity.CRITICAL, -40),
    "known-phishing": ("threat", "Known Phishing Address", "Address is associated with known phishing campaigns", RiskSeverity.CRITICAL, -50),
    "honeypot-detected": ("threat", "Honeypot Token", "Token contract prevents selling or has hidden fees", RiskSeverity.CRITICAL, -45),
    "rapid-fund-movement": ("history", "Rapid Fund Movement", "Unusual speed of fund transfers detected", RiskSeverity.HIGH, -15),
    "high-failure-rate": ("history", "Transaction Failures", "High share of failed transactions", RiskSeverity.HIGH, -20),
    "unlimited-approvals": ("transaction", "Unlimited Token Approvals", "Requests unlimited token spending approvals", RiskSeverity.CRITICAL, -35),
    "rapid-consolidation": ("history", "Rapid Consolidation", "Funds from many sources consolidated quickly", RiskSeverity.HIGH, -15),
    "immediate-withdrawal": ("history", "Immediate Withdrawal", "Incoming funds withdrawn immediately", RiskSeverity.HIGH, -15),
    "sell-blocked": ("threat", "Sell Blocked", "Token transfers out are blocked for holders", RiskSeverity.CRITICAL, -30),
    "hidden-fees": ("contract", "Hidden Fees", "Token charges undisclosed transfer fees", RiskSeverity.MEDIUM, -10),
    "moderate-activity": ("activity", "Moderate Activity", "Limited but regular activity", RiskSeverity.LOW, -5),
    "recent-large-transfers": ("history", "Recent Large Transfers", "Large transfers in the recent past", RiskSeverity.MEDIUM, -10),
    "high-gas-usage": ("activity", "High Gas Usage", "Gas usage well above typical wallets", RiskSeverity.LOW, -5),
    "frequent-contract-calls": ("activity", "Frequent Contract Calls", "Unusually frequent contract interactions", RiskSeverity.LOW, -5),
    "mixing-detected": ("threat", "Mixing Service Pattern", "Transaction pattern consistent with coin mixing", RiskSeverity.HIGH, -25),
    "privacy-tools": ("activity", "Privacy Tools", "Uses privacy-enhancing transaction tools", RiskSeverity.MEDIUM, -10),
}

ESTABLISHED_HISTORY_FACTOR = RiskFactor(
    id="established-history",
    category="history",
    title="Established History",
    description="Wallet has consistent, long-term activity",
    severity=RiskSeverity.LOW,
    weight=10,
)


def fixture_factors(fixture: WalletFixture) -> list[RiskFactor]:
    factors: list[RiskFactor] = []
    for flag in fixture.simulated_flags:
        entry = FIXTURE_FLAG_FACTORS.get(flag)
        if entry is None:
            logger.debug("risk_engine_fixture_flag_unmapped", fixture=fixture.id, flag=flag)
            continue
        category, title, description, severity, weight = entry
        factors.append(RiskFactor(flag, category, title, description, severity, weight))
    if fixture.category == CATEGORY_LOW_RISK:
        factors.append(ESTABLISHED_HISTORY_FACTOR)
    return factors


def score_fixture(fixture: WalletFixture | None) -> RiskAssessment:
    """
    Deterministic assessment for a fixture wallet; no recomputation of the score.
    Anything that is not a well-formed WalletFixture yields Data Unavailable.
    """
    address = getattr(fixture, "address", "") or ""
    network = getattr(fixture, "network", "") or ""
    if not isinstance(fixture, WalletFixture):
        logger.info("risk_engine_fixture_missing", address=address, network=network)
        return data_unavailable(address, network)
    try:
        value = _clamp(fixture.expected_score)
        factors = fixture_factors(fixture)
        flags = list(fixture.simulated_flags)
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning("risk_engine_garbled_fixture", fixture=getattr(fixture, "id", None), error=str(e))
        return data_unavailable(address, network)
    return RiskAssessment(
        address=address,
        network=network,
        score=value,
        risk_level=risk_level_of(value),
        factors=factors,
        flags=flags,
        is_simulated=True,
        fixture_ref=fixture.id,
    )
