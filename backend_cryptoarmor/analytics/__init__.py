"""
CryptoArmor analytics.

Classifies addresses, resolves fixture wallets, and scores live chain data.
Modules: address_classifier, fixtures, risk_engine, assessment.
"""

from backend_cryptoarmor.analytics.address_classifier import classify
from backend_cryptoarmor.analytics.assessment import analyze_transaction, assess_address
from backend_cryptoarmor.analytics.fixtures import resolve
from backend_cryptoarmor.analytics.risk_engine import risk_level_of, score, score_fixture

__all__ = [
    "classify",
    "resolve",
    "score",
    "score_fixture",
    "risk_level_of",
    "assess_address",
    "analyze_transaction",
]
