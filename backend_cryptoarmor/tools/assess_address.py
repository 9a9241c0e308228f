"""
Assess one address (or scan one outgoing transaction) from the command line.

How to run:
    From project root (with .env configured):
        python -m backend_cryptoarmor.tools.assess_address 0x742d35Cc6634C0532925a3b844Bc9e7595f5eB11
        python -m backend_cryptoarmor.tools.assess_address tb1q... --network bitcoin-testnet --json
        python -m backend_cryptoarmor.tools.assess_address 0xabc... --tx-value 12 --tx-data 0x095ea7b3...

Optional env vars:
    ETHERSCAN_API_KEY, SEPOLIA_RPC_URL, HOLESKY_RPC_URL, REQUEST_DEADLINE_SEC

Exit codes: 0 assessed, 2 address rejected, 1 other error.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from backend_cryptoarmor.analytics.assessment import analyze_transaction, assess_address
from backend_cryptoarmor.analytics.models import RiskAssessment
from backend_cryptoarmor.armor_logging import get_logger
from backend_cryptoarmor.core.exceptions import AddressRejected, ProtocolError

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_REJECTED = 2


def _print_report(assessment: RiskAssessment) -> None:
    print(f"Address:    {assessment.address}")
    print(f"Network:    {assessment.network}")
    print(f"Score:      {assessment.score}/100 ({assessment.risk_level.value.upper()})")
    if assessment.max_severity is not None:
        print(f"Worst:      {assessment.max_severity.value}")
    if assessment.snapshot is not None:
        print(f"Activity:   {assessment.snapshot.tx_count} txs, age {assessment.account_age}")
    if assessment.is_simulated:
        print(f"Fixture:    {assessment.fixture_ref}")
    for warning in assessment.warnings:
        print(f"Warning:    {warning}")
    if assessment.factors:
        print("Factors:")
        for f in assessment.factors:
            print(f"  [{f.severity.value:8}] {f.weight:+4d}  {f.title}: {f.description}")
    if assessment.flags:
        print("Flags:      " + ", ".join(assessment.flags))


async def run(args: argparse.Namespace) -> RiskAssessment:
    if args.tx_value is not None or args.tx_data:
        return await analyze_transaction(
            args.address,
            args.tx_value or "0",
            args.tx_data or "",
            args.network,
        )
    return await assess_address(args.address, args.network)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Assess the risk of a testnet address (EVM or Bitcoin testnet/signet).",
    )
    parser.add_argument("address", help="Address to assess")
    parser.add_argument("--network", default=None, help="Expected network id (default: primary testnet)")
    parser.add_argument("--tx-value", default=None, help="Scan a transaction sending this many native units")
    parser.add_argument("--tx-data", default=None, help="Scan a transaction with this hex calldata")
    parser.add_argument("--json", action="store_true", help="Print the assessment as JSON")
    args = parser.parse_args(argv)
    try:
        assessment = asyncio.run(run(args))
    except AddressRejected as e:
        print("REJECTED:", e, file=sys.stderr)
        if e.validation.warning:
            print("WARNING:", e.validation.warning, file=sys.stderr)
        return EXIT_REJECTED
    except ProtocolError as e:
        print("ERROR:", e, file=sys.stderr)
        return EXIT_ERROR
    except Exception as e:
        logger.exception("assess_address_failed", error=str(e))
        print("ERROR:", e, file=sys.stderr)
        return EXIT_ERROR

    if args.json:
        print(json.dumps(assessment.to_dict(), indent=2))
    else:
        _print_report(assessment)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
