"""
Assessment entry points: classify -> fixture shortcut -> live fetch -> score.

assess_address() is the single operation exposed to callers. It raises only
for rejected input (InvalidAddressFormat, MainnetAddressRejected); every other
outcome is a complete RiskAssessment. Live fetches run under one request
deadline; when it expires all in-flight sub-queries are cancelled and the
Data Unavailable assessment (score 50, tiered like any other score) is
returned.
"""

from __future__ import annotations

import asyncio
from typing import Any

from backend_cryptoarmor.analytics import risk_engine
from backend_cryptoarmor.analytics.address_classifier import classify
from backend_cryptoarmor.analytics.fixtures import resolve
from backend_cryptoarmor.analytics.models import (
    AddressFamily,
    RiskAssessment,
    TransactionContext,
    ValidatedAddress,
)
from backend_cryptoarmor.armor_logging import get_logger, request_context
from backend_cryptoarmor.chain.client import ChainDataClient
from backend_cryptoarmor.chain.models import to_base_units
from backend_cryptoarmor.chain.networks import NetworkProfile, evm_networks, get_network
from backend_cryptoarmor.config import Settings, get_settings
from backend_cryptoarmor.core.exceptions import (
    ChainDataError,
    InvalidAddressFormat,
    MainnetAddressRejected,
    UnsupportedNetwork,
)

logger = get_logger(__name__)

WARNING_DEADLINE = "Request deadline exceeded; live data incomplete"


def _raise_if_rejected(validation: ValidatedAddress) -> None:
    if validation.is_valid:
        return
    if validation.is_mainnet:
        raise MainnetAddressRejected(validation)
    raise InvalidAddressFormat(validation)


async def _fetch_and_score(
    client: ChainDataClient,
    address: str,
    network: str,
    context: TransactionContext | None,
) -> RiskAssessment:
    snapshot, history = await asyncio.gather(
        client.fetch_account_snapshot(address, network),
        client.fetch_transaction_history(address, network, client.settings.tx_history_limit),
        return_exceptions=True,
    )
    # both branches have settled; surface the first failure only now
    for result in (snapshot, history):
        if isinstance(result, BaseException):
            raise result
    return risk_engine.score(snapshot, history, context)


async def _live_assessment(
    address: str,
    network: str,
    settings: Settings,
    client: ChainDataClient | None,
    context: TransactionContext | None = None,
) -> RiskAssessment:
    async def _run(c: ChainDataClient) -> RiskAssessment:
        try:
            return await asyncio.wait_for(
                _fetch_and_score(c, address, network, context),
                timeout=settings.request_deadline_sec,
            )
        except asyncio.TimeoutError:
            logger.warning("assessment_deadline_exceeded", deadline_sec=settings.request_deadline_sec)
            return risk_engine.data_unavailable(address, network, [WARNING_DEADLINE])
        except ChainDataError as e:
            logger.warning("assessment_chain_error", error=str(e))
            return risk_engine.data_unavailable(address, network)

    if client is not None:
        return await _run(client)
    async with ChainDataClient(settings=settings) as owned:
        return await _run(owned)


async def assess_address(
    address: str,
    expected_network: str | None = None,
    client: ChainDataClient | None = None,
    settings: Settings | None = None,
) -> RiskAssessment:
    """
    Assess one address.

    expected_network resolves EVM addresses (default: primary testnet).
    client may be shared by the caller (API server, tests); otherwise one is
    opened and closed for this call.
    """
    validation = classify(address, expected_network)
    _raise_if_rejected(validation)
    network = validation.detected_network or ""

    with request_context(validation.normalized, network):
        fixture = resolve(validation.normalized)
        if fixture is not None:
            logger.info("assessment_fixture_match", fixture=fixture.id)
            assessment = risk_engine.score_fixture(fixture)
        else:
            settings = settings or (client.settings if client else get_settings())
            logger.info("assessment_live_started")
            assessment = await _live_assessment(validation.normalized, network, settings, client)
            assessment.address = address.strip()

        if validation.warning and validation.warning not in assessment.warnings:
            assessment.warnings.insert(0, validation.warning)
        logger.info(
            "assessment_complete",
            score=assessment.score,
            risk_level=assessment.risk_level.value,
            is_simulated=assessment.is_simulated,
        )
    return assessment


def _transaction_profile(network: str | None, settings: Settings) -> NetworkProfile:
    profile = get_network(network or settings.default_network)
    if not profile.is_evm:
        raise UnsupportedNetwork(profile.id, [p.id for p in evm_networks()])
    return profile


async def analyze_transaction(
    to_address: str,
    value: Any = "0",
    calldata: str = "",
    network: str | None = None,
    client: ChainDataClient | None = None,
    settings: Settings | None = None,
) -> RiskAssessment:
    """
    Scan an outgoing EVM transaction before it is signed elsewhere.

    value is in native units ("1.5" ETH). The recipient is assessed like an
    address, plus the calldata and value rules. The explorer-only mainnet
    profile is accepted here.
    """
    settings = settings or (client.settings if client else get_settings())
    profile = _transaction_profile(network, settings)
    validation = classify(to_address, None if profile.is_mainnet else profile.id)
    _raise_if_rejected(validation)
    if validation.family is not AddressFamily.EVM:
        raise InvalidAddressFormat(validation)

    with request_context(validation.normalized, profile.id):
        fixture = resolve(validation.normalized)
        if fixture is not None:
            logger.info("transaction_fixture_match", fixture=fixture.id)
            return risk_engine.score_fixture(fixture)

        context = TransactionContext(
            to_address=validation.normalized,
            value_base_units=to_base_units(value, profile.decimals),
            calldata=calldata or "",
        )
        assessment = await _live_assessment(validation.normalized, profile.id, settings, client, context)
        assessment.address = to_address.strip()
        logger.info(
            "transaction_analysis_complete",
            score=assessment.score,
            risk_level=assessment.risk_level.value,
            flags=assessment.flags,
        )
    return assessment
