"""
Address classifier: turn a raw string and an optional network hint into a
ValidatedAddress.

Rules are ordered and the first match wins:
1. empty input
2. Bitcoin mainnet shapes (hard block, never reaches the chain client)
3. Bitcoin testnet / signet shapes
4. EVM hex addresses (network taken from the hint, default primary testnet)
5. anything else

Pure: no I/O, never raises for malformed input.
"""

from __future__ import annotations

import re

from backend_cryptoarmor.analytics.models import AddressFamily, ValidatedAddress
from backend_cryptoarmor.chain.networks import (
    BITCOIN_SIGNET,
    BITCOIN_TESTNET,
    MAINNET_CHAIN_ID,
    NETWORKS,
    evm_networks,
    is_supported,
    primary_testnet,
)

EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

_BASE58 = "[1-9A-HJ-NP-Za-km-z]"
BTC_MAINNET_LEGACY_RE = re.compile(rf"^[13]{_BASE58}{{25,34}}$")
BTC_TESTNET_LEGACY_RE = re.compile(rf"^[mn2]{_BASE58}{{25,34}}$")
BTC_TESTNET_BECH32_RE = re.compile(r"^tb1[ac-hj-np-z02-9]{8,87}$")

ERROR_REQUIRED = "Address is required"
ERROR_MAINNET = "Mainnet addresses are not allowed"
ERROR_FORMAT = "Invalid address format. Expected Ethereum (0x...) or Bitcoin testnet address."
WARNING_BTC_MAINNET = "Bitcoin mainnet address detected. Only testnet addresses are supported."
WARNING_EVM_MAINNET = "Ethereum mainnet is not supported. Use a testnet address."
WARNING_UNCHECKSUMMED = "Ethereum addresses appear identical across networks. Ensure you're using a testnet address."


def _mismatch(expected_network: str) -> str:
    return f"Address format doesn't match expected network: {expected_network}"


def is_evm_address(address: str) -> bool:
    return bool(EVM_ADDRESS_RE.match((address or "").strip()))


def _is_btc_testnet(address: str) -> bool:
    if BTC_TESTNET_LEGACY_RE.match(address):
        return True
    # bech32 is valid all-lower or all-upper, never mixed
    if address != address.lower() and address != address.upper():
        return False
    return bool(BTC_TESTNET_BECH32_RE.match(address.lower()))


def _is_btc_mainnet(address: str) -> bool:
    if address.lower().startswith("bc1"):
        return True
    return bool(BTC_MAINNET_LEGACY_RE.match(address))


def is_bitcoin_address(address: str) -> bool:
    """True for Bitcoin mainnet or testnet shapes."""
    address = (address or "").strip()
    return _is_btc_testnet(address) or _is_btc_mainnet(address)


def validate_address_checksum(address: str) -> tuple[bool, bool]:
    """
    Return (valid, checksummed) for an EVM address.

    All-lowercase or all-uppercase hex is valid but not checksummed. Mixed case
    is accepted as checksummed without recomputing the EIP-55 hash.
    """
    if not EVM_ADDRESS_RE.match(address):
        return False, False
    body = address[2:]
    if body == body.lower() or body == body.upper():
        return True, False
    return True, True


def validate_chain_id(chain_id: int) -> tuple[bool, str | None, str | None]:
    """
    Return (valid, network_id, error) for a wallet-reported chain id.
    Chain id 1 is always rejected.
    """
    if chain_id == MAINNET_CHAIN_ID:
        return False, None, "Mainnet (chainId 1) is not allowed. Only testnets are supported."
    for profile in evm_networks():
        if profile.chain_id == chain_id:
            return True, profile.id, None
    supported = ", ".join(f"{p.short_name} ({p.chain_id})" for p in evm_networks())
    return False, None, f"Unknown chain ID: {chain_id}. Supported testnets: {supported}"


def format_address(address: str, truncate: bool = True) -> str:
    """Display form: 0x742d...eB11."""
    if not address:
        return ""
    if not truncate or len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def classify(raw: str | None, expected_network: str | None = None) -> ValidatedAddress:
    """
    Classify raw address text.

    expected_network may name any registry id. For EVM addresses it selects the
    resolved network; a UTXO hint is honored for Bitcoin testnet addresses.
    """
    raw = raw if isinstance(raw, str) else ""
    address = raw.strip()

    if not address:
        return ValidatedAddress(raw=raw, error=ERROR_REQUIRED)

    # Bitcoin mainnet: hard block
    if _is_btc_mainnet(address) and not _is_btc_testnet(address):
        return ValidatedAddress(
            raw=raw,
            normalized=address,
            family=AddressFamily.UTXO,
            is_mainnet=True,
            warning=WARNING_BTC_MAINNET,
            error=ERROR_MAINNET,
        )

    hint = (expected_network or "").strip() or None
    if hint is not None and not is_supported(hint):
        return ValidatedAddress(raw=raw, error=f"Unsupported network: {hint}")
    hint_profile = NETWORKS[hint] if hint else None

    if _is_btc_testnet(address):
        if hint_profile is not None and hint_profile.is_evm:
            return ValidatedAddress(raw=raw, family=AddressFamily.UTXO, error=_mismatch(hint))
        is_bech32 = address.lower().startswith("tb1")
        network = hint_profile.id if hint_profile else (BITCOIN_SIGNET if is_bech32 else BITCOIN_TESTNET)
        return ValidatedAddress(
            raw=raw,
            normalized=address.lower() if is_bech32 else address,
            family=AddressFamily.UTXO,
            is_valid=True,
            is_testnet=True,
            detected_network=network,
        )

    if EVM_ADDRESS_RE.match(address):
        _, checksummed = validate_address_checksum(address)
        if hint_profile is not None and not hint_profile.is_evm:
            return ValidatedAddress(raw=raw, family=AddressFamily.EVM, error=_mismatch(hint))
        if hint_profile is not None and hint_profile.is_mainnet:
            return ValidatedAddress(
                raw=raw,
                normalized=address.lower(),
                family=AddressFamily.EVM,
                is_mainnet=True,
                checksummed=checksummed,
                warning=WARNING_EVM_MAINNET,
                error=ERROR_MAINNET,
            )
        network = hint_profile.id if hint_profile else primary_testnet().id
        return ValidatedAddress(
            raw=raw,
            normalized=address.lower(),
            family=AddressFamily.EVM,
            is_valid=True,
            is_testnet=True,
            detected_network=network,
            checksummed=checksummed,
            warning=None if checksummed else WARNING_UNCHECKSUMMED,
        )

    return ValidatedAddress(raw=raw, error=ERROR_FORMAT)
