"""
Application-level exceptions.

Address rejections surface to callers as failed validation results. Chain data
errors stay inside the chain client, which turns them into degraded defaults.
Protocol errors are returned by the gateway as success=false responses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from backend_cryptoarmor.analytics.models import ValidatedAddress


class CryptoArmorError(Exception):
    """Base class for all CryptoArmor errors."""


# -----------------------------------------------------------------------------
# Address validation (local, raised before any network call)
# -----------------------------------------------------------------------------


class AddressRejected(CryptoArmorError):
    """Address failed classification; carries the ValidatedAddress explaining why."""

    def __init__(self, validation: "ValidatedAddress") -> None:
        self.validation = validation
        super().__init__(validation.error or "Invalid address")


class InvalidAddressFormat(AddressRejected):
    pass


class MainnetAddressRejected(AddressRejected):
    pass


# -----------------------------------------------------------------------------
# Chain data (caught at the ChainDataClient boundary)
# -----------------------------------------------------------------------------


class ChainDataError(CryptoArmorError):
    """Any failure while reading from an RPC endpoint or explorer API."""


class EndpointUnavailable(ChainDataError):
    """One endpoint failed: transport error, bad status, or undecodable payload."""

    def __init__(self, message: str, endpoint: str | None = None) -> None:
        self.endpoint = endpoint
        super().__init__(message)


class EndpointTimeout(EndpointUnavailable):
    pass


class AllEndpointsFailed(ChainDataError):
    """Every RPC endpoint for a network was tried once and failed."""

    def __init__(self, network: str, method: str, attempts: int, last_error: Exception | None) -> None:
        self.network = network
        self.method = method
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"All {attempts} RPC endpoints failed for {network} {method}{detail}")


class ChainIdMismatch(ChainDataError):
    """Endpoint reports a chain id other than the one registered for the network."""

    def __init__(self, network: str, expected: int | None, actual: int | None, message: str | None = None) -> None:
        self.network = network
        self.expected = expected
        self.actual = actual
        super().__init__(
            message or f"Chain ID mismatch for {network}: expected {expected}, got {actual}"
        )


class MainnetChainRejected(ChainIdMismatch):
    """Chain id 1 was requested or observed on an RPC path. Always fatal."""

    def __init__(self, network: str, expected: int | None = None, actual: int | None = 1) -> None:
        super().__init__(
            network,
            expected,
            actual,
            message=f"Mainnet (chainId 1) is not allowed on RPC paths (network={network})",
        )


class RateLimited(ChainDataError):
    """Explorer kept signalling a rate limit after the retry bound was spent."""

    def __init__(self, endpoint: str, attempts: int) -> None:
        self.endpoint = endpoint
        self.attempts = attempts
        super().__init__(f"Explorer rate limited after {attempts} attempts: {endpoint}")


# -----------------------------------------------------------------------------
# Gateway protocol (fatal, never retried)
# -----------------------------------------------------------------------------


class ProtocolError(CryptoArmorError):
    pass


class UnsupportedNetwork(ProtocolError):
    def __init__(self, network: Any, supported: list[str] | None = None) -> None:
        self.network = network
        hint = f". Supported: {', '.join(supported)}" if supported else ""
        super().__init__(f"Unsupported network: {network}{hint}")


class UnsupportedAction(ProtocolError):
    def __init__(self, action: Any) -> None:
        self.action = action
        super().__init__(f"Unknown action: {action}")


class ConfigurationError(CryptoArmorError):
    """Required configuration (e.g. ETHERSCAN_API_KEY) is missing."""
