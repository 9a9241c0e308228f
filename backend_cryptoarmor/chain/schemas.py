"""
Wire schemas for the external backends (JSON-RPC, Etherscan-style explorer, Esplora).

Every payload is validated here before the client trusts it. Callers convert
pydantic ValidationError / ValueError into EndpointUnavailable so raw parse
errors never leave the chain package.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

RATE_LIMIT_MARKER = "rate limit"
NOT_VERIFIED_ABI = "Contract source code not verified"


def parse_quantity(value: Any) -> int:
    """Decode a JSON-RPC hex quantity ("0x1a") into an int. Raises ValueError."""
    if not isinstance(value, str) or not value.startswith(("0x", "0X")):
        raise ValueError(f"expected hex quantity, got {value!r}")
    digits = value[2:] or "0"
    return int(digits, 16)


def parse_int(value: Any, default: int = 0) -> int:
    """Decode a decimal or hex string/int; default on empty or malformed input."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text)
    except ValueError:
        return default


class _Lenient(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# -----------------------------------------------------------------------------
# JSON-RPC
# -----------------------------------------------------------------------------


class RpcErrorObject(_Lenient):
    code: int | None = None
    message: str = "unknown RPC error"


class RpcEnvelope(_Lenient):
    jsonrpc: str | None = None
    id: Any = None
    result: Any = None
    error: RpcErrorObject | None = None

    @property
    def has_result(self) -> bool:
        return "result" in self.model_fields_set


# -----------------------------------------------------------------------------
# Etherscan-style explorer
# -----------------------------------------------------------------------------


class ExplorerEnvelope(_Lenient):
    status: str | None = None
    message: str = ""
    result: Any = None

    @field_validator("status", mode="before")
    @classmethod
    def _status_as_str(cls, v: Any) -> str | None:
        return None if v is None else str(v)

    @property
    def is_error(self) -> bool:
        return self.status == "0"

    @property
    def is_rate_limited(self) -> bool:
        if not self.is_error:
            return False
        text = f"{self.message} {self.result if isinstance(self.result, str) else ''}"
        return RATE_LIMIT_MARKER in text.lower()


class ExplorerTransaction(_Lenient):
    hash: str
    from_address: str = Field("", alias="from")
    to: str | None = ""
    value: str = "0"
    time_stamp: str = Field("0", alias="timeStamp")
    gas_used: str = Field("0", alias="gasUsed")
    is_error: str = Field("0", alias="isError")
    txreceipt_status: str = ""
    function_name: str = Field("", alias="functionName")

    @property
    def failed(self) -> bool:
        return self.is_error == "1" or self.txreceipt_status == "0"


class ExplorerTokenTransfer(_Lenient):
    hash: str
    from_address: str = Field("", alias="from")
    to: str = ""
    value: str = "0"
    token_name: str = Field("", alias="tokenName")
    token_symbol: str = Field("", alias="tokenSymbol")
    token_decimal: str = Field("0", alias="tokenDecimal")
    time_stamp: str = Field("0", alias="timeStamp")


class ContractSource(_Lenient):
    source_code: str = Field("", alias="SourceCode")
    abi: str = Field("", alias="ABI")
    contract_name: str = Field("", alias="ContractName")

    @property
    def has_source(self) -> bool:
        return bool(self.source_code.strip())

    @property
    def is_verified(self) -> bool:
        return self.has_source and self.abi != NOT_VERIFIED_ABI


# -----------------------------------------------------------------------------
# Esplora (Blockstream / mempool.space) for UTXO networks
# -----------------------------------------------------------------------------


class EsploraChainStats(_Lenient):
    funded_txo_sum: int = 0
    spent_txo_sum: int = 0
    tx_count: int = 0


class EsploraAddress(_Lenient):
    address: str
    chain_stats: EsploraChainStats = Field(default_factory=EsploraChainStats)
    mempool_stats: EsploraChainStats = Field(default_factory=EsploraChainStats)

    @property
    def balance_sats(self) -> int:
        confirmed = self.chain_stats.funded_txo_sum - self.chain_stats.spent_txo_sum
        pending = self.mempool_stats.funded_txo_sum - self.mempool_stats.spent_txo_sum
        return max(0, confirmed + pending)

    @property
    def tx_count(self) -> int:
        return self.chain_stats.tx_count + self.mempool_stats.tx_count


class EsploraStatus(_Lenient):
    confirmed: bool = False
    block_time: int | None = None


class EsploraOutput(_Lenient):
    scriptpubkey_address: str | None = None
    value: int = 0


class EsploraInput(_Lenient):
    prevout: EsploraOutput | None = None


class EsploraTransaction(_Lenient):
    txid: str
    status: EsploraStatus = Field(default_factory=EsploraStatus)
    fee: int = 0
    vin: list[EsploraInput] = Field(default_factory=list)
    vout: list[EsploraOutput] = Field(default_factory=list)
