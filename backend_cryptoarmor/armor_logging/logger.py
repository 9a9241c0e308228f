"""
Structured logging for CryptoArmor: one JSON object per line on stdout.

Every line carries timestamp, level, event_type and the logger name. Address
fields (address, to, txhash) are shortened by a processor, so call sites pass
raw values. Request context (address, network) is bound once per assessment
through structlog contextvars and shows up on every line logged inside it,
including the chain client's retry and failover lines.

LOG_LEVEL  debug | info | warning | error   (default info)
LOG_FORMAT json | console                   (default json)

No backend_cryptoarmor imports here; every other module imports this one.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog

ADDRESS_KEYS = ("address", "to", "txhash")
SHORT_ADDRESS_KEEP = 10

LOG_FORMAT_JSON = "json"
LOG_FORMAT_CONSOLE = "console"


def short_address(address: str | None, keep: int = SHORT_ADDRESS_KEEP) -> str:
    """Truncate an address or hash for log lines: 0x742d35Cc..."""
    address = (address or "").strip()
    if len(address) <= keep:
        return address
    return address[:keep] + "..."


def _shorten_addresses(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in ADDRESS_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = short_address(value)
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog's "event" key becomes event_type; message mirrors it for log shippers."""
    event = event_dict.pop("event", None)
    if event is not None:
        event_dict.setdefault("event_type", event)
        event_dict.setdefault("message", str(event))
    return event_dict


def _renderer(log_format: str) -> Any:
    if log_format == LOG_FORMAT_CONSOLE:
        return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    return structlog.processors.JSONRenderer()


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """
    (Re)configure structlog. Called once on import with LOG_LEVEL / LOG_FORMAT;
    main.py and tests may call it again to switch format.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_format = (log_format or os.getenv("LOG_FORMAT", LOG_FORMAT_JSON)).strip().lower()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _shorten_addresses,
            _event_type,
            _renderer(log_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger with the module name bound.

        logger = get_logger(__name__)
        logger.info("rpc_call_ok", network="ethereum-sepolia", method="eth_getBalance")
    """
    return structlog.get_logger(name).bind(logger=name)


@contextmanager
def request_context(address: str, network: str | None = None) -> Iterator[None]:
    """
    Bind address (and network) to every log line emitted inside the block,
    from any module. Restored on exit, so nested or concurrent assessments
    running in separate asyncio tasks do not leak context into each other.
    """
    context: dict[str, Any] = {"address": address}
    if network:
        context["network"] = network
    with structlog.contextvars.bound_contextvars(**context):
        yield
