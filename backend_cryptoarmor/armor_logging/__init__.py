"""
Structured logging for Backend CryptoArmor.

JSON logs with timestamp, event_type, network and address context.
Use get_logger() in all modules for aggregation-friendly output.
"""

from backend_cryptoarmor.armor_logging.logger import (
    configure_logging,
    get_logger,
    request_context,
    short_address,
)

__all__ = ["configure_logging", "get_logger", "request_context", "short_address"]
