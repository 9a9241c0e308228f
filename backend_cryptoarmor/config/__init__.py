"""
Configuration management for Backend CryptoArmor.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for all service configuration.
"""

from backend_cryptoarmor.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
