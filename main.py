"""
Main entrypoint: CryptoArmor FastAPI server.

Env: API_HOST, API_PORT, LOG_LEVEL, ETHERSCAN_API_KEY, SEPOLIA_RPC_URL, HOLESKY_RPC_URL, etc.

Equivalent: uvicorn backend_cryptoarmor.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured JSON logging before other imports that may log
from backend_cryptoarmor.armor_logging import get_logger
from backend_cryptoarmor.config import get_settings

logger = get_logger("main")


def main() -> None:
    """Run the FastAPI server in the main thread."""
    settings = get_settings()

    from backend_cryptoarmor.api_server.app import app
    import uvicorn

    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        default_network=settings.default_network,
        explorer_key_configured=bool(settings.etherscan_api_key),
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
