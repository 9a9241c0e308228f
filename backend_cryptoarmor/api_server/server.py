"""
FastAPI server — risk assessment API over live testnet data.

POST /assess and POST /analyze-transaction return a full RiskAssessment.
POST /blockchain-data exposes the action gateway. Nothing is persisted; every
request builds its own snapshot and discards it.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from backend_cryptoarmor import __version__
from backend_cryptoarmor.analytics.assessment import analyze_transaction, assess_address
from backend_cryptoarmor.analytics.fixtures import all_fixtures, fixtures_by_category, fixtures_by_network
from backend_cryptoarmor.analytics.models import RiskAssessment
from backend_cryptoarmor.api_server.gateway import GatewayRequest, GatewayResponse, handle_action
from backend_cryptoarmor.armor_logging import get_logger
from backend_cryptoarmor.chain.client import ChainDataClient
from backend_cryptoarmor.core.exceptions import AddressRejected, ProtocolError

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Dependency
# -----------------------------------------------------------------------------


async def get_chain_client(request: Request) -> AsyncIterator[ChainDataClient]:
    """Dependency: per-request ChainDataClient over the app-wide connection pool."""
    http = getattr(request.app.state, "http", None)
    async with ChainDataClient(http=http) as client:
        yield client


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class AssessRequest(BaseModel):
    """POST /assess body."""

    address: str = Field(..., max_length=128, description="EVM or Bitcoin testnet address")
    network: str | None = Field(None, description="Expected network id (default: primary testnet)")


class AnalyzeTransactionRequest(BaseModel):
    """POST /analyze-transaction body: an outgoing call to scan."""

    to: str = Field(..., max_length=128, description="Recipient / contract address")
    value: str = Field("0", description="Amount in native units, e.g. \"1.5\"")
    data: str = Field("", description="Hex calldata")
    network: str | None = Field(None, description="EVM network id (default: DEFAULT_NETWORK)")


class RiskFactorResponse(BaseModel):
    id: str
    category: str
    title: str
    description: str
    severity: str
    weight: int


class AssessmentResponse(BaseModel):
    """Risk assessment: score 0-100 (higher is safer), tier, and explanatory factors."""

    address: str
    network: str
    score: int = Field(..., ge=0, le=100)
    risk_level: str
    factors: list[RiskFactorResponse] = Field(default_factory=list)
    flags: list[str] = Field(default_factory=list)
    is_simulated: bool = False
    fixture_ref: str | None = None
    warnings: list[str] = Field(default_factory=list)
    snapshot: dict[str, Any] | None = None
    transactions: list[dict[str, Any]] = Field(default_factory=list)
    account_age: str = "Unknown"
    max_severity: str | None = None


def _to_response(assessment: RiskAssessment) -> AssessmentResponse:
    return AssessmentResponse.model_validate(assessment.to_dict())


def _rejected(exc: AddressRejected) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"error": str(exc), "validation": exc.validation.to_dict()},
    )


# -----------------------------------------------------------------------------
# Lifespan: one shared httpx connection pool
# -----------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.http = httpx.AsyncClient(headers={"User-Agent": f"backend-cryptoarmor/{__version__}"})
    logger.info("api_http_pool_started")
    try:
        yield
    finally:
        await app.state.http.aclose()
        app.state.http = None
        logger.info("api_http_pool_closed")


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Backend CryptoArmor API",
    description="Testnet address and transaction risk assessment (read-only, nothing persisted).",
    version=__version__,
    lifespan=lifespan,
)


@app.post("/assess", response_model=AssessmentResponse)
async def assess(body: AssessRequest, client: ChainDataClient = Depends(get_chain_client)) -> AssessmentResponse:
    """
    Assess an address. Fixture wallets return their precomputed result; others
    are scored from live data. 400 when the address is invalid or mainnet.
    """
    logger.info("assess_called", address=body.address, network=body.network)
    try:
        assessment = await assess_address(body.address, body.network, client=client)
    except AddressRejected as e:
        raise _rejected(e) from e
    return _to_response(assessment)


@app.post("/analyze-transaction", response_model=AssessmentResponse)
async def analyze_transaction_route(
    body: AnalyzeTransactionRequest,
    client: ChainDataClient = Depends(get_chain_client),
) -> AssessmentResponse:
    """Scan an outgoing transaction: recipient risk plus calldata and value rules."""
    logger.info("analyze_transaction_called", to=body.to, network=body.network)
    try:
        assessment = await analyze_transaction(body.to, body.value, body.data, body.network, client=client)
    except AddressRejected as e:
        raise _rejected(e) from e
    except ProtocolError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _to_response(assessment)


@app.post("/blockchain-data", response_model=GatewayResponse)
async def blockchain_data(body: GatewayRequest, client: ChainDataClient = Depends(get_chain_client)) -> JSONResponse:
    """Action gateway. success=false with 400 (protocol), 502 (upstream) or 503 (config)."""
    resp = await handle_action(body, client)
    return JSONResponse(status_code=resp.status_code, content=resp.model_dump())


@app.get("/networks/health")
async def networks_health(client: ChainDataClient = Depends(get_chain_client)) -> list[dict[str, Any]]:
    """One concurrent health check per RPC network; always 200, per-network status inside."""
    return [h.to_dict() for h in await client.check_all_networks_health()]


@app.get("/fixtures")
def list_fixtures(network: str | None = None, category: str | None = None) -> list[dict[str, Any]]:
    """Fixture wallets, optionally filtered by network and/or category."""
    fixtures = fixtures_by_network(network) if network else all_fixtures()
    if category:
        allowed = {f.id for f in fixtures_by_category(category)}
        fixtures = [f for f in fixtures if f.id in allowed]
    return [f.to_dict() for f in fixtures]


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness check: API is up."""
    return {"status": "ok"}


@app.exception_handler(HTTPException)
def http_exception_handler(request: Any, exc: HTTPException) -> JSONResponse:
    """Consistent JSON error response for HTTPException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )
