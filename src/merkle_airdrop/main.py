"""
Merkle Airdrop Claim Service - Main Entry Point

Serves claim, root rotation and custody withdrawal operations for one
airdrop campaign, plus distribution building and proof verification.
"""

import asyncio
import signal
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app
from starlette.responses import Response

from merkle_airdrop.api.v1 import router as api_v1_router
from merkle_airdrop.core.auth import GatewayAuthMiddleware
from merkle_airdrop.core.config import Settings, settings
from merkle_airdrop.core.logging import setup_logging
from merkle_airdrop.crypto.merkle import DistributionError
from merkle_airdrop.metrics import get_claim_metrics
from merkle_airdrop.services.claim_registry import ClaimRegistry
from merkle_airdrop.services.distribution import read_dump
from merkle_airdrop.services.ledger import InMemoryLedger, LedgerError

setup_logging()
logger = structlog.get_logger(__name__)


def init_registry(config: Settings) -> tuple[InMemoryLedger, ClaimRegistry] | None:
    """
    Build the ledger and registry described by the settings.

    The root comes from DISTRIBUTION_FILE when set, in which case proofs
    are bounded by that tree's depth; otherwise from INITIAL_ROOT.

    Returns:
        (ledger, registry), or None when owner or root is not configured

    Raises:
        OSError: If DISTRIBUTION_FILE cannot be read
        DistributionError: If DISTRIBUTION_FILE is not a valid tree dump
    """
    if not config.OWNER_ADDRESS:
        logger.warning("OWNER_ADDRESS not set - claim registry disabled")
        return None

    max_proof_length = config.MAX_PROOF_LENGTH
    if config.DISTRIBUTION_FILE:
        distribution = read_dump(config.DISTRIBUTION_FILE)
        root = distribution.root
        max_proof_length = min(max_proof_length, distribution.depth)
        logger.info(
            "Loaded distribution",
            path=config.DISTRIBUTION_FILE,
            recipients=len(distribution.proofs),
            total_amount=distribution.total_amount,
        )
    elif config.INITIAL_ROOT:
        root = config.INITIAL_ROOT
    else:
        logger.warning("Neither DISTRIBUTION_FILE nor INITIAL_ROOT set - claim registry disabled")
        return None

    ledger = InMemoryLedger(config.CUSTODY_ADDRESS)
    if config.INITIAL_CUSTODY_BALANCE:
        ledger.deposit(ledger.holder, config.INITIAL_CUSTODY_BALANCE)

    registry = ClaimRegistry(
        ledger=ledger,
        initial_root=root,
        owner=config.OWNER_ADDRESS,
        max_proof_length=max_proof_length,
        proof_length_ceiling=config.MAX_PROOF_LENGTH,
    )
    return ledger, registry


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info(
        "Starting Merkle Airdrop Service",
        version=settings.VERSION,
        environment=settings.ENV,
    )

    app.state.registry = None
    app.state.ledger = None
    app.state.registry_lock = asyncio.Lock()

    try:
        configured = init_registry(settings)
    except (DistributionError, LedgerError, ValueError, OSError) as e:
        logger.error(
            "Failed to initialise claim registry - service will operate in degraded mode",
            error=str(e),
        )
        configured = None

    if configured:
        app.state.ledger, app.state.registry = configured

    get_claim_metrics().set_service_info(
        version=settings.VERSION,
        environment=settings.ENV,
        root=app.state.registry.current_root if app.state.registry else None,
    )

    yield

    logger.info("Merkle Airdrop Service shutdown complete")


def create_application() -> FastAPI:
    """Create FastAPI application."""
    app = FastAPI(
        title="Merkle Airdrop Claim API",
        description="Merkle-proof gated airdrop claims",
        version=settings.VERSION,
        docs_url="/docs" if settings.ENV != "production" else None,
        redoc_url="/redoc" if settings.ENV != "production" else None,
        lifespan=lifespan,
    )

    app.add_middleware(GatewayAuthMiddleware)

    app.include_router(api_v1_router, prefix="/api/v1")

    if settings.METRICS_ENABLED:
        app.mount("/metrics", make_asgi_app())

    @app.get("/health")
    async def health() -> dict:
        """Overall service health check."""
        registry = getattr(app.state, "registry", None)
        return {
            "status": "healthy",
            "service": "merkle-airdrop",
            "version": settings.VERSION,
            "registry": "configured" if registry else "not_configured",
        }

    @app.get("/ready")
    async def ready() -> Response:
        """Readiness probe: ready once a registry is serving claims."""
        if getattr(app.state, "registry", None) is None:
            return Response(status_code=503, content="not ready - registry not configured")
        return Response(status_code=200, content="ready")

    @app.get("/live")
    async def live() -> Response:
        """Liveness probe."""
        return Response(status_code=200, content="alive")

    @app.get("/status")
    async def status() -> dict:
        """Detailed service status."""
        registry = getattr(app.state, "registry", None)
        if registry is None:
            return {
                "service": "merkle-airdrop",
                "version": settings.VERSION,
                "error": "Claim registry not configured",
            }
        return {
            "service": "merkle-airdrop",
            "version": settings.VERSION,
            "environment": settings.ENV,
            "root": registry.current_root,
            "owner": registry.owner,
            "max_proof_length": registry.max_proof_length,
            "total_claimed": str(registry.total_claimed),
            "custody_balance": str(registry.custody_balance()),
        }

    return app


app = create_application()


def handle_signal(signum: int, frame: object) -> None:
    """Handle shutdown signals."""
    logger.info(f"Received signal {signum}, initiating shutdown")
    sys.exit(0)


def main() -> None:
    """Run the service."""
    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    logger.info(
        "Starting Merkle Airdrop service",
        host=settings.HOST,
        port=settings.PORT,
    )

    # Claim state lives in this process; a single worker keeps one registry.
    uvicorn.run(
        "merkle_airdrop.main:app",
        host=settings.HOST,
        port=settings.PORT,
        workers=1,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()
