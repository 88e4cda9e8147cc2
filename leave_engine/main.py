"""Leave Engine: FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

# Model modules register their tables on Base.metadata
import leave_engine.directory.models  # noqa: F401
import leave_engine.leave.models  # noqa: F401
import leave_engine.ledger.models  # noqa: F401
import leave_engine.policies.models  # noqa: F401
from leave_engine.common.exceptions import register_exception_handlers
from leave_engine.common.rate_limit import limiter
from leave_engine.config import settings
from leave_engine.database import Base, engine
from leave_engine.events.router import router as events_router
from leave_engine.leave.router import router as requests_router
from leave_engine.ledger.router import router as balances_router
from leave_engine.policies.router import router as policies_router
from leave_engine.reports.router import router as reports_router

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    if settings.AUTO_CREATE_TABLES:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title="Leave Engine",
        description="Leave accounting: policies, balances, request lifecycle and statistics",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(policies_router, prefix="/api/v1/policies", tags=["policies"])
    app.include_router(balances_router, prefix="/api/v1/balances", tags=["balances"])
    app.include_router(requests_router, prefix="/api/v1/requests", tags=["requests"])
    app.include_router(reports_router, prefix="/api/v1/reports", tags=["reports"])
    app.include_router(events_router, prefix="/api/v1/events", tags=["events"])

    logger.debug("Leave Engine app created (%s)", settings.ENVIRONMENT)
    return app


app = create_app()
