"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .api.admin import router as admin_router
from .api.credits import router as credits_router
from .api.quota import router as quota_router
from .core.config import get_settings
from .core.exceptions import LedgerError
from .core.security import RequestLoggingMiddleware, limiter
from .db.database import init_db, close_db

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting Diksuchi credit service in {settings.environment} mode")

    if not settings.jwt_secret:
        logger.warning("JWT_SECRET not configured - authentication disabled, using development user")

    # In production with PostgreSQL, use Alembic migrations instead
    if settings.auto_migrate:
        logger.info("Initializing database...")
        await init_db()
        logger.info("Database initialized")

    yield

    logger.info("Shutting down Diksuchi credit service")
    await close_db()


app = FastAPI(
    title="Diksuchi - AI Credits and Project Quotas",
    description="Usage-credit ledger for AI chat and the custom project quota workflow.",
    version="0.1.0",
    lifespan=lifespan,
)

# Add rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Return credit and quota failures as JSON with their mapped status."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(credits_router, prefix="/api/v1", tags=["credits"])
app.include_router(quota_router, prefix="/api/v1", tags=["quota"])
app.include_router(admin_router, prefix="/api/v1", tags=["admin"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Diksuchi",
        "version": "0.1.0",
        "description": "AI credits and custom project quotas",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
