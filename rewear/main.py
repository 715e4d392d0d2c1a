"""
Application entry point.

Run locally:
    uvicorn rewear.main:app --reload --port 8000

In Docker:
    CMD ["uvicorn", "rewear.main:app", "--host", "0.0.0.0", "--port", "8000"]

API docs available at:
    http://localhost:8000/docs   (Swagger UI)
    http://localhost:8000/redoc  (ReDoc)
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from rewear.config import settings
from rewear.core.exceptions import SettlementError, CONFLICT_CODES, INTEGRITY_CODES
from rewear.core.rate_limiter import limiter
from rewear.logging_config import setup_logging
from rewear.routers import settlement, wallet, items, admin, users, websocket
from rewear.services.event_bus import bus

logger = logging.getLogger("rewear.main")
security_logger = logging.getLogger("rewear.security")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Sync handlers run in the threadpool; they publish socket events through this loop.
    bus.bind_loop(asyncio.get_running_loop())
    logger.info("ReWear settlement API started")
    yield
    bus.loop = None


async def settlement_error_handler(request: Request, exc: SettlementError) -> JSONResponse:
    """Render every settlement failure as {"detail": ..., "code": ...}."""
    if exc.code in INTEGRITY_CODES:
        security_logger.warning("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.detail)
    elif exc.code in CONFLICT_CODES:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=exc.headers,
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """
    Database unreachable or a statement failed. Services have already rolled
    back, so nothing was partially applied and the client may retry.
    """
    logger.error("Storage failure on %s %s: %r", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={
            "detail": "Storage temporarily unavailable. No changes were made; please retry.",
            "code": "storage_unavailable",
        },
    )


def create_app() -> FastAPI:
    setup_logging(settings.log_level)

    app = FastAPI(
        title="ReWear Settlement API",
        description=(
            "Points ledger and swap settlement for the ReWear clothing exchange. "
            "Supports Razorpay point purchases, atomic swap approval, item moderation, "
            "real-time WebSocket events, and an admin panel."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # ── Rate Limiter ──────────────────────────────────────────────────────────
    # Attach limiter to app state (required by slowapi)
    # Register the 429 handler so exceeded limits return proper JSON
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # ── Error rendering ───────────────────────────────────────────────────────
    app.add_exception_handler(SettlementError, settlement_error_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)

    # ── CORS ──────────────────────────────────────────────────────────────────
    # In production, CORS_ORIGINS in .env should only list your frontend domain
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ───────────────────────────────────────────────────────────────
    # Payments and swaps: the money-moving endpoints
    app.include_router(settlement.router, prefix="/settlement", tags=["Settlement"])

    # Balance and history (read-only)
    app.include_router(wallet.router, prefix="/wallet", tags=["Wallet"])

    # Item submission and browsing
    app.include_router(items.router, prefix="/items", tags=["Items"])

    # Current user profile
    app.include_router(users.router, prefix="/users", tags=["Users"])

    # Admin panel (all endpoints gated by get_current_admin dependency inside the router)
    app.include_router(admin.router, prefix="/admin", tags=["Admin"])

    # WebSocket (no prefix — ws:// connections use the full path /ws/events)
    app.include_router(websocket.router, tags=["WebSocket"])

    # ── Health Check ──────────────────────────────────────────────────────────
    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Simple health check endpoint for load balancers and Docker health checks.
        Returns 200 if the application is running.
        """
        return {"status": "ok", "version": "1.0.0"}

    @app.get("/health/payment", tags=["Health"])
    def payment_health():
        """Whether Razorpay credentials are configured. Secrets are never echoed."""
        configured = settings.razorpay_configured
        if not configured:
            logger.warning("Razorpay credentials are not configured")
        return {
            "status": "ok" if configured else "degraded",
            "razorpay_configured": configured,
        }

    return app


app = create_app()
