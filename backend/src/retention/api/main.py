"""Main FastAPI application for the retention credits API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from retention.api.rate_limit import limiter
from retention.api.v1.checkout import router as checkout_router
from retention.api.v1.claims import router as claims_router
from retention.api.v1.companies import router as companies_router
from retention.api.v1.webhooks import router as webhooks_router
from retention.errors import RetentionError
from retention.logging_config import configure_logging, get_logger
from retention.settings import settings
from retention.storage.db import close_db, init_db
from retention.whop.client import close_whop_client, init_whop_client

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses.

    Framing is not denied: the app runs inside the Whop iframe.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        return response


def _check_configuration() -> None:
    missing = [
        name
        for name, value in (
            ("WHOP_API_KEY", settings.whop_api_key),
            ("WHOP_WEBHOOK_SECRET", settings.whop_webhook_secret),
            ("WHOP_TOKEN_PUBLIC_KEY", settings.whop_token_public_key),
        )
        if not value
    ]
    if missing:
        log = logger.error if settings.env == "production" else logger.warning
        log("configuration_incomplete", missing=missing)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    configure_logging()
    logger.info("app_starting", env=settings.env)
    _check_configuration()

    init_db(settings.database_url, echo=settings.database_echo)
    init_whop_client(settings)

    yield

    # Shutdown
    logger.info("app_shutting_down")
    await close_whop_client()
    close_db()


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        use_lifespan: Initialise database and Whop client on startup

    Returns:
        Configured FastAPI app
    """
    is_production = settings.env == "production"

    app = FastAPI(
        title="Retention Credits API",
        description="Retention offers, credit ledger and Whop webhooks",
        version="1.0.0",
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan if use_lifespan else None,
    )

    app.add_middleware(SecurityHeadersMiddleware)

    allowed_origins = [
        origin.strip()
        for origin in settings.allowed_origins.split(",")
        if origin.strip()
    ]

    # Block wildcard in production
    if is_production and "*" in allowed_origins:
        logger.error("cors_wildcard_blocked", message="Wildcard CORS not allowed in production")
        allowed_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "x-whop-user-token"],
        max_age=3600,
    )

    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests. Please try again later.", "code": "rate_limited"},
        )

    @app.exception_handler(RetentionError)
    async def retention_error_handler(request: Request, exc: RetentionError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "code": exc.code},
        )

    app.include_router(claims_router, prefix="/api/v1")
    app.include_router(webhooks_router, prefix="/api/v1")
    app.include_router(companies_router, prefix="/api/v1")
    app.include_router(checkout_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": "1.0.0",
            "env": settings.env,
        }

    return app


# Create app instance
app = create_app()
