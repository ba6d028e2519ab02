"""PracticePlan Entitlements Service - FastAPI Application Entry Point.

Serves:
- Subscription tier and feature gate lookups
- Admin re-migration of legacy team data (HTTP and WebSocket)
- Stripe billing webhooks
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import (
    ALLOWED_HOSTS,
    CORS_ORIGINS,
    DEBUG,
    MIGRATION_ENABLED,
    logger,
)
from app.core.entitlements.gates import FeatureGateError, get_feature_gates
from app.middleware import (
    ErrorSanitizationMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
)
from app.routers import admin, billing, subscription
from app.version import __version__
from app.schemas import HealthResponse, ReadinessResponse


# -----------------------------------------------------------------------------
# Application Lifespan
# -----------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("Starting PracticePlan entitlements service v%s", __version__)
    # Fail at startup rather than on the first gated request
    gates = get_feature_gates()
    logger.info("Feature gates loaded from %s", gates.source)
    yield
    logger.info("Shutting down PracticePlan entitlements service")


# -----------------------------------------------------------------------------
# Application Factory
# -----------------------------------------------------------------------------

def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="PracticePlan Entitlements",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
        openapi_url="/openapi.json" if DEBUG else None,
    )

    # -------------------------------------------------------------------------
    # Middleware Stack (order matters - first added = last executed)
    # -------------------------------------------------------------------------

    # 1. Error sanitization (outermost - catches all errors)
    app.add_middleware(ErrorSanitizationMiddleware, debug=DEBUG)

    # 2. Request logging
    app.add_middleware(RequestLoggingMiddleware, exclude_paths={"/health", "/ready"})

    # 3. Request ID injection
    app.add_middleware(RequestIDMiddleware)

    # 4. Trusted hosts
    if ALLOWED_HOSTS and ALLOWED_HOSTS != ["*"]:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=ALLOWED_HOSTS)

    # 5. CORS (innermost middleware for preflight handling)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=600,
    )

    # -------------------------------------------------------------------------
    # Exception Handlers
    # -------------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors with clean messages."""
        clean_errors = [
            {"field": ".".join(str(loc) for loc in err.get("loc", [])), "message": err.get("msg", "Invalid value")}
            for err in exc.errors()[:5]
        ]
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": clean_errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with consistent format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    # -------------------------------------------------------------------------
    # Health Check Endpoints
    # -------------------------------------------------------------------------

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Liveness probe."""
        return HealthResponse(
            status="healthy",
            version=__version__,
            timestamp=datetime.now(timezone.utc),
        )

    @app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
    async def readiness_check():
        """Readiness probe: the feature gate table must be loadable."""
        checks = {"migration_enabled": MIGRATION_ENABLED}
        try:
            get_feature_gates()
            checks["feature_gates"] = True
        except FeatureGateError as e:
            logger.error("Readiness check failed: %s", e)
            checks["feature_gates"] = False
            return JSONResponse(
                status_code=503,
                content=ReadinessResponse(status="unavailable", checks=checks).model_dump(),
            )
        return ReadinessResponse(status="ready", checks=checks)

    # -------------------------------------------------------------------------
    # Routers
    # -------------------------------------------------------------------------

    app.include_router(subscription.router)
    app.include_router(admin.router)
    app.include_router(admin.ws_router)
    app.include_router(billing.router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=DEBUG,
        limit_concurrency=100,
    )
