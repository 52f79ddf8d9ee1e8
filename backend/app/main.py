"""FastAPI main application."""

import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from app.api.v1 import admin_permissions, admin_roles, permissions, users
from app.config import settings
from app.core.database import close_db, init_db
from app.core.logging_config import setup_logging
from app.middleware.error_handler import ErrorHandlerMiddleware
from app.middleware.request_logging import (
    AuditLogMiddleware,
    RequestLoggingMiddleware,
    UserContextMiddleware,
)
from app.services.permission_service import PermissionUpdateError

_logger = logging.getLogger(__name__)


def _filter_sensitive_data(event, hint):
    """Filter sensitive data from Sentry events before sending."""
    request = event.get("request") or {}
    headers = request.get("headers")
    if headers:
        for header in ("authorization", "cookie", "x-api-key", "x-auth-token"):
            if header in headers:
                headers[header] = "[Filtered]"
    query = request.get("query_string") or ""
    if isinstance(query, str) and any(p in query.lower() for p in ("token", "secret", "search")):
        request["query_string"] = "[Filtered]"
    return event


if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1 if not settings.DEBUG else 1.0,
        send_default_pii=False,
        environment=settings.ENVIRONMENT,
        release=f"{settings.APP_NAME}@{settings.APP_VERSION}",
        before_send=_filter_sensitive_data,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    setup_logging()
    _logger.info("Starting %s %s", settings.APP_NAME, settings.APP_VERSION)
    if settings.DEBUG:
        await init_db()

    yield

    # Shutdown
    _logger.info("Shutting down %s", settings.APP_NAME)
    await close_db()


# Disable interactive API docs in production to reduce attack surface
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error handler - Catch uncaught exceptions with PII redaction
app.add_middleware(ErrorHandlerMiddleware)

# Trusted host - Prevent host header attacks (production only)
if not settings.DEBUG:
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

# Starlette runs the last-added middleware first

# Audit logging - admin writes (needs request_id)
app.add_middleware(AuditLogMiddleware)

# Request logging - X-Request-ID and timings
app.add_middleware(RequestLoggingMiddleware)

# User context extraction (runs BEFORE logging middleware)
app.add_middleware(UserContextMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    _logger.debug("Validation error on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors(), custom_encoder={Exception: str})},
    )


@app.exception_handler(PermissionUpdateError)
async def permission_update_exception_handler(request: Request, exc: PermissionUpdateError):
    # Cause already logged by the service layer
    return JSONResponse(status_code=500, content={"detail": str(exc)})


app.include_router(users.router, prefix="/api", tags=["Users"])
app.include_router(permissions.router, prefix="/api/permissions", tags=["Permissions"])
app.include_router(
    admin_permissions.router, prefix="/api/admin/permissions", tags=["Admin Permissions"]
)
app.include_router(admin_roles.router, prefix="/api/admin/roles", tags=["Admin Roles"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
