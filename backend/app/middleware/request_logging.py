"""Request/response logging middleware for audit trails."""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from jose import JWTError, jwt as jose_jwt
from starlette.middleware.base import BaseHTTPMiddleware

from app.utils.logging_utils import redact_email, redact_ip

logger = logging.getLogger(__name__)


class UserContextMiddleware(BaseHTTPMiddleware):
    """
    Extract user context from the bearer token for logging.

    Runs BEFORE the logging middleware. Does NOT validate the token (that is
    done by the get_current_user dependency), so nothing read here may be
    used for authorization.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        auth_header = request.headers.get("Authorization")

        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header[len("Bearer "):]
            try:
                claims = jose_jwt.get_unverified_claims(token)
            except JWTError:
                claims = {}

            if claims.get("email"):
                request.state.user_email = claims["email"]
            if claims.get("sub"):
                request.state.user_id = claims["sub"]

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every API request and its outcome.

    Each request gets an ``X-Request-ID`` (echoed from the client if sent).
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else "unknown"
        user_email = getattr(request.state, "user_email", None)

        logger.info(
            f"Request started | "
            f"id={request_id} | "
            f"method={method} | "
            f"path={path} | "
            f"user={redact_email(user_email)} | "
            f"ip={redact_ip(client_host)}"
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                f"Request failed | "
                f"id={request_id} | "
                f"method={method} | "
                f"path={path} | "
                f"duration={duration_ms}ms | "
                f"error={type(e).__name__}"
            )
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Request completed | "
            f"id={request_id} | "
            f"method={method} | "
            f"path={path} | "
            f"status={response.status_code} | "
            f"duration={duration_ms}ms"
        )

        response.headers["X-Request-ID"] = request_id
        return response


class AuditLogMiddleware(BaseHTTPMiddleware):
    """
    Log every attempt to change permissions or roles, including denied ones.

    The authoritative record of successful changes lives in the database
    (``permission_audit_logs`` / ``audit_logs``); this log also captures
    403s and failures.
    """

    AUDIT_PATHS = {
        "/api/admin/permissions/grant": "PERMISSION_GRANT",
        "/api/admin/permissions/revoke": "PERMISSION_REVOKE",
        "/api/admin/permissions/templates/apply": "TEMPLATE_APPLY",
        "/api/admin/roles/grant": "ROLE_GRANT",
        "/api/admin/roles/revoke": "ROLE_REVOKE",
    }

    MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path.rstrip("/")
        method = request.method

        audit_type = self.AUDIT_PATHS.get(path)
        if audit_type is None or method not in self.MUTATING_METHODS:
            return await call_next(request)

        user_email = getattr(request.state, "user_email", None)
        client_host = request.client.host if request.client else "unknown"
        request_id = getattr(request.state, "request_id", "unknown")

        response = await call_next(request)

        logger.info(
            f"AUDIT | "
            f"action={audit_type} | "
            f"status={response.status_code} | "
            f"user={redact_email(user_email)} | "
            f"ip={redact_ip(client_host)} | "
            f"request_id={request_id}"
        )

        return response
