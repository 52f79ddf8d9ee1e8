"""Bearer-token authentication: token in, active Tenant Hub user out."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.security import is_local_token, user_id_from_access_token
from app.crud.user import user_crud
from app.models.user import User
from app.services.error_logging_service import error_logging_service
from app.services.oidc_verifier import OIDCVerifier

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthenticationService:
    """
    Resolve a bearer token to a user.

    Locally issued HS256 tokens are accepted when ``LOCAL_TOKENS_ENABLED``.
    Tokens from the hosted provider are accepted when ``IDP_OIDC_ISSUER`` and
    ``IDP_OIDC_CLIENT_ID`` are set. Anything else is a 401.
    """

    def __init__(self) -> None:
        self._oidc: Optional[OIDCVerifier] = None
        self._oidc_loaded = False

    def oidc_verifier(self) -> Optional[OIDCVerifier]:
        """The configured OIDC verifier, built once so its JWKS cache survives."""
        if not self._oidc_loaded:
            self._oidc_loaded = True
            if settings.IDP_OIDC_ISSUER and settings.IDP_OIDC_CLIENT_ID:
                self._oidc = OIDCVerifier(
                    issuer=settings.IDP_OIDC_ISSUER,
                    client_id=settings.IDP_OIDC_CLIENT_ID,
                    provider_name=settings.IDP_OIDC_PROVIDER_NAME,
                    auto_provision=settings.IDP_OIDC_AUTO_PROVISION,
                )
                logger.info("OIDC sign-in enabled for issuer %s", settings.IDP_OIDC_ISSUER)
        return self._oidc

    def reset(self) -> None:
        """Forget the OIDC verifier so the next request re-reads settings."""
        self._oidc = None
        self._oidc_loaded = False

    async def resolve_user_id(self, db: AsyncSession, token: str) -> UUID:
        """
        Verify the token and return the user ID it names.

        Raises:
            HTTPException(401): nothing accepts the token, or the accepting
                verifier rejects it.
        """
        if settings.LOCAL_TOKENS_ENABLED and is_local_token(token):
            user_id = user_id_from_access_token(token)
            if user_id is None:
                raise _unauthorized("Invalid or expired token")
            return user_id

        verifier = self.oidc_verifier()
        if verifier is not None and verifier.issued(token):
            user_id = await verifier.resolve_user_id(db, token)
            if user_id is None:
                raise _unauthorized("Invalid or expired token")
            return user_id

        raise _unauthorized("Could not validate credentials")

    async def authenticate(self, db: AsyncSession, token: str) -> User:
        """
        Return the active user behind the token.

        Raises:
            HTTPException: 401 if the token is rejected or names no known user,
                403 if the account is inactive.
        """
        user_id = await self.resolve_user_id(db, token)

        user = await user_crud.get_by_id(db, user_id)
        if user is None:
            error_logging_service.log_security_event(
                logger,
                event_type="AUTHENTICATION_UNKNOWN_USER",
                message="Valid token for a user that does not exist",
                user_id=str(user_id),
            )
            raise _unauthorized("Could not validate credentials")

        if not user.is_active:
            error_logging_service.log_security_event(
                logger,
                event_type="AUTHENTICATION_INACTIVE_USER",
                message="Inactive account presented a valid token",
                user_id=str(user.id),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="User account is inactive",
            )

        return user


authentication_service = AuthenticationService()
