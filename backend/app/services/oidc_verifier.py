"""Verification of tokens issued by the hosted sign-in service (OIDC).

Tokens are RS256, checked against the issuer's JWKS. The ``sub`` claim is
mapped to a Tenant Hub user through ``user_identities``; on first sign-in a
user is linked by email or created when auto-provisioning is on.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import httpx
from jose import JWTError, jwt as jose_jwt
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.user import user_crud
from app.models.identity import UserIdentity
from app.utils.datetime_utils import utc_now
from app.utils.logging_utils import redact_email

logger = logging.getLogger(__name__)

_JWKS_TTL = timedelta(hours=1)


class OIDCVerifier:
    """Resolve hosted-provider tokens to Tenant Hub user IDs."""

    def __init__(
        self,
        issuer: str,
        client_id: str,
        provider_name: str = "oidc",
        auto_provision: bool = True,
    ) -> None:
        self.issuer = issuer
        self.client_id = client_id
        self.provider_name = provider_name
        self.auto_provision = auto_provision
        self._jwks: Optional[dict] = None
        self._jwks_fetched_at: Optional[datetime] = None

    def issued(self, token: str) -> bool:
        """True when the token's unverified ``iss`` is our issuer."""
        try:
            claims = jose_jwt.get_unverified_claims(token)
        except JWTError:
            return False
        return claims.get("iss") == self.issuer

    async def resolve_user_id(self, db: AsyncSession, token: str) -> Optional[UUID]:
        """Verify the token and return the linked user ID, or None if rejected."""
        try:
            claims = jose_jwt.decode(
                token,
                await self._signing_keys(),
                algorithms=["RS256"],
                audience=self.client_id,
                issuer=self.issuer,
            )
        except JWTError as exc:
            logger.debug("OIDC token rejected: %s", exc)
            return None
        except httpx.HTTPError as exc:
            logger.warning("JWKS fetch from %s failed: %s", self.issuer, exc)
            return None

        subject = claims.get("sub")
        if not subject:
            return None

        link = await self._find_link(db, subject)
        if link is not None:
            link.last_seen_at = utc_now()
            await db.commit()
            return link.user_id

        email = claims.get("email") or ""
        if not self.auto_provision or not email:
            logger.warning(
                "OIDC subject %s is not linked to a user and cannot be provisioned", subject
            )
            return None
        return await self._link_user(db, subject, email)

    async def _signing_keys(self) -> dict:
        now = datetime.now(tz=timezone.utc)
        if self._jwks is not None and now - self._jwks_fetched_at < _JWKS_TTL:
            return self._jwks

        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(f"{self.issuer.rstrip('/')}/.well-known/jwks.json")
            response.raise_for_status()
        self._jwks = response.json()
        self._jwks_fetched_at = now
        return self._jwks

    async def _find_link(self, db: AsyncSession, subject: str) -> Optional[UserIdentity]:
        result = await db.execute(
            select(UserIdentity).where(
                UserIdentity.provider == self.provider_name,
                UserIdentity.provider_subject == subject,
            )
        )
        return result.scalar_one_or_none()

    async def _link_user(self, db: AsyncSession, subject: str, email: str) -> Optional[UUID]:
        """Attach the subject to the user with this email, creating the user if needed."""
        try:
            user = await user_crud.get_by_email(db, email)
            if user is None:
                user = await user_crud.create(db, email=email)
            db.add(
                UserIdentity(
                    user_id=user.id,
                    provider=self.provider_name,
                    provider_subject=subject,
                    provider_email=email,
                    last_seen_at=utc_now(),
                )
            )
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Could not link OIDC subject %s", subject)
            return None

        logger.info("Linked OIDC subject %s to user %s (%s)", subject, user.id, redact_email(email))
        return user.id
