"""UserIdentity model: links app users to external IdP subjects."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.db_types import UUID
from app.utils.datetime_utils import utc_now_lambda


class UserIdentity(Base):
    """One (provider, subject) pair a user can sign in with.

    Examples::

        provider="oidc",    provider_subject="user_2abc123"
        provider="builtin", provider_subject="<user_uuid>"
    """

    __tablename__ = "user_identities"

    id = Column(UUID, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    provider = Column(String(50), nullable=False)
    # The IdP's stable subject identifier (sub claim)
    provider_subject = Column(String(255), nullable=False)
    provider_email = Column(String(255), nullable=True)

    linked_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    last_seen_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="identities")

    __table_args__ = (
        UniqueConstraint(
            "provider",
            "provider_subject",
            name="uq_user_identities_provider_subject",
        ),
    )

    def __repr__(self) -> str:
        return f"<UserIdentity provider={self.provider!r} subject={self.provider_subject!r}>"
