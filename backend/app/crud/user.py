"""CRUD operations for users."""

from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User


class UserCRUD:
    """CRUD operations for User model."""

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
        """Get user by email (case-insensitive)."""
        result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: UUID) -> Optional[User]:
        """Get user by ID."""
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_many(db: AsyncSession, user_ids: Iterable[UUID]) -> dict[UUID, User]:
        """Fetch users by ID in one query, keyed by ID."""
        ids = set(user_ids)
        if not ids:
            return {}
        result = await db.execute(select(User).where(User.id.in_(ids)))
        return {u.id: u for u in result.scalars().all()}

    @staticmethod
    async def create(
        db: AsyncSession,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        is_super_user: bool = False,
    ) -> User:
        """Create a new user (no commit)."""
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            is_super_user=is_super_user,
        )
        db.add(user)
        await db.flush()
        return user


user_crud = UserCRUD()
