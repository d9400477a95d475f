"""Identity module repository implementations."""

from typing import Optional, List
from sqlmodel import select, or_
from portal.repository.base import BaseRepository
from .models import User, UserRole


class UserRepository(BaseRepository[User]):
    """User repository."""

    def __init__(self, session):
        super().__init__(session, User)

    async def get_by_email(self, email: str) -> Optional[User]:
        """Find user by email (stored lower-case)."""
        return await self.find_one(email=email.strip().lower())

    def list_statement(self, role: Optional[UserRole] = None):
        statement = select(User)
        if role is not None:
            statement = statement.where(User.role == role)
        return statement.order_by(User.created_at.desc(), User.id.desc())

    async def list_users(self, role: Optional[UserRole] = None, limit: int = 20, offset: int = 0) -> List[User]:
        result = await self.session.exec(self.list_statement(role).limit(limit).offset(offset))
        return list(result.all())

    async def count_users(self, role: Optional[UserRole] = None) -> int:
        return await self.count_statement(self.list_statement(role))

    async def search_verified_providers(self, query: Optional[str] = None, limit: int = 20) -> List[User]:
        statement = select(User).where(
            User.role == UserRole.PROVIDER,
            User.is_verified == True,  # noqa: E712
            User.is_active == True,  # noqa: E712
        )
        if query:
            pattern = f"%{query.strip()}%"
            statement = statement.where(or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.specialty.ilike(pattern),
                User.practice_name.ilike(pattern),
            ))
        result = await self.session.exec(statement.order_by(User.last_name, User.first_name).limit(limit))
        return list(result.all())
