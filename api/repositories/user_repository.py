"""User repository for database operations."""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import User, UserRole
from repositories.utils import log_slow_query


class UserRepository:
    """Repository for User database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @log_slow_query("get_user_by_id")
    async def get_by_id(self, user_id: str) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @log_slow_query("get_user_by_username")
    async def get_by_username(self, username: str) -> User | None:
        """Expects username to be pre-normalized (lowercase) by service layer."""
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def exists_with_username_or_email(self, username: str, email: str) -> bool:
        result = await self.db.execute(
            select(User.id).where(or_(User.username == username, User.email == email))
        )
        return result.first() is not None

    async def create(
        self,
        username: str,
        email: str,
        password_hash: str,
        role: UserRole = UserRole.USER,
    ) -> User:
        """Insert a user and flush. Does NOT commit."""
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            role=role,
        )
        self.db.add(user)
        await self.db.flush()
        return user

    async def delete(self, user: User) -> None:
        await self.db.delete(user)
        await self.db.flush()
