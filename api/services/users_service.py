"""User accounts: registration, login and admin management."""

import asyncio

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import create_access_token, hash_password, verify_password
from core.logger import get_logger
from core.wide_event import set_wide_event_fields
from models import User, UserRole
from repositories.user_repository import UserRepository
from schemas import RegisterRequest, TokenResponse, UserResponse

logger = get_logger(__name__)


class UserAlreadyExistsError(Exception):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Username or email already registered: {username}")


class InvalidCredentialsError(Exception):
    def __init__(self):
        super().__init__("Invalid username or password")


class UserNotFoundError(Exception):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


def normalize_username(username: str) -> str:
    """Usernames are case-insensitive; store and compare lowercase."""
    return username.strip().lower()


def to_user_response(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


async def register_user(
    db: AsyncSession,
    request: RegisterRequest,
    role: UserRole = UserRole.USER,
) -> User:
    """Create an account.

    Raises:
        UserAlreadyExistsError: username or email taken.
    """
    username = normalize_username(request.username)
    email = request.email.lower()
    repo = UserRepository(db)

    if await repo.exists_with_username_or_email(username, email):
        raise UserAlreadyExistsError(username)

    password_hash = await asyncio.to_thread(hash_password, request.password)
    try:
        user = await repo.create(username, email, password_hash, role=role)
    except IntegrityError as e:
        raise UserAlreadyExistsError(username) from e

    logger.info("user.registered", user_id=user.id, role=role.value)
    set_wide_event_fields(user_id=user.id)
    return user


async def login(db: AsyncSession, username: str, password: str) -> TokenResponse:
    """Exchange credentials for a bearer token.

    Raises:
        InvalidCredentialsError: unknown user or wrong password.
    """
    user = await UserRepository(db).get_by_username(normalize_username(username))
    if user is None:
        raise InvalidCredentialsError()

    valid = await asyncio.to_thread(verify_password, password, user.password_hash)
    if not valid:
        logger.warning("auth.login.failed", user_id=user.id)
        raise InvalidCredentialsError()

    token, expires_in = create_access_token(user.id, user.role)
    logger.info("auth.login.succeeded", user_id=user.id)
    return TokenResponse(access_token=token, expires_in=expires_in)


async def remove_user(db: AsyncSession, user_id: str) -> None:
    """Raises UserNotFoundError if the account does not exist."""
    repo = UserRepository(db)
    user = await repo.get_by_id(user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    await repo.delete(user)
    logger.info("user.removed", user_id=user_id)
