"""Account and token routes.

Handles:
- POST /auth/register: create a regular account
- POST /auth/login: exchange credentials for a bearer token
- GET /auth/me: the authenticated account
- POST /auth/register-admin: create an admin account (admin only)
- DELETE /auth/users/{user_id}: remove an account (admin only)
"""

from fastapi import APIRouter, HTTPException, Request
from starlette import status

from core.auth import AdminUser, CurrentUser
from core.database import DbSession
from core.logger import get_logger
from core.ratelimit import AUTH_LIMIT, limiter
from models import UserRole
from schemas import (
    ErrorResponse,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from services.users_service import (
    InvalidCredentialsError,
    UserAlreadyExistsError,
    UserNotFoundError,
    login,
    register_user,
    remove_user,
    to_user_response,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse, "description": "Account exists"}},
)
@limiter.limit(AUTH_LIMIT)
async def register(
    request: Request, body: RegisterRequest, db: DbSession
) -> UserResponse:
    try:
        user = await register_user(db, body)
    except UserAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return to_user_response(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={401: {"model": ErrorResponse, "description": "Bad credentials"}},
)
@limiter.limit(AUTH_LIMIT)
async def login_route(
    request: Request, body: LoginRequest, db: DbSession
) -> TokenResponse:
    """Exchange username and password for a bearer token."""
    try:
        return await login(db, body.username, body.password)
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


@router.get("/me", response_model=UserResponse)
async def me(user: CurrentUser) -> UserResponse:
    return to_user_response(user)


@router.post(
    "/register-admin",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin role required"},
        409: {"model": ErrorResponse, "description": "Account exists"},
    },
)
@limiter.limit(AUTH_LIMIT)
async def register_admin(
    request: Request, body: RegisterRequest, db: DbSession, admin: AdminUser
) -> UserResponse:
    try:
        user = await register_user(db, body, role=UserRole.ADMIN)
    except UserAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    logger.info("user.admin_created", user_id=user.id, created_by=admin.id)
    return to_user_response(user)


@router.delete(
    "/users/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin role required"},
        404: {"model": ErrorResponse, "description": "No such account"},
    },
)
async def delete_user(user_id: str, db: DbSession, admin: AdminUser) -> None:
    try:
        await remove_user(db, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
