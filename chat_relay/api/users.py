"""
User endpoints: registration, login and the protected user listing.
"""

import structlog
from fastapi import APIRouter, Depends, status

from ..history.models import UserSummary
from ..history.repositories.sql_repo import AsyncSqlRepo
from .dependencies import get_repository, require_access
from .schemas import AuthResponse, LoginRequest, RegisterRequest

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["users"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: RegisterRequest,
    repo: AsyncSqlRepo = Depends(get_repository),
) -> AuthResponse:
    """Create an account; 409 when the email is taken."""
    user_id = await repo.register_user(
        request.email, request.password, request.profile()
    )
    logger.info("User registered", user_id=user_id)
    return AuthResponse(message="User registered successfully.", userID=user_id)


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    repo: AsyncSqlRepo = Depends(get_repository),
) -> AuthResponse:
    user_id = await repo.authenticate(request.email, request.password)
    logger.info("User logged in", user_id=user_id)
    return AuthResponse(message="Login successful.", userID=user_id)


@router.get(
    "/api/all-users",
    response_model=list[UserSummary],
    dependencies=[Depends(require_access)],
)
async def list_users(
    repo: AsyncSqlRepo = Depends(get_repository),
) -> list[UserSummary]:
    return await repo.list_users()
