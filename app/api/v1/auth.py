"""Authentication endpoints"""
import logging
import math
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.database import get_db
from app.core.rate_limit import RateLimitResult, check_rate_limit, get_client_identifier, reset_rate_limit
from app.core.security import verify_password, create_access_token
from app.schemas.user import (
    UserCreate,
    UserLogin,
    UserResponse,
    TokenResponse,
)
from app.services.user_service import UserService
from app.models.user import User

router = APIRouter()
logger = logging.getLogger(__name__)


def _too_many_requests(result: RateLimitResult) -> HTTPException:
    retry_after = max(1, math.ceil((result.retry_after_ms or 0) / 1000))
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Too many requests. Please try again later.",
        headers={"Retry-After": str(retry_after)},
    )


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    user_create: UserCreate,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Register new user"""
    limit = await check_rate_limit("register", get_client_identifier(request.headers))
    if not limit.success:
        raise _too_many_requests(limit)

    user_service = UserService(db)

    # Check if user already exists
    existing_user = await user_service.get_by_email(user_create.email)
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user = await user_service.create(user_create)
    await db.commit()

    logger.info(f"Registered user {user.id}")
    return user


@router.post("/login", response_model=TokenResponse)
async def login(
    user_login: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Login user and return an access token"""
    identifier = get_client_identifier(request.headers)
    limit = await check_rate_limit("login", identifier)
    if not limit.success:
        raise _too_many_requests(limit)

    user_service = UserService(db)

    user = await user_service.get_by_email(user_login.email)
    if not user or not verify_password(user_login.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    await user_service.update_last_login(user)
    await db.commit()

    await reset_rate_limit("login", identifier)

    return TokenResponse(access_token=create_access_token({"sub": user.id}))


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information"""
    return current_user
