"""Authentication router — all /api/v1/auth/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.auth.dependencies import get_current_user
from bookquest.auth.jwt import create_access_token
from bookquest.auth.schemas import (
    LoginRequest,
    RegisterRequest,
    SessionResponse,
    TokenResponse,
    UserResponse,
)
from bookquest.auth.service import authenticate_user, register_user
from bookquest.config import get_settings
from bookquest.database import get_session
from bookquest.db.models import User

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def user_response(user: User) -> UserResponse:
    """Build a UserResponse from a User model."""
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        total_points=user.total_points,
        current_level=user.current_level,
        books_read_count=user.books_read_count,
        created_at=user.created_at,
    )


def _issue_token(user: User) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user.id, user.email, user.name),
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=user_response(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Register with name + email + password."""
    user = await register_user(db, name=body.name, email=body.email, password=body.password)
    await db.commit()
    return _issue_token(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Login with email + password."""
    user = await authenticate_user(db, body.email, body.password)
    await db.commit()
    return _issue_token(user)


@router.get("/session", response_model=SessionResponse)
async def session(user: User = Depends(get_current_user)) -> SessionResponse:
    """Return the authenticated user behind the bearer token."""
    return SessionResponse(is_authenticated=True, user=user_response(user))
