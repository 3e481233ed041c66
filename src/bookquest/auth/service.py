"""
Authentication business logic.

Handles user creation, credential checks and password changes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from bookquest.auth.password import (
    hash_password,
    upgraded_hash,
    validate_password_strength,
    verify_password,
)
from bookquest.db.models import User
from bookquest.errors import AuthenticationError, ConflictError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_user(db: AsyncSession, name: str, email: str, password: str) -> User:
    """
    Register a new reader with email + password.

    Raises:
        ValidationError: If the name is blank or the password is weak.
        ConflictError: If the email is already registered.
    """
    if not name or not name.strip():
        msg = "Name is required"
        raise ValidationError(msg)
    validate_password_strength(password)

    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise ConflictError(msg)

    now = datetime.now(timezone.utc)
    user = User(
        name=name.strip(),
        email=email.lower().strip(),
        password_hash=hash_password(password),
        total_points=0,
        current_level=1,
        books_read_count=0,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, email=user.email)
    return user


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    """
    Authenticate a user with email + password.

    Raises:
        AuthenticationError: If credentials are invalid.
    """
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        msg = "Invalid email or password"
        raise AuthenticationError(msg)

    new_hash = upgraded_hash(password, user.password_hash)
    if new_hash is not None:
        user.password_hash = new_hash
        await db.flush()
        logger.info("password_rehashed", user_id=user.id)

    return user


# ---------------------------------------------------------------------------
# Password change
# ---------------------------------------------------------------------------


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    """
    Replace the user's password after checking the current one.

    Raises:
        AuthenticationError: If ``current_password`` is wrong.
        ValidationError: If the new password is weak.
    """
    if not verify_password(current_password, user.password_hash):
        msg = "Current password is incorrect"
        raise AuthenticationError(msg)
    validate_password_strength(new_password)

    user.password_hash = hash_password(new_password)
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("password_changed", user_id=user.id)
