"""Account settings and account deletion."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.db.models import User, UserBadge, UserBook
from bookquest.errors import ConflictError, PersistenceError, ValidationError

logger = structlog.get_logger()


async def update_settings(db: AsyncSession, user: User, name: str, email: str) -> User:
    """
    Update display name and email.

    Raises:
        ValidationError: If the name is blank.
        ConflictError: If another account already uses ``email``.
    """
    name = name.strip()
    if not name:
        msg = "Name is required"
        raise ValidationError(msg)

    email = email.lower().strip()
    result = await db.execute(
        select(User.id).where(func.lower(User.email) == email, User.id != user.id)
    )
    if result.scalar_one_or_none() is not None:
        msg = "Email already registered"
        raise ConflictError(msg)

    user.name = name
    user.email = email
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()

    logger.info("settings_updated", user_id=user.id)
    return user


async def delete_account(db: AsyncSession, user_id: int) -> None:
    """
    Delete the user with their earned badges and reading records.

    All rows go in one transaction.

    Raises:
        PersistenceError: If the database fails; nothing is deleted.
    """
    try:
        await db.execute(delete(UserBadge).where(UserBadge.user_id == user_id))
        await db.execute(delete(UserBook).where(UserBook.user_id == user_id))
        await db.execute(delete(User).where(User.id == user_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("account_delete_failed", user_id=user_id, error=str(e))
        msg = "Could not delete account"
        raise PersistenceError(msg) from e

    logger.info("account_deleted", user_id=user_id)
