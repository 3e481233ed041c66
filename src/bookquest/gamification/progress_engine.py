"""Progress engine — reading progress, completion, points and level-up.

A completion is one transaction: the UserBook flip to completed, the user's
point and book totals, and the level change commit together. Badge evaluation
runs afterwards in its own transaction; it is idempotent, so a failure there
only defers unlocks to the next check.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.db.models import STATUS_COMPLETED, User, UserBook
from bookquest.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from bookquest.gamification.badge_evaluator import evaluate_badges
from bookquest.gamification.level_rules import level_for, points_for_pages

logger = structlog.get_logger()


@dataclass
class ProgressResult:
    """Outcome of a progress update or an explicit completion."""

    new_progress_percentage: int
    points_earned: int
    status: str
    completed_now: bool = False
    new_level: int | None = None
    level_up: bool = False
    newly_unlocked_badges: list[str] = field(default_factory=list)
    badge_check_pending: bool = False


def progress_percentage(pages_read: int, total_pages: int) -> int:
    """Completion percentage, rounded half up and capped at 100.

    A book without pages reports 0.
    """
    if total_pages <= 0:
        return 0
    rounded = (pages_read * 200 + total_pages) // (2 * total_pages)
    return min(100, rounded)


@asynccontextmanager
async def _transaction(db: AsyncSession, event: str, **context: object) -> AsyncIterator[None]:
    """Roll back on any failure; storage failures surface as PersistenceError."""
    try:
        yield
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(event, error=str(e), **context)
        msg = "Could not save reading progress"
        raise PersistenceError(msg) from e
    except Exception:
        await db.rollback()
        raise


async def _lock_user_book(db: AsyncSession, user_id: int, user_book_id: int) -> UserBook:
    """Load the caller's UserBook with a row lock. NotFoundError otherwise."""
    result = await db.execute(
        select(UserBook)
        .where(UserBook.id == user_book_id, UserBook.user_id == user_id)
        .with_for_update(of=UserBook)
        .execution_options(populate_existing=True)
    )
    user_book = result.unique().scalar_one_or_none()
    if user_book is None:
        msg = "Reading record not found for this user"
        raise NotFoundError(msg)
    return user_book


async def _lock_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return user


@dataclass(frozen=True)
class _Completion:
    user_id: int
    user_book_id: int
    total_pages: int
    points: int
    old_level: int
    new_level: int


async def _apply_completion(db: AsyncSession, user_book: UserBook, now: datetime) -> _Completion:
    """Flip the record to completed and credit the owner. Caller commits."""
    total_pages = user_book.book.total_pages
    points = points_for_pages(total_pages)

    user_book.status = STATUS_COMPLETED
    user_book.pages_read = total_pages
    user_book.progress_percentage = 100
    user_book.points_earned = points
    user_book.completed_at = now
    user_book.updated_at = now

    user = await _lock_user(db, user_book.user_id)
    old_level = user.current_level
    user.total_points += points
    user.books_read_count += 1
    user.current_level = level_for(user.total_points, old_level)
    user.updated_at = now

    await db.flush()
    return _Completion(
        user_id=user.id,
        user_book_id=user_book.id,
        total_pages=total_pages,
        points=points,
        old_level=old_level,
        new_level=user.current_level,
    )


async def _after_completion(db: AsyncSession, redis: object, completion: _Completion) -> ProgressResult:
    """Log, announce level-up, and run badge evaluation after the commit."""
    user_id = completion.user_id
    leveled_up = completion.new_level > completion.old_level
    logger.info(
        "book_completed",
        user_id=user_id,
        user_book_id=completion.user_book_id,
        total_pages=completion.total_pages,
        points_earned=completion.points,
    )
    if leveled_up:
        logger.info("level_up", user_id=user_id, old_level=completion.old_level, new_level=completion.new_level)
        await _publish_level_up(redis, user_id, completion.old_level, completion.new_level)

    result = ProgressResult(
        new_progress_percentage=100,
        points_earned=completion.points,
        status=STATUS_COMPLETED,
        completed_now=True,
        new_level=completion.new_level,
        level_up=leveled_up,
    )
    try:
        result.newly_unlocked_badges = await evaluate_badges(db, user_id, redis)
    except PersistenceError:
        logger.warning("badge_check_deferred", user_id=user_id, user_book_id=completion.user_book_id)
        result.badge_check_pending = True
    return result


async def update_progress(
    db: AsyncSession,
    user_id: int,
    user_book_id: int,
    pages_read: int,
    redis: object = None,
) -> ProgressResult:
    """Record pages read; completes the book when progress reaches 100%.

    Completed records are immutable: a later update writes nothing and
    returns the stored progress and points.

    Raises:
        ValidationError: If ``pages_read`` is negative.
        NotFoundError: If the record does not exist or belongs to another user.
        PersistenceError: If the database fails; nothing is written.
    """
    if pages_read is None or pages_read < 0:
        msg = "pages_read must be a non-negative integer"
        raise ValidationError(msg)

    now = datetime.now(timezone.utc)
    async with _transaction(db, "progress_update_failed", user_id=user_id, user_book_id=user_book_id):
        user_book = await _lock_user_book(db, user_id, user_book_id)

        if user_book.status == STATUS_COMPLETED:
            unchanged = ProgressResult(
                new_progress_percentage=user_book.progress_percentage,
                points_earned=user_book.points_earned,
                status=user_book.status,
            )
            await db.commit()
            logger.debug("progress_update_ignored", user_id=user_id, user_book_id=user_book_id)
            return unchanged

        percentage = progress_percentage(pages_read, user_book.book.total_pages)
        if percentage < 100:
            user_book.pages_read = pages_read
            user_book.progress_percentage = percentage
            user_book.updated_at = now
            await db.commit()
            return ProgressResult(
                new_progress_percentage=percentage,
                points_earned=user_book.points_earned,
                status=user_book.status,
            )

        completion = await _apply_completion(db, user_book, now)
        await db.commit()

    return await _after_completion(db, redis, completion)


async def mark_complete(
    db: AsyncSession,
    user_id: int,
    user_book_id: int,
    redis: object = None,
) -> ProgressResult:
    """Complete a book regardless of its current progress.

    Raises:
        NotFoundError: If the record does not exist or belongs to another user.
        ConflictError: If the book is already completed; nothing changes.
        PersistenceError: If the database fails; nothing is written.
    """
    now = datetime.now(timezone.utc)
    async with _transaction(db, "mark_complete_failed", user_id=user_id, user_book_id=user_book_id):
        user_book = await _lock_user_book(db, user_id, user_book_id)
        if user_book.status == STATUS_COMPLETED:
            msg = "This book is already completed"
            raise ConflictError(msg)

        completion = await _apply_completion(db, user_book, now)
        await db.commit()

    return await _after_completion(db, redis, completion)


async def _publish_level_up(redis: object, user_id: int, old_level: int, new_level: int) -> None:
    """Broadcast a level-up on Redis pub/sub for live clients."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            "pubsub:level_up",
            json.dumps({
                "user_id": user_id,
                "old_level": old_level,
                "new_level": new_level,
            }),
        )
    except Exception:
        logger.warning("level_up_publish_failed", user_id=user_id, exc_info=True)
