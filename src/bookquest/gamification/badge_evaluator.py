"""Badge evaluator — unlocks catalog badges against a reader's stats."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.db.models import STATUS_COMPLETED, Badge, Book, User, UserBadge, UserBook
from bookquest.errors import NotFoundError, PersistenceError
from bookquest.gamification.badge_service import list_active_badges

logger = structlog.get_logger()


class BadgeKind(Enum):
    """Badge rules known to the evaluator, keyed by catalog slug."""

    PREMIERE_LECTURE = "premiere-lecture"
    LECTEUR_ASSIDUE = "lecteur-assidue"
    BIBLIOPHILE = "bibliophile"
    MARATHON_LECTURE = "marathon-lecture"
    DEVOREUR_PAVES = "devoreur-paves"
    NIVEAU_EXPERT = "niveau-expert"


@dataclass(frozen=True)
class ReaderStats:
    """Aggregate stats a badge rule may look at."""

    books_read_count: int
    current_level: int
    longest_completed_book: int = 0


BADGE_RULES: dict[BadgeKind, Callable[[ReaderStats], bool]] = {
    BadgeKind.PREMIERE_LECTURE: lambda s: s.books_read_count >= 1,
    BadgeKind.LECTEUR_ASSIDUE: lambda s: s.books_read_count >= 5,
    BadgeKind.BIBLIOPHILE: lambda s: s.books_read_count >= 20,
    BadgeKind.MARATHON_LECTURE: lambda s: s.longest_completed_book > 300,
    BadgeKind.DEVOREUR_PAVES: lambda s: s.longest_completed_book > 500,
    BadgeKind.NIVEAU_EXPERT: lambda s: s.current_level >= 5,
}


def badge_kind(slug: str) -> BadgeKind | None:
    """Map a catalog slug to its rule kind, or None for unknown slugs."""
    try:
        return BadgeKind(slug)
    except ValueError:
        return None


def badge_qualifies(slug: str, stats: ReaderStats) -> bool:
    """True if the badge identified by ``slug`` unlocks for ``stats``.

    Unknown slugs never unlock.
    """
    kind = badge_kind(slug)
    if kind is None:
        return False
    return BADGE_RULES[kind](stats)


async def load_reader_stats(db: AsyncSession, user: User) -> ReaderStats:
    """Build ReaderStats from the user row and their completed books."""
    result = await db.execute(
        select(func.max(Book.total_pages))
        .select_from(UserBook)
        .join(Book, UserBook.book_id == Book.id)
        .where(
            UserBook.user_id == user.id,
            UserBook.status == STATUS_COMPLETED,
        )
    )
    return ReaderStats(
        books_read_count=user.books_read_count,
        current_level=user.current_level,
        longest_completed_book=result.scalar() or 0,
    )


async def evaluate_badges(db: AsyncSession, user_id: int, redis: object = None) -> list[str]:
    """Unlock every active, unearned badge the user now qualifies for.

    Returns the names of newly unlocked badges in catalog order. Safe to call
    repeatedly: already-earned badges are skipped, and a concurrent insert of
    the same badge is absorbed by the UNIQUE(user_id, badge_id) constraint.

    Raises:
        NotFoundError: If the user does not exist.
        PersistenceError: If the database fails; the session is rolled back.
    """
    try:
        unlocked = await _evaluate(db, user_id)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("badge_evaluation_failed", user_id=user_id, error=str(e))
        msg = "Badge evaluation failed"
        raise PersistenceError(msg) from e

    for badge in unlocked:
        logger.info("badge_unlocked", user_id=user_id, badge_slug=badge.slug)
        await _publish_badge_unlocked(redis, user_id, badge)

    return [badge.name for badge in unlocked]


async def _evaluate(db: AsyncSession, user_id: int) -> list[Badge]:
    user = (
        await db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)

    badges = await list_active_badges(db)
    earned_ids = set(
        (await db.execute(select(UserBadge.badge_id).where(UserBadge.user_id == user_id))).scalars()
    )
    pending = [badge for badge in badges if badge.id not in earned_ids]
    if not pending:
        return []

    stats = await load_reader_stats(db, user)
    now = datetime.now(timezone.utc)
    unlocked: list[Badge] = []

    for badge in pending:
        if not badge_qualifies(badge.slug, stats):
            continue
        if await _insert_user_badge(db, user_id, badge, now):
            unlocked.append(badge)

    await db.commit()
    return unlocked


async def _insert_user_badge(db: AsyncSession, user_id: int, badge: Badge, now: datetime) -> bool:
    """Insert the unlock row inside a savepoint. False if it already exists."""
    try:
        async with db.begin_nested():
            db.add(UserBadge(user_id=user_id, badge_id=badge.id, earned_at=now))
    except IntegrityError:
        logger.info("badge_unlock_race", user_id=user_id, badge_slug=badge.slug)
        return False
    return True


async def _publish_badge_unlocked(redis: object, user_id: int, badge: Badge) -> None:
    """Broadcast a badge unlock on Redis pub/sub for live clients."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            "pubsub:badge_unlocked",
            json.dumps({
                "user_id": user_id,
                "badge_slug": badge.slug,
                "badge_name": badge.name,
            }),
        )
    except Exception:
        logger.warning("badge_unlocked_publish_failed", user_id=user_id, exc_info=True)
