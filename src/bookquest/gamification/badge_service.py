"""Badge catalog and earned-badge queries."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.db.models import Badge, UserBadge


async def get_badge_by_slug(db: AsyncSession, slug: str) -> Badge | None:
    """Fetch a badge definition by slug."""
    result = await db.execute(select(Badge).where(Badge.slug == slug))
    return result.scalar_one_or_none()


async def list_active_badges(db: AsyncSession) -> list[Badge]:
    """Active badges in catalog order."""
    result = await db.execute(
        select(Badge)
        .where(Badge.is_active.is_(True))
        .order_by(Badge.sort_order, Badge.id)
    )
    return list(result.scalars().all())


async def count_active_badges(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count()).select_from(Badge).where(Badge.is_active.is_(True))
    )
    return result.scalar_one()


async def has_badge(db: AsyncSession, user_id: int, badge_id: int) -> bool:
    """Check if user already has a specific badge."""
    result = await db.execute(
        select(UserBadge.id).where(
            UserBadge.user_id == user_id,
            UserBadge.badge_id == badge_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def get_earned_badges(db: AsyncSession, user_id: int) -> list[UserBadge]:
    """Badges earned by a user, most recent first."""
    result = await db.execute(
        select(UserBadge)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.desc(), UserBadge.id.desc())
    )
    return list(result.scalars().all())
