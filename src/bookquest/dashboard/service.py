"""Dashboard aggregation.

Read-only: combines the user's reward totals, the books they are still
reading and the badges they have earned.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.books.service import list_in_progress_books
from bookquest.db.models import User
from bookquest.errors import NotFoundError
from bookquest.gamification.badge_service import get_earned_badges
from bookquest.gamification.level_rules import level_progress


async def get_dashboard(db: AsyncSession, user_id: int) -> dict:
    """Stats, in-progress books and earned badges for one user.

    Raises:
        NotFoundError: If the user does not exist.
    """
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)

    books = await list_in_progress_books(db, user_id)
    badges = await get_earned_badges(db, user_id)

    return {
        "user": user,
        "level": level_progress(user.total_points, user.current_level),
        "books": books,
        "badges": badges,
    }
