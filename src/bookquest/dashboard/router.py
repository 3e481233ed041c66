"""Dashboard endpoint — reward totals, reading list, badges."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.auth.dependencies import get_current_user
from bookquest.books.router import user_book_response
from bookquest.dashboard.schemas import DashboardResponse, DashboardStats
from bookquest.dashboard.service import get_dashboard
from bookquest.database import get_session
from bookquest.db.models import User
from bookquest.gamification.router import earned_badge_response

router = APIRouter(prefix="/api/v1/users/me", tags=["Dashboard"])


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> DashboardResponse:
    """Stats, in-progress books and earned badges for the current user."""
    data = await get_dashboard(db, user.id)
    current = data["user"]
    level = data["level"]
    return DashboardResponse(
        stats=DashboardStats(
            name=current.name,
            total_points=current.total_points,
            current_level=level["level"],
            books_read_count=current.books_read_count,
            next_level=level["next_level"],
            next_level_points=level["next_level_points"],
            points_to_next_level=level["points_to_next_level"],
        ),
        books=[user_book_response(ub) for ub in data["books"]],
        badges=[earned_badge_response(ub) for ub in data["badges"]],
    )
