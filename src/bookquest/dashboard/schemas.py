"""Pydantic response models for the dashboard endpoint."""

from __future__ import annotations

from pydantic import BaseModel

from bookquest.books.schemas import UserBookResponse
from bookquest.gamification.schemas import EarnedBadgeResponse


class DashboardStats(BaseModel):
    name: str
    total_points: int
    current_level: int
    books_read_count: int
    next_level: int | None = None
    next_level_points: int | None = None
    points_to_next_level: int = 0


class DashboardResponse(BaseModel):
    stats: DashboardStats
    books: list[UserBookResponse]
    badges: list[EarnedBadgeResponse]
