"""Pydantic models for book and reading-progress endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# --- Catalog ---


class CategoryResponse(BaseModel):
    id: int
    name: str


class AddBookRequest(BaseModel):
    title: str = Field(..., max_length=256)
    author: str = Field(..., max_length=256)
    total_pages: int
    category_id: int


class AddBookResponse(BaseModel):
    message: str
    book_id: int
    user_book_id: int


# --- Reading list ---


class UserBookResponse(BaseModel):
    user_book_id: int
    book_id: int
    title: str
    author: str
    category: str
    status: str
    pages_read: int
    total_pages: int
    points_earned: int
    progress: int
    started_at: datetime | None = None
    completed_at: datetime | None = None


class CompletedBooksResponse(BaseModel):
    books: list[UserBookResponse]


# --- Progress ---


class ProgressUpdateRequest(BaseModel):
    user_book_id: int
    pages_read: int


class CompleteBookRequest(BaseModel):
    user_book_id: int


class ProgressResponse(BaseModel):
    message: str
    new_progress_percentage: int
    points_earned: int
    status: str
    completed: bool
    new_level: int | None = None
    level_up: bool = False
    newly_unlocked_badges: list[str] = Field(default_factory=list)
    badge_check_pending: bool = False


class CompletionResponse(BaseModel):
    message: str
    points_earned: int
    new_level: int | None = None
    level_up: bool = False
    newly_unlocked_badges: list[str] = Field(default_factory=list)
    badge_check_pending: bool = False
