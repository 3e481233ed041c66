"""Book and reading-progress endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.auth.dependencies import get_current_user
from bookquest.books.schemas import (
    AddBookRequest,
    AddBookResponse,
    CategoryResponse,
    CompleteBookRequest,
    CompletedBooksResponse,
    CompletionResponse,
    ProgressResponse,
    ProgressUpdateRequest,
    UserBookResponse,
)
from bookquest.books.service import add_book, list_categories, list_completed_books
from bookquest.database import get_session
from bookquest.db.models import User, UserBook
from bookquest.gamification.progress_engine import mark_complete, update_progress
from bookquest.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1", tags=["Books"])


def user_book_response(user_book: UserBook) -> UserBookResponse:
    """Flatten a UserBook and its catalog entry for the API."""
    book = user_book.book
    return UserBookResponse(
        user_book_id=user_book.id,
        book_id=book.id,
        title=book.title,
        author=book.author,
        category=book.category.name,
        status=user_book.status,
        pages_read=user_book.pages_read,
        total_pages=book.total_pages,
        points_earned=user_book.points_earned,
        progress=user_book.progress_percentage,
        started_at=user_book.started_at,
        completed_at=user_book.completed_at,
    )


@router.get("/categories", response_model=list[CategoryResponse])
async def get_categories(db: AsyncSession = Depends(get_session)):
    """All book categories."""
    categories = await list_categories(db)
    return [CategoryResponse(id=c.id, name=c.name) for c in categories]


@router.post("/books", response_model=AddBookResponse, status_code=201)
async def create_book(
    body: AddBookRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Add a book to the catalog and start reading it."""
    user_book = await add_book(
        db,
        user_id=user.id,
        title=body.title,
        author=body.author,
        total_pages=body.total_pages,
        category_id=body.category_id,
    )
    await db.commit()
    return AddBookResponse(message="Book added", book_id=user_book.book_id, user_book_id=user_book.id)


@router.put("/users/me/books/progress", response_model=ProgressResponse)
async def put_progress(
    body: ProgressUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Record pages read. Reaching 100% completes the book and awards points."""
    result = await update_progress(
        db,
        user_id=user.id,
        user_book_id=body.user_book_id,
        pages_read=body.pages_read,
        redis=get_optional_redis(),
    )
    message = "Book completed and points awarded" if result.completed_now else "Progress updated"
    return ProgressResponse(
        message=message,
        new_progress_percentage=result.new_progress_percentage,
        points_earned=result.points_earned,
        status=result.status,
        completed=result.completed_now,
        new_level=result.new_level,
        level_up=result.level_up,
        newly_unlocked_badges=result.newly_unlocked_badges,
        badge_check_pending=result.badge_check_pending,
    )


@router.put("/users/me/books/complete", response_model=CompletionResponse)
async def put_complete(
    body: CompleteBookRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Mark a book as completed regardless of progress."""
    result = await mark_complete(
        db,
        user_id=user.id,
        user_book_id=body.user_book_id,
        redis=get_optional_redis(),
    )
    return CompletionResponse(
        message="Book marked as completed",
        points_earned=result.points_earned,
        new_level=result.new_level,
        level_up=result.level_up,
        newly_unlocked_badges=result.newly_unlocked_badges,
        badge_check_pending=result.badge_check_pending,
    )


@router.get("/users/me/books/completed", response_model=CompletedBooksResponse)
async def get_completed_books(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Completed books, most recent first."""
    books = await list_completed_books(db, user.id)
    return CompletedBooksResponse(books=[user_book_response(ub) for ub in books])
