"""Book catalog and reading-list queries."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.db.models import STATUS_COMPLETED, STATUS_READING, Book, Category, UserBook
from bookquest.errors import NotFoundError, ValidationError

logger = structlog.get_logger()

# Bounded well below the INTEGER column limit.
MAX_BOOK_PAGES = 100_000


async def list_categories(db: AsyncSession) -> list[Category]:
    """All categories, alphabetically."""
    result = await db.execute(select(Category).order_by(Category.name.asc()))
    return list(result.scalars().all())


async def add_book(
    db: AsyncSession,
    user_id: int,
    title: str,
    author: str,
    total_pages: int,
    category_id: int,
) -> UserBook:
    """Create a catalog book and start the user's reading record on it.

    Raises:
        ValidationError: If title or author is blank, or total_pages is
            outside 1..MAX_BOOK_PAGES.
        NotFoundError: If the category does not exist.
    """
    title = (title or "").strip()
    author = (author or "").strip()
    if not title or not author:
        msg = "Title and author are required"
        raise ValidationError(msg)
    if total_pages is None or not 1 <= total_pages <= MAX_BOOK_PAGES:
        msg = f"total_pages must be between 1 and {MAX_BOOK_PAGES}"
        raise ValidationError(msg)

    category = await db.get(Category, category_id)
    if category is None:
        msg = "Category not found"
        raise NotFoundError(msg)

    now = datetime.now(timezone.utc)
    book = Book(
        title=title,
        author=author,
        total_pages=total_pages,
        category_id=category.id,
        created_at=now,
    )
    db.add(book)
    await db.flush()

    user_book = UserBook(
        user_id=user_id,
        book_id=book.id,
        status=STATUS_READING,
        pages_read=0,
        progress_percentage=0,
        points_earned=0,
        started_at=now,
        updated_at=now,
    )
    user_book.book = book
    db.add(user_book)
    await db.flush()

    logger.info("book_added", user_id=user_id, book_id=book.id, user_book_id=user_book.id, total_pages=total_pages)
    return user_book


async def list_in_progress_books(db: AsyncSession, user_id: int) -> list[UserBook]:
    """The user's books that are not completed, most recently started first."""
    result = await db.execute(
        select(UserBook)
        .where(UserBook.user_id == user_id, UserBook.status != STATUS_COMPLETED)
        .order_by(UserBook.started_at.desc(), UserBook.id.desc())
    )
    return list(result.unique().scalars().all())


async def list_completed_books(db: AsyncSession, user_id: int) -> list[UserBook]:
    """The user's completed books, most recently completed first."""
    result = await db.execute(
        select(UserBook)
        .where(UserBook.user_id == user_id, UserBook.status == STATUS_COMPLETED)
        .order_by(UserBook.completed_at.desc(), UserBook.id.desc())
    )
    return list(result.unique().scalars().all())
