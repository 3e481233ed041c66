"""Shared test fixtures.

Tests run against a throwaway SQLite file and no Redis: event publishing and
rate limiting are skipped when Redis is not initialized.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

_DB_DIR = tempfile.mkdtemp(prefix="bookquest_test_")
os.environ["BQ_DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["BQ_SEED_CATALOG_ON_STARTUP"] = "false"
os.environ["BQ_JWT_SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["BQ_LOG_FORMAT"] = "console"

from bookquest.config import get_settings  # noqa: E402
from bookquest.database import close_db, get_engine, get_session, init_db  # noqa: E402
from bookquest.db.base import Base  # noqa: E402
from bookquest.db.models import Book, Category, User, UserBook  # noqa: E402
from bookquest.gamification.seed import seed_badges, seed_categories  # noqa: E402
from bookquest.main import create_app  # noqa: E402

get_settings.cache_clear()

READER_PASSWORD = "ReadingIsFun1"


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Fresh schema with the seeded badge and category catalog."""
    settings = get_settings()
    await init_db(settings.database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async for session in get_session():
        await seed_badges(session)
        await seed_categories(session)
        break

    yield

    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for service calls and assertions."""
    async for session in get_session():
        yield session
        break


@pytest_asyncio.fixture
async def client(database: None) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app. Lifespan is not run."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _register(client: AsyncClient, email: str = "reader@example.com", name: str = "Camille") -> dict:
    """Register through the API and return the token response body."""
    response = await client.post("/api/v1/auth/register", json={
        "name": name,
        "email": email,
        "password": READER_PASSWORD,
    })
    assert response.status_code == 201, response.text
    return response.json()


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient) -> AsyncClient:
    """Client carrying a bearer token for a freshly registered reader."""
    data = await _register(client)
    client.headers["Authorization"] = f"Bearer {data['access_token']}"
    return client


@pytest_asyncio.fixture
async def category_id(db_session: AsyncSession) -> int:
    result = await db_session.execute(select(Category.id).order_by(Category.id).limit(1))
    return result.scalar_one()


@pytest_asyncio.fixture
async def reader(db_session: AsyncSession) -> User:
    """A reader with no points, created directly in the database."""
    user = User(name="Camille", email="camille@example.com", password_hash="not-a-real-hash")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def make_user_book(
    db_session: AsyncSession, category_id: int
) -> Callable[..., Awaitable[UserBook]]:
    """Factory: start a book of ``total_pages`` for a user."""

    async def _make(user_id: int, total_pages: int, title: str = "Le Petit Prince") -> UserBook:
        book = Book(title=title, author="Antoine de Saint-Exupéry", total_pages=total_pages, category_id=category_id)
        db_session.add(book)
        await db_session.flush()
        user_book = UserBook(user_id=user_id, book_id=book.id)
        user_book.book = book
        db_session.add(user_book)
        await db_session.commit()
        return user_book

    return _make


@pytest_asyncio.fixture
async def add_book_via_api(
    authed_client: AsyncClient, category_id: int
) -> Callable[..., Awaitable[int]]:
    """Factory: add a book through the API and return its user_book_id."""

    async def _add(total_pages: int, title: str = "Les Misérables") -> int:
        response = await authed_client.post("/api/v1/books", json={
            "title": title,
            "author": "Victor Hugo",
            "total_pages": total_pages,
            "category_id": category_id,
        })
        assert response.status_code == 201, response.text
        return response.json()["user_book_id"]

    return _add


@pytest_asyncio.fixture
async def register_reader(client: AsyncClient) -> Callable[..., Awaitable[dict]]:
    """Factory: register a reader through the API, returning the token body."""

    async def _register_with(email: str = "reader@example.com", name: str = "Camille") -> dict:
        return await _register(client, email=email, name=name)

    return _register_with


@pytest.fixture
def reader_password() -> str:
    return READER_PASSWORD
