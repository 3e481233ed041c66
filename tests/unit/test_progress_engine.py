"""Progress engine: completion, points, level-up and badge unlocks."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from bookquest.db.models import STATUS_COMPLETED, STATUS_READING, User, UserBadge, UserBook
from bookquest.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from bookquest.gamification.progress_engine import mark_complete, progress_percentage, update_progress


async def _badge_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(select(func.count()).select_from(UserBadge).where(UserBadge.user_id == user_id))
    return result.scalar_one()


async def _reload_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id).execution_options(populate_existing=True))
    return result.scalar_one()


class TestProgressPercentage:

    def test_rounds_half_up(self):
        assert progress_percentage(1, 200) == 1  # 0.5%
        assert progress_percentage(1, 3) == 33
        assert progress_percentage(2, 3) == 67

    def test_capped_at_100(self):
        assert progress_percentage(500, 120) == 100

    def test_zero_pages_book(self):
        assert progress_percentage(10, 0) == 0


class TestUpdateProgress:

    @pytest.mark.asyncio
    async def test_partial_progress(self, db_session: AsyncSession, reader: User, make_user_book):
        user_book = await make_user_book(reader.id, 200)
        result = await update_progress(db_session, reader.id, user_book.id, 50)

        assert result.new_progress_percentage == 25
        assert result.points_earned == 0
        assert result.status == STATUS_READING
        assert result.completed_now is False
        assert result.newly_unlocked_badges == []

    @pytest.mark.asyncio
    async def test_completion_of_short_book(self, db_session: AsyncSession, reader: User, make_user_book):
        user_book = await make_user_book(reader.id, 120)
        result = await update_progress(db_session, reader.id, user_book.id, 120)

        assert result.new_progress_percentage == 100
        assert result.points_earned == 10
        assert result.status == STATUS_COMPLETED
        assert result.completed_now is True
        assert result.newly_unlocked_badges == ["Première lecture"]

        user = await _reload_user(db_session, reader.id)
        assert user.total_points == 10
        assert user.books_read_count == 1
        assert user.current_level == 1

    @pytest.mark.asyncio
    async def test_pages_beyond_total_complete_the_book(
        self, db_session: AsyncSession, reader: User, make_user_book
    ):
        user_book = await make_user_book(reader.id, 100)
        result = await update_progress(db_session, reader.id, user_book.id, 140)

        assert result.completed_now is True
        stored = await db_session.get(UserBook, user_book.id, populate_existing=True)
        assert stored.pages_read == 100
        assert stored.progress_percentage == 100

    @pytest.mark.asyncio
    async def test_repeat_update_after_completion_is_noop(
        self, db_session: AsyncSession, reader: User, make_user_book
    ):
        user_book = await make_user_book(reader.id, 120)
        await update_progress(db_session, reader.id, user_book.id, 120)

        again = await update_progress(db_session, reader.id, user_book.id, 120)
        lower = await update_progress(db_session, reader.id, user_book.id, 10)

        for result in (again, lower):
            assert result.completed_now is False
            assert result.status == STATUS_COMPLETED
            assert result.new_progress_percentage == 100
            assert result.points_earned == 10

        user = await _reload_user(db_session, reader.id)
        assert user.total_points == 10
        assert user.books_read_count == 1
        stored = await db_session.get(UserBook, user_book.id, populate_existing=True)
        assert stored.pages_read == 120

    @pytest.mark.asyncio
    async def test_negative_pages_rejected(self, db_session: AsyncSession, reader: User, make_user_book):
        user_book = await make_user_book(reader.id, 120)
        with pytest.raises(ValidationError):
            await update_progress(db_session, reader.id, user_book.id, -1)

        stored = await db_session.get(UserBook, user_book.id, populate_existing=True)
        assert stored.pages_read == 0

    @pytest.mark.asyncio
    async def test_other_users_book_not_found(
        self, db_session: AsyncSession, reader: User, make_user_book
    ):
        other = User(name="Alex", email="alex@example.com", password_hash="x")
        db_session.add(other)
        await db_session.commit()
        user_book = await make_user_book(other.id, 120)

        with pytest.raises(NotFoundError):
            await update_progress(db_session, reader.id, user_book.id, 120)

    @pytest.mark.asyncio
    async def test_missing_record_not_found(self, db_session: AsyncSession, reader: User):
        with pytest.raises(NotFoundError):
            await update_progress(db_session, reader.id, 9999, 10)


class TestMarkComplete:

    @pytest.mark.asyncio
    async def test_medium_book_awards_20(self, db_session: AsyncSession, reader: User, make_user_book):
        user_book = await make_user_book(reader.id, 250)
        result = await mark_complete(db_session, reader.id, user_book.id)

        assert result.points_earned == 20
        assert result.status == STATUS_COMPLETED
        stored = await db_session.get(UserBook, user_book.id, populate_existing=True)
        assert stored.pages_read == 250
        assert stored.completed_at is not None

    @pytest.mark.asyncio
    async def test_fifth_book_unlocks_two_badges_at_once(
        self, db_session: AsyncSession, reader: User, make_user_book
    ):
        reader.books_read_count = 4
        await db_session.commit()
        user_book = await make_user_book(reader.id, 250)

        result = await mark_complete(db_session, reader.id, user_book.id)

        assert result.newly_unlocked_badges == ["Première lecture", "Lecteur assidu"]
        assert await _badge_count(db_session, reader.id) == 2

    @pytest.mark.asyncio
    async def test_reaching_500_points_is_level_5(
        self, db_session: AsyncSession, reader: User, make_user_book
    ):
        reader.total_points = 470
        reader.current_level = 3
        reader.books_read_count = 10
        await db_session.commit()
        user_book = await make_user_book(reader.id, 400)

        result = await mark_complete(db_session, reader.id, user_book.id)

        assert result.points_earned == 30
        assert result.new_level == 5
        assert result.level_up is True
        assert "Niveau expert" in result.newly_unlocked_badges
        assert "Marathon de lecture" in result.newly_unlocked_badges
        user = await _reload_user(db_session, reader.id)
        assert user.total_points == 500
        assert user.current_level == 5

    @pytest.mark.asyncio
    async def test_second_call_conflicts_without_change(
        self, db_session: AsyncSession, reader: User, make_user_book
    ):
        user_id = reader.id
        user_book = await make_user_book(user_id, 120)
        user_book_id = user_book.id
        await mark_complete(db_session, user_id, user_book_id)

        with pytest.raises(ConflictError):
            await mark_complete(db_session, user_id, user_book_id)

        user = await _reload_user(db_session, user_id)
        assert user.total_points == 10
        assert user.books_read_count == 1

    @pytest.mark.asyncio
    async def test_update_then_mark_complete_conflicts(
        self, db_session: AsyncSession, reader: User, make_user_book
    ):
        user_book = await make_user_book(reader.id, 120)
        await update_progress(db_session, reader.id, user_book.id, 120)

        with pytest.raises(ConflictError):
            await mark_complete(db_session, reader.id, user_book.id)

    @pytest.mark.asyncio
    async def test_level_never_drops(self, db_session: AsyncSession, reader: User, make_user_book):
        reader.current_level = 3
        await db_session.commit()
        user_book = await make_user_book(reader.id, 120)

        result = await mark_complete(db_session, reader.id, user_book.id)

        assert result.new_level == 3
        assert result.level_up is False


class TestAfterCompletion:

    @pytest.mark.asyncio
    async def test_badge_failure_keeps_completion(
        self, db_session: AsyncSession, reader: User, make_user_book, monkeypatch
    ):
        async def _failing_evaluate(*_args, **_kwargs):
            raise PersistenceError("Badge evaluation failed")

        monkeypatch.setattr("bookquest.gamification.progress_engine.evaluate_badges", _failing_evaluate)
        user_id = reader.id
        user_book = await make_user_book(user_id, 120)

        result = await mark_complete(db_session, user_id, user_book.id)

        assert result.badge_check_pending is True
        assert result.newly_unlocked_badges == []
        user = await _reload_user(db_session, user_id)
        assert user.total_points == 10
        assert await _badge_count(db_session, user_id) == 0

    @pytest.mark.asyncio
    async def test_level_up_is_published(self, db_session: AsyncSession, reader: User, make_user_book):
        reader.total_points = 40
        await db_session.commit()
        user_book = await make_user_book(reader.id, 120)
        redis = AsyncMock()

        result = await mark_complete(db_session, reader.id, user_book.id, redis=redis)

        assert result.level_up is True
        assert result.new_level == 2
        channels = [call.args[0] for call in redis.publish.await_args_list]
        assert channels == ["pubsub:level_up", "pubsub:badge_unlocked"]


class TestCompletionIsAtomic:

    @staticmethod
    def _fail_flush(db: AsyncSession, monkeypatch) -> None:
        async def _flush(*_args, **_kwargs):
            raise OperationalError("UPDATE users", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "flush", _flush)

    @pytest.mark.asyncio
    async def test_mark_complete_failure_writes_nothing(
        self, db_session: AsyncSession, reader: User, make_user_book, monkeypatch
    ):
        user_id = reader.id
        user_book = await make_user_book(user_id, 320)
        user_book_id = user_book.id
        self._fail_flush(db_session, monkeypatch)

        with pytest.raises(PersistenceError):
            await mark_complete(db_session, user_id, user_book_id)

        monkeypatch.undo()
        stored = await db_session.get(UserBook, user_book_id, populate_existing=True)
        assert stored.status == STATUS_READING
        assert stored.points_earned == 0
        assert stored.completed_at is None
        user = await _reload_user(db_session, user_id)
        assert user.total_points == 0
        assert user.books_read_count == 0
        assert user.current_level == 1
        assert await _badge_count(db_session, user_id) == 0

    @pytest.mark.asyncio
    async def test_completing_update_failure_writes_nothing(
        self, db_session: AsyncSession, reader: User, make_user_book, monkeypatch
    ):
        user_id = reader.id
        user_book = await make_user_book(user_id, 120)
        user_book_id = user_book.id
        self._fail_flush(db_session, monkeypatch)

        with pytest.raises(PersistenceError):
            await update_progress(db_session, user_id, user_book_id, 120)

        monkeypatch.undo()
        stored = await db_session.get(UserBook, user_book_id, populate_existing=True)
        assert stored.status == STATUS_READING
        assert stored.pages_read == 0
        assert stored.progress_percentage == 0
        user = await _reload_user(db_session, user_id)
        assert user.total_points == 0
        assert user.books_read_count == 0

    @pytest.mark.asyncio
    async def test_retry_after_failure_completes_once(
        self, db_session: AsyncSession, reader: User, make_user_book, monkeypatch
    ):
        user_id = reader.id
        user_book = await make_user_book(user_id, 120)
        user_book_id = user_book.id
        self._fail_flush(db_session, monkeypatch)
        with pytest.raises(PersistenceError):
            await mark_complete(db_session, user_id, user_book_id)
        monkeypatch.undo()

        result = await mark_complete(db_session, user_id, user_book_id)

        assert result.points_earned == 10
        user = await _reload_user(db_session, user_id)
        assert user.total_points == 10
        assert user.books_read_count == 1
