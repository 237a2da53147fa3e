"""
Dashboard Backend — User Record Store Tests
=============================================

What:  Reads and the single image-column write of UserRecordStore.
How:   Real SQLite database from conftest; one mocked session for the
       database-failure path.
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from dashboard.exceptions import DatabaseError, NotFoundError
from dashboard.services.blob_storage import StoredImagePath
from dashboard.services.user_store import UserRecordStore


class TestUserReads:
    def setup_method(self):
        self.store = UserRecordStore()

    @pytest.mark.asyncio
    async def test_get_user(self, db_session, seeded):
        user = await self.store.get_user(db_session, "u1")
        assert user.email == "ada@example.com"
        assert user.email_verified is True

    @pytest.mark.asyncio
    async def test_get_unknown_user_raises_not_found(self, db_session, seeded):
        with pytest.raises(NotFoundError) as exc_info:
            await self.store.get_user(db_session, "nobody")
        assert exc_info.value.context["resource_id"] == "nobody"

    @pytest.mark.asyncio
    async def test_list_users(self, db_session, seeded):
        users = await self.store.list_users(db_session)
        assert sorted(u.id for u in users) == ["u1", "u2"]

    @pytest.mark.asyncio
    async def test_list_users_empty(self, db_session):
        assert await self.store.list_users(db_session) == []

    @pytest.mark.asyncio
    async def test_database_failure_becomes_database_error(self, mock_db_session):
        mock_db_session.execute = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("db down"))
        )

        with pytest.raises(DatabaseError) as exc_info:
            await self.store.get_user(mock_db_session, "u1")

        assert exc_info.value.context["error_type"] == "OperationalError"


class TestImagePath:
    def setup_method(self):
        self.store = UserRecordStore()

    @pytest.mark.asyncio
    async def test_no_picture_yet(self, db_session, seeded):
        assert await self.store.get_image_path(db_session, "u1") is None

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_picture(self, db_session, seeded):
        assert await self.store.get_image_path(db_session, "nobody") is None

    @pytest.mark.asyncio
    async def test_set_then_get(self, db_session, seeded):
        path = StoredImagePath("users/u1/images/first")

        previous = await self.store.set_image_path(db_session, "u1", path)
        await db_session.commit()

        assert previous is None
        assert await self.store.get_image_path(db_session, "u1") == path

    @pytest.mark.asyncio
    async def test_set_returns_previous_path(self, db_session, seeded):
        first = StoredImagePath("users/u1/images/first")
        second = StoredImagePath("users/u1/images/second")
        await self.store.set_image_path(db_session, "u1", first)

        previous = await self.store.set_image_path(db_session, "u1", second)

        assert previous == first
        assert await self.store.get_image_path(db_session, "u1") == second

    @pytest.mark.asyncio
    async def test_set_only_touches_that_user(self, db_session, seeded):
        await self.store.set_image_path(db_session, "u1", StoredImagePath("users/u1/images/a"))
        await db_session.commit()

        assert await self.store.get_image_path(db_session, "u2") is None

    @pytest.mark.asyncio
    async def test_set_for_unknown_user_raises_not_found(self, db_session, seeded):
        with pytest.raises(NotFoundError):
            await self.store.set_image_path(
                db_session, "nobody", StoredImagePath("users/nobody/images/a")
            )

    @pytest.mark.asyncio
    async def test_unusable_recorded_path_reads_as_none(self, db_session, seeded):
        seeded["u1"].image = "/etc/passwd"
        await db_session.commit()

        assert await self.store.get_image_path(db_session, "u1") is None
