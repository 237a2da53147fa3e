"""
Dashboard Backend — Profile Image Service Unit Tests
======================================================

What:  Upload and serve orchestration (write → record → cleanup, policy →
       lookup → stream).
How:   Real BlobStorage under tmp_path; the record store is an AsyncMock so no
       database is involved.

What we test:
    ✅ Upload writes the blob before the record and commits
    ✅ A failed record update leaves the blob but never a dangling path
    ✅ Previous blob kept by default, removed when configured
    ✅ Serve policies: public, authenticated, owner
    ✅ Missing record and missing file both report not found
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from dashboard.config import ImageAccessPolicy
from dashboard.exceptions import (
    DatabaseError,
    ForbiddenError,
    InputError,
    NotFoundError,
    UnauthorizedError,
)
from dashboard.services.blob_storage import BlobStorage, StoredImagePath
from dashboard.services.profile_image_service import ProfileImageService
from dashboard.services.session_verifier import AuthenticatedUser

ADA = AuthenticatedUser(id="u1", email="ada@example.com", name="Ada")
GRACE = AuthenticatedUser(id="u2", email="grace@example.com", name="Grace")


def _records(previous=None, current=None):
    records = MagicMock()
    records.set_image_path = AsyncMock(return_value=previous)
    records.get_image_path = AsyncMock(return_value=current)
    return records


async def _collect(stream) -> bytes:
    return b"".join([chunk async for chunk in stream])


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_stores_blob_and_records_path(self, storage_root, mock_db_session):
        records = _records()
        service = ProfileImageService(BlobStorage(storage_root), records=records)

        result = await service.upload(mock_db_session, ADA, b"\x01\x02\x03")

        assert result.message == "Added profile picture to logged in user."
        records.set_image_path.assert_awaited_once()
        _, user_id, path = records.set_image_path.await_args.args
        assert user_id == "u1"
        assert (storage_root / path.value).read_bytes() == b"\x01\x02\x03"
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_upload_touches_nothing(self, storage_root, mock_db_session):
        records = _records()
        service = ProfileImageService(BlobStorage(storage_root), records=records)

        with pytest.raises(InputError):
            await service.upload(mock_db_session, ADA, b"")

        records.set_image_path.assert_not_awaited()
        mock_db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_record_failure_leaves_orphan_blob_only(self, storage_root, mock_db_session):
        records = _records()
        records.set_image_path = AsyncMock(side_effect=DatabaseError())
        service = ProfileImageService(BlobStorage(storage_root), records=records)

        with pytest.raises(DatabaseError):
            await service.upload(mock_db_session, ADA, b"abc")

        mock_db_session.commit.assert_not_awaited()
        blobs = [p for p in storage_root.rglob("*") if p.is_file()]
        assert len(blobs) == 1

    @pytest.mark.asyncio
    async def test_previous_blob_kept_by_default(self, storage_root, mock_db_session):
        storage = BlobStorage(storage_root)
        previous = await storage.write("u1", b"old")
        service = ProfileImageService(storage, records=_records(previous=previous))

        await service.upload(mock_db_session, ADA, b"new")

        assert (storage_root / previous.value).read_bytes() == b"old"

    @pytest.mark.asyncio
    async def test_previous_blob_removed_when_configured(self, storage_root, mock_db_session):
        storage = BlobStorage(storage_root)
        previous = await storage.write("u1", b"old")
        service = ProfileImageService(
            storage, records=_records(previous=previous), delete_replaced=True
        )

        await service.upload(mock_db_session, ADA, b"new")

        assert not (storage_root / previous.value).exists()
        assert len([p for p in storage_root.rglob("*") if p.is_file()]) == 1


class TestCheckAccess:
    def _service(self, storage_root, policy):
        return ProfileImageService(
            BlobStorage(storage_root), records=_records(), access_policy=policy
        )

    def test_public_allows_anonymous(self, storage_root):
        self._service(storage_root, ImageAccessPolicy.PUBLIC).check_access("u1", None)

    def test_authenticated_rejects_anonymous(self, storage_root):
        service = self._service(storage_root, ImageAccessPolicy.AUTHENTICATED)
        with pytest.raises(UnauthorizedError):
            service.check_access("u1", None)

    def test_authenticated_allows_other_user(self, storage_root):
        self._service(storage_root, ImageAccessPolicy.AUTHENTICATED).check_access("u1", GRACE)

    def test_owner_rejects_other_user(self, storage_root):
        service = self._service(storage_root, ImageAccessPolicy.OWNER)
        with pytest.raises(ForbiddenError):
            service.check_access("u1", GRACE)

    def test_owner_allows_owner(self, storage_root):
        self._service(storage_root, ImageAccessPolicy.OWNER).check_access("u1", ADA)

    def test_policy_accepts_plain_string(self, storage_root):
        service = self._service(storage_root, "owner")
        assert service.access_policy is ImageAccessPolicy.OWNER


class TestOpenImage:
    @pytest.mark.asyncio
    async def test_streams_recorded_blob(self, storage_root, mock_db_session):
        storage = BlobStorage(storage_root)
        path = await storage.write("u1", b"\x01\x02\x03")
        service = ProfileImageService(storage, records=_records(current=path))

        stream = await service.open_image(mock_db_session, "u1")

        assert await _collect(stream) == b"\x01\x02\x03"

    @pytest.mark.asyncio
    async def test_no_recorded_path_is_not_found(self, storage_root, mock_db_session):
        service = ProfileImageService(BlobStorage(storage_root), records=_records(current=None))

        with pytest.raises(NotFoundError, match="profile image"):
            await service.open_image(mock_db_session, "u1")

    @pytest.mark.asyncio
    async def test_missing_file_is_not_found(self, storage_root, mock_db_session):
        records = _records(current=StoredImagePath("users/u1/images/gone"))
        service = ProfileImageService(BlobStorage(storage_root), records=records)

        with pytest.raises(NotFoundError, match="profile image"):
            await service.open_image(mock_db_session, "u1")

    @pytest.mark.asyncio
    async def test_policy_checked_before_lookup(self, storage_root, mock_db_session):
        records = _records()
        service = ProfileImageService(
            BlobStorage(storage_root),
            records=records,
            access_policy=ImageAccessPolicy.AUTHENTICATED,
        )

        with pytest.raises(UnauthorizedError):
            await service.open_image(mock_db_session, "u1", requester=None)

        records.get_image_path.assert_not_awaited()
