"""
Dashboard Backend — Profile Image Service (Business Logic Orchestrator)
=========================================================================

What:  Coordinates the upload and serve flows for profile pictures.
How:   Composes BlobStorage and UserRecordStore; applies the serve policy.
Who:   Called by the /api/users route handlers.

Upload Flow (POST /api/users/upload):
    ┌──────────┐    ┌─────────────┐    ┌──────────────┐    ┌─────────────┐
    │ Session  │───▶│ BlobStorage │───▶│  User record │───▶│  (optional) │
    │ verified │    │   .write()  │    │  image = path│    │ remove prev │
    └──────────┘    └─────────────┘    └──────────────┘    └─────────────┘

    The disk write always finishes before the row is touched. A failure
    between the two leaves an unreferenced blob, never a dangling row.

Serve Flow (GET /api/users/{id}/profile):
    policy check → user record image path → BlobStorage.read() → stream
"""

import logging
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.config import ImageAccessPolicy
from dashboard.exceptions import ForbiddenError, NotFoundError, UnauthorizedError
from dashboard.schemas.user import UploadResponse
from dashboard.services.blob_storage import BlobStorage
from dashboard.services.session_verifier import AuthenticatedUser
from dashboard.services.user_store import UserRecordStore, user_store

logger = logging.getLogger(__name__)


class ProfileImageService:
    """
    Profile picture use cases.

    Args:
        storage:         Blob storage bound to the configured root.
        records:         User record store.
        access_policy:   Who may fetch a picture (public/authenticated/owner).
        delete_replaced: Remove the previous blob after a successful replace.
    """

    def __init__(
        self,
        storage: BlobStorage,
        records: UserRecordStore = user_store,
        access_policy: ImageAccessPolicy = ImageAccessPolicy.PUBLIC,
        delete_replaced: bool = False,
    ):
        self.storage = storage
        self.records = records
        self.access_policy = ImageAccessPolicy(access_policy)
        self.delete_replaced = delete_replaced

    async def upload(
        self,
        db: AsyncSession,
        owner: AuthenticatedUser,
        content: bytes,
    ) -> UploadResponse:
        """
        Store a new picture for `owner` and point their record at it.

        Raises:
            InputError: empty content.
            StorageError: the blob could not be written.
            NotFoundError: the session's user row no longer exists.
            DatabaseError: the record update failed.
        """
        path = await self.storage.write(owner.id, content)
        previous = await self.records.set_image_path(db, owner.id, path)
        await db.commit()
        logger.info("Profile picture of user %s updated (%d bytes)", owner.id, len(content))

        if previous is not None and previous != path:
            if self.delete_replaced:
                await self.storage.remove(previous)
            else:
                logger.debug("Previous picture of user %s left on disk: %s", owner.id, previous)

        return UploadResponse()

    def check_access(self, user_id: str, requester: Optional[AuthenticatedUser]) -> None:
        """
        Apply the serve policy.

        Raises:
            UnauthorizedError: policy needs a session and there is none.
            ForbiddenError: policy is owner-only and requester is someone else.
        """
        if self.access_policy is ImageAccessPolicy.PUBLIC:
            return
        if requester is None:
            raise UnauthorizedError()
        if self.access_policy is ImageAccessPolicy.OWNER and requester.id != user_id:
            raise ForbiddenError(context={"user_id": user_id, "requester": requester.id})

    async def open_image(
        self,
        db: AsyncSession,
        user_id: str,
        requester: Optional[AuthenticatedUser] = None,
    ) -> AsyncIterator[bytes]:
        """
        Stream of the picture currently recorded for `user_id`.

        Raises:
            NotFoundError: no recorded path, or the file is gone.
            UnauthorizedError / ForbiddenError: per access policy.
        """
        self.check_access(user_id, requester)

        path = await self.records.get_image_path(db, user_id)
        if path is None:
            raise NotFoundError(resource="profile image", resource_id=user_id)

        try:
            return await self.storage.read(path)
        except NotFoundError:
            logger.warning("Recorded picture of user %s is missing on disk: %s", user_id, path)
            raise NotFoundError(resource="profile image", resource_id=user_id)
