"""
Dashboard Backend — User Record Store
=======================================

What:  Reads and writes the `user` rows this service cares about.
How:   Stateless; every call receives the request's AsyncSession. The session
       dependency commits or rolls back at the end of the request.

The only column written here is `user.image`. Values read from it are
wrapped in StoredImagePath, which is the only type BlobStorage will resolve.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.exceptions import DatabaseError, NotFoundError
from dashboard.models.user import User
from dashboard.services.blob_storage import StoredImagePath

logger = logging.getLogger(__name__)


class UserRecordStore:
    """
    Repository over the `user` table.

    Error Handling:
        Missing rows become NotFoundError. Any SQLAlchemy failure becomes
        DatabaseError with the original error type in its context.
    """

    async def get_user(self, db: AsyncSession, user_id: str) -> User:
        """
        Fetch one user.

        Raises:
            NotFoundError: no row with this id.
            DatabaseError: query failed.
        """
        try:
            result = await db.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the user. Please try again.",
                context={"user_id": user_id, "error_type": type(e).__name__},
            )

        if user is None:
            raise NotFoundError(resource="user", resource_id=user_id)
        return user

    async def list_users(self, db: AsyncSession) -> List[User]:
        """All users ordered by creation time, oldest first."""
        try:
            result = await db.execute(select(User).order_by(User.created_at, User.id))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing users: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve users. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get_image_path(
        self, db: AsyncSession, user_id: str
    ) -> Optional[StoredImagePath]:
        """
        The user's recorded image path.

        Returns None both for an unknown user and for a user without a
        picture, so the serve path reports a single not-found case.
        """
        try:
            result = await db.execute(select(User.image).where(User.id == user_id))
            image = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error reading image of user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the profile picture. Please try again.",
                context={"user_id": user_id, "error_type": type(e).__name__},
            )

        if not image:
            return None
        try:
            return StoredImagePath.from_record(image)
        except ValueError:
            logger.warning("User %s has an unusable image path: %r", user_id, image)
            return None

    async def set_image_path(
        self, db: AsyncSession, user_id: str, path: StoredImagePath
    ) -> Optional[StoredImagePath]:
        """
        Point the user's image at `path`.

        Returns:
            The previously recorded path, if any.

        Raises:
            NotFoundError: the user row does not exist.
            DatabaseError: the update failed.
        """
        user = await self.get_user(db, user_id)
        previous = user.image

        try:
            user.image = path.value
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating image of user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not save the profile picture. Please try again.",
                context={"user_id": user_id, "error_type": type(e).__name__},
            )

        logger.info("User %s image set to %s", user_id, path)
        if not previous:
            return None
        try:
            return StoredImagePath.from_record(previous)
        except ValueError:
            return None


user_store = UserRecordStore()
