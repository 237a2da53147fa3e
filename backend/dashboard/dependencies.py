"""
Dashboard Backend — FastAPI Dependencies
==========================================

What:  Wires settings into services for route handlers.
How:   Every service receives its configuration here, once per request, so
       tests can swap settings or the storage root via
       `app.dependency_overrides`.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.config import Settings, get_settings
from dashboard.database import get_db_session
from dashboard.exceptions import UnauthorizedError
from dashboard.services.blob_storage import BlobStorage
from dashboard.services.profile_image_service import ProfileImageService
from dashboard.services.session_verifier import AuthenticatedUser, SessionVerifier
from dashboard.services.user_store import user_store


@lru_cache(maxsize=8)
def _storage_for_root(root: str) -> BlobStorage:
    return BlobStorage(root)


def get_blob_storage(settings: Settings = Depends(get_settings)) -> BlobStorage:
    return _storage_for_root(settings.upload_storage_path)


def get_session_verifier(settings: Settings = Depends(get_settings)) -> SessionVerifier:
    return SessionVerifier(
        cookie_name=settings.session_cookie_name,
        secret=settings.auth_secret,
    )


def get_profile_image_service(
    storage: BlobStorage = Depends(get_blob_storage),
    settings: Settings = Depends(get_settings),
) -> ProfileImageService:
    return ProfileImageService(
        storage=storage,
        records=user_store,
        access_policy=settings.profile_image_access,
        delete_replaced=settings.delete_replaced_images,
    )


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    verifier: SessionVerifier = Depends(get_session_verifier),
) -> Optional[AuthenticatedUser]:
    """Signed-in user, or None for anonymous requests."""
    return await verifier.verify(db, request.headers, request.cookies)


async def require_user(
    user: Optional[AuthenticatedUser] = Depends(get_current_user),
) -> AuthenticatedUser:
    """Signed-in user; raises UnauthorizedError (401) otherwise."""
    if user is None:
        raise UnauthorizedError()
    return user
