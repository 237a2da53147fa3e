"""
Dashboard Backend — User Route Handlers
=========================================

What:  Profile picture upload/serve plus the user list and profile reads.
How:   Handlers stay thin: extract request data, call the service, pick the
       status code. Errors are raised as DashboardError subclasses and
       formatted by the global handlers in main.py.

Route Inventory:
    POST /api/users/upload         session required, multipart field `file`
    GET  /api/users/{id}/profile   picture bytes, access per PROFILE_IMAGE_ACCESS
    GET  /api/users                all users, image redacted to a boolean
    GET  /api/users/{id}           full profile, owner only
"""

import logging
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from dashboard.database import get_db_session
from dashboard.dependencies import get_current_user, get_profile_image_service, require_user
from dashboard.exceptions import ForbiddenError, InputError
from dashboard.schemas.user import ErrorResponse, UploadResponse, UserProfile, UserSummary
from dashboard.services.profile_image_service import ProfileImageService
from dashboard.services.session_verifier import AuthenticatedUser
from dashboard.services.user_store import user_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Users"])

USER_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,128}")


def validate_user_id(user_id: str) -> str:
    """Route ids must be a single safe segment; raises InputError (400)."""
    if not user_id:
        raise InputError(message="Missing userId", field="id")
    if not USER_ID_PATTERN.fullmatch(user_id):
        raise InputError(message="Malformed userId", field="id")
    return user_id


@router.post(
    "/users/upload",
    status_code=201,
    response_model=UploadResponse,
    responses={
        201: {"description": "Profile picture stored", "model": UploadResponse},
        400: {"description": "No form data or file missing", "model": ErrorResponse},
        401: {"description": "No valid session", "model": ErrorResponse},
        429: {"description": "Upload rate limit exceeded", "model": ErrorResponse},
    },
    summary="Upload a profile picture for the signed-in user",
    description=(
        "Accepts multipart/form-data with a `file` field. The bytes are stored "
        "as-is (no type detection) and become the caller's profile picture."
    ),
)
async def upload_profile_picture(
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
    service: ProfileImageService = Depends(get_profile_image_service),
) -> UploadResponse:
    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith("multipart/form-data"):
        raise InputError(message="No form data")

    try:
        form = await request.form()
    except (HTTPException, MultiPartException) as e:
        logger.info("Unreadable multipart body from user %s: %s", user.id, str(e))
        raise InputError(message="No form data")

    try:
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            raise InputError(message="File missing", field="file")

        content = await upload.read()
        logger.info(
            "Received profile picture upload: user=%s, filename=%s, size=%d bytes",
            user.id,
            upload.filename or "unknown",
            len(content),
        )
        return await service.upload(db, user, content)
    finally:
        await form.close()


@router.get(
    "/users/{user_id:path}/profile",
    response_class=StreamingResponse,
    responses={
        200: {
            "description": "Profile picture bytes",
            "content": {"application/octet-stream": {}},
        },
        400: {"description": "Missing or malformed user id", "model": ErrorResponse},
        401: {"description": "Session required by access policy", "model": ErrorResponse},
        403: {"description": "Owner-only access policy", "model": ErrorResponse},
        404: {"description": "No picture recorded or file missing", "model": ErrorResponse},
    },
    summary="Serve a user's profile picture",
)
async def serve_profile_picture(
    user_id: str,
    requester: Optional[AuthenticatedUser] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
    service: ProfileImageService = Depends(get_profile_image_service),
) -> StreamingResponse:
    """
    Stream the picture recorded for `user_id`.

    The content type is always application/octet-stream; the stored blob
    carries no format information.
    """
    validate_user_id(user_id)
    stream = await service.open_image(db, user_id, requester)
    return StreamingResponse(
        stream,
        media_type="application/octet-stream",
    )


@router.get(
    "/users",
    response_model=List[UserSummary],
    summary="List users",
    description="Every user with the stored image path replaced by a boolean.",
)
async def list_users(db: AsyncSession = Depends(get_db_session)) -> List[UserSummary]:
    users = await user_store.list_users(db)
    return [
        UserSummary(
            id=u.id,
            email=u.email,
            name=u.name,
            email_verified=u.email_verified,
            image=u.image is not None,
        )
        for u in users
    ]


@router.get(
    "/users/{user_id}",
    response_model=UserProfile,
    responses={
        401: {"description": "No valid session", "model": ErrorResponse},
        403: {"description": "Profile belongs to another user", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Full profile of the signed-in user",
)
async def get_user_profile(
    user_id: str,
    user: AuthenticatedUser = Depends(require_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserProfile:
    validate_user_id(user_id)
    if user.id != user_id:
        raise ForbiddenError(context={"user_id": user_id, "requester": user.id})

    record = await user_store.get_user(db, user_id)
    has_image = record.image is not None
    return UserProfile(
        id=record.id,
        email=record.email,
        name=record.name,
        email_verified=record.email_verified,
        has_image=has_image,
        image_url=f"/api/users/{record.id}/profile" if has_image else None,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
