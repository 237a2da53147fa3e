"""
Dashboard Backend — Pydantic Request/Response Schemas
=======================================================

What:  API contract models used by route handlers and the OpenAPI docs.
How:   Kept separate from the ORM models so that internal columns (the stored
       image path in particular) never leak into responses by accident.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class UploadResponse(BaseModel):
    """Returned by POST /api/users/upload with HTTP 201."""
    message: str = Field(
        default="Added profile picture to logged in user.",
        description="Human-readable success message",
    )


class UserSummary(BaseModel):
    """
    What:  One row of GET /api/users.
    Note:  `image` only says whether a picture exists; the stored path is
           redacted.
    """
    id: str = Field(description="Opaque user identifier")
    email: str = Field(description="Account email address")
    name: str = Field(description="Display name")
    email_verified: bool = Field(description="Whether the OTP email check completed")
    image: bool = Field(description="True when the user has a profile picture")


class UserProfile(BaseModel):
    """Full profile returned to the owning user by GET /api/users/{id}."""
    id: str
    email: str
    name: str
    email_verified: bool
    has_image: bool = Field(description="True when the user has a profile picture")
    image_url: Optional[str] = Field(
        default=None,
        description="Path of the profile picture endpoint, null without a picture",
    )
    created_at: datetime
    updated_at: datetime


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "profile image with ID 'u1' was not found",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    storage: str = Field(description="Storage root: writable, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")
