"""
Dashboard Backend — User and Session ORM Models
=================================================

What:  Mappings for the `user` and `session` tables.
Who:   Written by the email-OTP auth library; this service reads both tables
       and writes exactly one column, `user.image`.

Column naming:
    The auth library creates camelCase columns (emailVerified, userId, ...).
    Python attributes are snake_case and map onto those names explicitly.

`user.image`:
    Nullable path relative to UPLOAD_STORAGE_PATH, e.g.
    users/<user id>/images/<uuid>. Never an absolute path.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dashboard.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """A dashboard account. Identity is the opaque string `id`."""

    __tablename__ = "user"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    email_verified: Mapped[bool] = mapped_column(
        "emailVerified", Boolean, nullable=False, default=False
    )

    # Relative path of the current profile picture, see module docstring
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)

    created_at: Mapped[datetime] = mapped_column(
        "createdAt", DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt", DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    sessions: Mapped[List["Session"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"


class Session(Base):
    """
    A sign-in session issued by the auth library.

    Lookup is by `token`, which is what the session cookie (signed) or the
    bearer header carries.
    """

    __tablename__ = "session"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(
        "userId", String(128), ForeignKey("user.id", ondelete="CASCADE"), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(
        "expiresAt", DateTime(timezone=True), nullable=False
    )
    ip_address: Mapped[Optional[str]] = mapped_column("ipAddress", Text, nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column("userAgent", Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        "createdAt", DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt", DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    user: Mapped[User] = relationship(back_populates="sessions")

    def __repr__(self) -> str:
        return f"<Session(id={self.id}, user_id={self.user_id}, expires_at='{self.expires_at}')>"
