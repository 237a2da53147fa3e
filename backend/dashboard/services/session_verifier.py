"""
Dashboard Backend — Session Verifier
======================================

What:  Resolves request credentials to the signed-in user, or None.
How:   Reads the session token issued by the email-OTP auth library and looks
       it up in the `session` table.

Token sources (first match wins):
    1. Session cookie (SESSION_COOKIE_NAME, or its "__Secure-" variant)
    2. Authorization: Bearer <token>

Signed values:
    The auth library sends "<token>.<signature>" where signature is the
    base64 HMAC-SHA256 of the token under AUTH_SECRET. With a secret
    configured the signature is checked; without one the token part is
    used as-is.
"""

import base64
import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional
from urllib.parse import unquote

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dashboard.exceptions import DatabaseError
from dashboard.models.user import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity taken from a verified session."""

    id: str
    email: str
    name: str


class SessionVerifier:
    def __init__(self, cookie_name: str, secret: str = ""):
        self.cookie_name = cookie_name
        self.secret = secret

    def _sign(self, token: str) -> str:
        digest = hmac.new(self.secret.encode(), token.encode(), hashlib.sha256).digest()
        return base64.b64encode(digest).decode()

    def extract_token(self, raw: Optional[str]) -> Optional[str]:
        """Token from a raw cookie or bearer value; None if unusable."""
        if not raw:
            return None
        value = unquote(raw.strip())
        token, dot, signature = value.partition(".")
        if not token:
            return None
        if not self.secret:
            return token
        if not dot or not hmac.compare_digest(signature.encode(), self._sign(token).encode()):
            logger.debug("Session token signature mismatch")
            return None
        return token

    def _raw_credential(
        self, headers: Mapping[str, str], cookies: Mapping[str, str]
    ) -> Optional[str]:
        for name in (self.cookie_name, f"__Secure-{self.cookie_name}"):
            if cookies.get(name):
                return cookies[name]
        authorization = headers.get("authorization", "")
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials:
            return credentials
        return None

    async def verify(
        self,
        db: AsyncSession,
        headers: Mapping[str, str],
        cookies: Mapping[str, str],
    ) -> Optional[AuthenticatedUser]:
        """
        Identify the caller.

        Returns:
            AuthenticatedUser for a known, unexpired session; otherwise None.

        Raises:
            DatabaseError: the session lookup failed.
        """
        token = self.extract_token(self._raw_credential(headers, cookies))
        if token is None:
            return None

        try:
            result = await db.execute(
                select(Session)
                .options(selectinload(Session.user))
                .where(Session.token == token)
            )
            session = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error verifying session: %s", str(e))
            raise DatabaseError(
                message="Could not verify your session. Please try again.",
                context={"error_type": type(e).__name__},
            )

        if session is None:
            return None

        expires_at = session.expires_at
        # SQLite hands back naive datetimes; they are stored as UTC
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= datetime.now(timezone.utc):
            logger.info("Expired session for user %s", session.user_id)
            return None

        user = session.user
        return AuthenticatedUser(id=user.id, email=user.email, name=user.name)
