"""
Dashboard Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for every failure the API reports.
How:   Each exception carries a user-safe message and an optional context dict.
       Global handlers registered in main.py turn them into JSON responses.
Who:   Raised by services and dependencies; caught by the global handlers.

Exception Hierarchy:
    DashboardError (base)
    ├── UnauthorizedError        → 401 Unauthorized (no valid session)
    ├── ForbiddenError           → 403 Forbidden (session is not the owner)
    ├── InputError               → 400 Bad Request (missing form, file, route id)
    ├── NotFoundError            → 404 Not Found (no record or missing file)
    ├── StorageError             → 500 Internal Server Error
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class DashboardError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, NOT returned to client unless
                  the handler explicitly exposes it)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class UnauthorizedError(DashboardError):
    """No session, an unknown session token, or an expired session."""

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(DashboardError):
    """The session is valid but belongs to a different user than the resource."""

    def __init__(
        self,
        message: str = "You do not have access to this resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InputError(DashboardError):
    """
    Raised when client input is missing or malformed.

    When:    No multipart form, no (or empty) `file` field, missing or malformed
             user id in the route.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "input_error",
            "message": "File missing",
            "details": {"field": "file"}
        }
    """

    def __init__(
        self,
        message: str = "Invalid request",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(DashboardError):
    """
    Raised when a requested resource does not exist.

    The blob reader raises this both when no image path is recorded and when
    the recorded file is gone from disk; callers cannot tell the two apart.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class StorageError(DashboardError):
    """
    Raised when a file system operation fails.

    When:    Directory creation or blob write fails (disk full, permission
             denied, I/O error) or the owner id is not a usable path segment.
    HTTP:    500 Internal Server Error. Paths and OS errors stay in `context`.
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(DashboardError):
    """
    Raised when a database operation fails unexpectedly.

    The client always gets a generic message; SQL details are logged only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)

