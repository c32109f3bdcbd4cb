"""Application error taxonomy.

Handlers and models raise these; `api/server.py` turns them into
`{"success": false, "message": ...}` JSON responses with the class's status code.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class CMSError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None, *, errors: Optional[List[str]] = None):
        self.message = message or self.default_message
        self.errors = list(errors or [])
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        rv: Dict[str, Any] = {"success": False, "message": self.message}
        if self.errors:
            rv["errors"] = self.errors
        return rv


class ValidationError(CMSError):
    status_code = 400
    default_message = "Validation failed"


class WrongCurrentPassword(ValidationError):
    default_message = "Current password is incorrect"


class DuplicateEntity(CMSError):
    status_code = 400
    default_message = "Duplicate entry"


class DuplicateEmail(DuplicateEntity):
    default_message = "User already exists"


class DuplicateUsername(DuplicateEntity):
    default_message = "Username is already taken"


class DuplicateSlug(DuplicateEntity):
    default_message = "Slug is already in use"


class Unauthenticated(CMSError):
    status_code = 401
    default_message = "No token, authorization denied"


class InvalidToken(Unauthenticated):
    default_message = "Token is not valid"


class TokenExpired(Unauthenticated):
    default_message = "Token has expired"


class AccountDisabled(Unauthenticated):
    default_message = "User account is deactivated"


class InvalidCredentials(Unauthenticated):
    default_message = "Invalid credentials"


class Forbidden(CMSError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFound(CMSError):
    status_code = 404
    default_message = "Resource not found"


class DatabaseError(CMSError):
    status_code = 500
    default_message = "A database error occurred"
