"""
Error Taxonomy
==============

Every failure the API can report falls into one of a small, closed set of
kinds. Storage backends translate provider exceptions into these classes at
the boundary, so services and routers never look at provider error codes.

ERROR KINDS:
    VALIDATION  - malformed or missing fields            -> 400
    AUTH        - missing, invalid or expired credential -> 401
    PERMISSION  - entity not owned by the caller         -> 403
    NOT_FOUND   - referenced entity does not exist       -> 404
    CONFLICT    - duplicate or state conflict            -> 409
    DEPENDENCY  - database / auth / messaging failure    -> 500

Author: ZoneAlert Team
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Closed set of error kinds exposed to API clients."""
    VALIDATION = "validation"
    AUTH = "auth"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    DEPENDENCY = "dependency"


STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTH: 401,
    ErrorKind.PERMISSION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.DEPENDENCY: 500,
}


class ZoneAlertError(Exception):
    """Base class for all errors raised by the application."""

    kind: ErrorKind = ErrorKind.DEPENDENCY

    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": False,
            "message": self.message,
            "kind": self.kind.value,
        }
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(ZoneAlertError):
    kind = ErrorKind.VALIDATION


class AuthError(ZoneAlertError):
    kind = ErrorKind.AUTH


class PermissionDeniedError(ZoneAlertError):
    kind = ErrorKind.PERMISSION


class NotFoundError(ZoneAlertError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(ZoneAlertError):
    kind = ErrorKind.CONFLICT


class DependencyError(ZoneAlertError):
    kind = ErrorKind.DEPENDENCY
