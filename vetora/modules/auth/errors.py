"""Errors raised by auth services and rendered by the API layer."""
from typing import Any, Dict, Optional


class AuthError(Exception):
    """
    A failure that maps directly onto an HTTP response.

    Rendered as {"success": false, "message": ...} plus any extra fields;
    details is only exposed in development.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        details: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details
        self.extra = extra or {}

    def to_body(self, include_details: bool = False) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "message": self.message}
        body.update(self.extra)
        if include_details and self.details:
            body["details"] = self.details
        return body


def authentication_required() -> AuthError:
    return AuthError(401, "Authentication required")


def user_not_found() -> AuthError:
    return AuthError(404, "User not found")
