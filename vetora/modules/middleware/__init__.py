"""
Authentication Middleware Module - Black Box Interface

Purpose: Attach the caller's identity to requests
Interface: authenticate_token, authenticate_token_strict (FastAPI dependencies)
Hidden: Header parsing, token verification, role resolution

Routes pick lenient or strict authentication per endpoint with Depends().
"""

from .dual_auth import (
    ANONYMOUS_TOKEN,
    ANONYMOUS_USER_ID,
    AuthenticatedUser,
    authenticate_token,
    authenticate_token_strict,
    extract_bearer_token,
)

__all__ = [
    "ANONYMOUS_TOKEN",
    "ANONYMOUS_USER_ID",
    "AuthenticatedUser",
    "authenticate_token",
    "authenticate_token_strict",
    "extract_bearer_token",
]
