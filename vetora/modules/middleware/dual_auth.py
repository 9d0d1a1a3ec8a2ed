"""
Dual Authentication Dependencies

Two FastAPI dependencies over the same bearer token check:

- authenticate_token: lenient. Missing, sentinel or invalid tokens resolve to
  the anonymous user; never raises.
- authenticate_token_strict: every failure is a 401.

Both resolve the caller's effective role through VendorRoleSync. When the
stored role has drifted from vendor store ownership, the fix is scheduled as
a background task instead of being written on the request path.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import BackgroundTasks, Request

from ..auth.errors import AuthError
from ..users import UserRole

logger = logging.getLogger(__name__)

ANONYMOUS_USER_ID = "anonymous-user"
ANONYMOUS_TOKEN = "anonymous-access-token"


@dataclass
class AuthenticatedUser:
    """Identity attached to a request."""
    user_id: str
    is_anonymous: bool
    role: str = UserRole.USER.value

    @classmethod
    def anonymous(cls) -> "AuthenticatedUser":
        return cls(user_id=ANONYMOUS_USER_ID, is_anonymous=True)


def extract_bearer_token(request: Request) -> Optional[str]:
    """Token from 'Authorization: Bearer <token>', or None."""
    auth_header = request.headers.get("authorization")
    if not auth_header:
        return None
    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


def _services(request: Request):
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise AuthError(503, "Service not initialized")
    return services


async def _resolve_role(request: Request, user_id: str, background_tasks: BackgroundTasks) -> str:
    services = _services(request)
    try:
        resolution = await services.roles.resolve_role(user_id)
    except Exception as e:
        logger.error(f"Role resolution failed for user {user_id}: {e}")
        return UserRole.USER.value

    if resolution.drift:
        logger.info(
            f"Role drift for user {user_id}: stored={resolution.stored_role} "
            f"effective={resolution.role}; scheduling sync"
        )
        background_tasks.add_task(services.roles.sync_user, user_id)
    return resolution.role


async def authenticate_token(request: Request, background_tasks: BackgroundTasks) -> AuthenticatedUser:
    """Lenient authentication: anonymous on any failure."""
    token = extract_bearer_token(request)
    if not token or token == ANONYMOUS_TOKEN:
        caller = AuthenticatedUser.anonymous()
        request.state.user = caller
        return caller

    services = _services(request)
    try:
        user_id = services.tokens.verify_access_token(token)
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token on lenient route {request.url.path}: {e}")
        caller = AuthenticatedUser.anonymous()
        request.state.user = caller
        return caller

    role = await _resolve_role(request, user_id, background_tasks)
    caller = AuthenticatedUser(user_id=user_id, is_anonymous=False, role=role)
    request.state.user = caller
    return caller


async def authenticate_token_strict(request: Request, background_tasks: BackgroundTasks) -> AuthenticatedUser:
    """
    Strict authentication.

    Raises:
        AuthError: 401 for a missing, anonymous or invalid token
    """
    token = extract_bearer_token(request)
    if not token:
        raise AuthError(401, "Access token required")
    if token == ANONYMOUS_TOKEN:
        raise AuthError(401, "Authentication required for this operation")

    services = _services(request)
    try:
        user_id = services.tokens.verify_access_token(token)
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token on {request.method} {request.url.path}: {e}")
        raise AuthError(401, "Invalid token")

    role = await _resolve_role(request, user_id, background_tasks)
    caller = AuthenticatedUser(user_id=user_id, is_anonymous=False, role=role)
    request.state.user = caller
    return caller
