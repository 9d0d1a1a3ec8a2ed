"""FastAPI dependencies shared by the auth routers."""

from fastapi import Depends, Request

from ..auth.errors import AuthError, authentication_required
from ..auth.service import AuthServices
from ..middleware import AuthenticatedUser, authenticate_token, authenticate_token_strict
from ..users import UserRecord


def get_services(request: Request) -> AuthServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise AuthError(503, "Service not initialized")
    return services


async def require_user(
    caller: AuthenticatedUser = Depends(authenticate_token),
    services: AuthServices = Depends(get_services),
) -> UserRecord:
    """
    The signed-in user on a lenient route.

    Raises:
        AuthError: 401 for anonymous callers, 404 if the account is gone
    """
    if caller.is_anonymous:
        raise authentication_required()
    return await services.accounts.get_user(caller.user_id)


async def require_user_strict(
    caller: AuthenticatedUser = Depends(authenticate_token_strict),
    services: AuthServices = Depends(get_services),
) -> UserRecord:
    return await services.accounts.get_user(caller.user_id)
