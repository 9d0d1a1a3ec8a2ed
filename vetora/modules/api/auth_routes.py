"""
Core /api/auth routes: sign-up, sign-in, tokens, wallet and password reset.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends

from .dependencies import get_services, require_user
from .models import (
    AppleAuthRequest,
    ForgotPasswordRequest,
    GoogleAuthRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    WalletAuthRequest,
)
from ..auth.service import AuthServices
from ..middleware import AuthenticatedUser, authenticate_token, authenticate_token_strict
from ..users import UserRecord

logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = "If an account with that email exists, a password reset link has been sent"


async def session_payload(services: AuthServices, user: UserRecord) -> Dict[str, Any]:
    """Fresh token pair plus the public user document."""
    access_token, refresh_token = await services.tokens.issue_pair(user.id)
    return {
        "accessToken": access_token,
        "refreshToken": refresh_token,
        "user": user.to_public(),
    }


def create_auth_router() -> APIRouter:
    """
    Create the core auth router.

    Returns:
        FastAPI router to be mounted under /api/auth
    """
    router = APIRouter(tags=["auth"])

    @router.get("/health")
    async def auth_health(services: AuthServices = Depends(get_services)) -> Dict:
        return {
            "success": True,
            "message": "Auth service is healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "environment": services.api_config.environment,
        }

    # Password accounts

    @router.post("/register", status_code=201)
    async def register(body: RegisterRequest, services: AuthServices = Depends(get_services)) -> Dict:
        user = await services.accounts.register(
            body.email, body.password, body.username, body.display_name
        )
        logger.info(f"User registered: {user.id}")
        return {
            "success": True,
            "message": "User registered successfully",
            **await session_payload(services, user),
        }

    @router.post("/login")
    async def login(body: LoginRequest, services: AuthServices = Depends(get_services)) -> Dict:
        user = await services.accounts.login(body.identifier, body.password)
        logger.info(f"User logged in: {user.id}")
        return {
            "success": True,
            "message": "Login successful",
            **await session_payload(services, user),
        }

    # Social sign-in

    @router.post("/oauth/google")
    async def oauth_google(body: GoogleAuthRequest, services: AuthServices = Depends(get_services)) -> Dict:
        user = await services.accounts.login_with_google(body.id_token)
        return {"success": True, **await session_payload(services, user)}

    @router.post("/oauth/apple")
    async def oauth_apple(body: AppleAuthRequest, services: AuthServices = Depends(get_services)) -> Dict:
        user = await services.accounts.login_with_apple(body.identity_token)
        return {"success": True, **await session_payload(services, user)}

    # Wallet

    @router.post("/wallet")
    async def wallet_login(body: WalletAuthRequest, services: AuthServices = Depends(get_services)) -> Dict:
        user = await services.accounts.login_with_wallet(
            body.wallet_address, body.signature, body.message
        )
        return {"success": True, "data": await session_payload(services, user)}

    @router.post("/wallet/link")
    async def wallet_link(
        body: WalletAuthRequest,
        user: UserRecord = Depends(require_user),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        user = await services.accounts.link_wallet(
            user, body.wallet_address, body.signature, body.message
        )
        return {
            "success": True,
            "message": "Wallet address associated successfully",
            "user": user.to_public(),
        }

    @router.delete("/wallet")
    async def wallet_unlink(
        user: UserRecord = Depends(require_user),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        user = await services.accounts.unlink_wallet(user)
        return {
            "success": True,
            "message": "Wallet disconnected successfully",
            "user": user.to_public(),
        }

    # Tokens

    @router.post("/refresh")
    async def refresh(body: RefreshRequest, services: AuthServices = Depends(get_services)) -> Dict:
        access_token = await services.tokens.refresh(body.refresh_token, services.users)
        return {"success": True, "accessToken": access_token}

    @router.post("/logout")
    async def logout(
        body: LogoutRequest,
        caller: AuthenticatedUser = Depends(authenticate_token_strict),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        await services.tokens.revoke(body.refresh_token)
        logger.info(f"User logged out: {caller.user_id}")
        return {"success": True, "message": "Logged out successfully"}

    # Password reset

    @router.post("/forgot-password")
    async def forgot_password(
        body: ForgotPasswordRequest, services: AuthServices = Depends(get_services)
    ) -> Dict:
        await services.accounts.request_password_reset(body.email)
        return {"success": True, "message": RESET_REQUESTED_MESSAGE}

    @router.get("/validate-reset-token/{token}")
    async def validate_reset_token(token: str, services: AuthServices = Depends(get_services)) -> Dict:
        await services.accounts.validate_reset_token(token)
        return {"success": True, "message": "Reset token is valid"}

    @router.post("/reset-password")
    async def reset_password(
        body: ResetPasswordRequest, services: AuthServices = Depends(get_services)
    ) -> Dict:
        await services.accounts.reset_password(body.token, body.new_password)
        return {"success": True, "message": "Password reset successfully"}

    # Current user

    @router.get("/me")
    async def me(
        caller: AuthenticatedUser = Depends(authenticate_token),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        if caller.is_anonymous:
            return {"success": False, "message": "Not authenticated"}
        user = await services.users.get(caller.user_id)
        if user is None or not user.is_active:
            return {"success": False, "message": "User not found or account deactivated"}
        return {"success": True, "user": services.accounts.describe_me(user, caller.role)}

    return router
