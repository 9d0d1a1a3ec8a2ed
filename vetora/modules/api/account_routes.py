"""
Account self-service routes under /api/auth: profile, settings, password,
account deletion and data export.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from .dependencies import get_services, require_user, require_user_strict
from .models import ChangePasswordRequest, DeleteAccountRequest, ProfileUpdateRequest
from ..auth.errors import user_not_found
from ..auth.service import AuthServices
from ..middleware import AuthenticatedUser, authenticate_token
from ..users import ANONYMOUS_SETTINGS, UserRecord

logger = logging.getLogger(__name__)


def create_account_router() -> APIRouter:
    """
    Create the account router.

    Returns:
        FastAPI router to be mounted under /api/auth
    """
    router = APIRouter(tags=["account"])

    # Profile

    @router.get("/profile")
    async def get_profile(user: UserRecord = Depends(require_user)) -> Dict:
        return {"success": True, "data": user.to_public()}

    @router.put("/profile")
    async def update_profile(
        body: ProfileUpdateRequest,
        user: UserRecord = Depends(require_user),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        user = await services.accounts.update_profile(user, body.changes())
        logger.info(f"Profile updated for user {user.id}")
        return {
            "success": True,
            "message": "Profile updated successfully",
            "user": user.to_public(),
        }

    @router.delete("/profile/cover")
    async def remove_cover(
        user: UserRecord = Depends(require_user_strict),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        user = await services.accounts.remove_cover(user)
        return {"success": True, "message": "Cover photo removed", "user": user.to_public()}

    # Settings

    @router.get("/settings")
    async def get_settings(
        caller: AuthenticatedUser = Depends(authenticate_token),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        if caller.is_anonymous:
            return {"success": True, "data": ANONYMOUS_SETTINGS}
        user = await services.users.get(caller.user_id)
        if user is None:
            raise user_not_found()
        return {"success": True, "data": user.settings.model_dump(mode="json", by_alias=True)}

    @router.put("/settings")
    async def update_settings(
        body: Dict[str, Any] = Body(...),
        caller: AuthenticatedUser = Depends(authenticate_token),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        if caller.is_anonymous:
            setting_type, values = services.accounts.validate_settings(body)
            return {
                "success": True,
                "message": f"{setting_type} settings updated successfully (anonymous session)",
                "data": values,
            }

        user = await services.users.get(caller.user_id)
        if user is None:
            raise user_not_found()
        setting_type, settings = await services.accounts.update_settings(user, body)
        return {
            "success": True,
            "message": f"{setting_type} settings updated successfully",
            "data": settings,
        }

    # Password and account

    @router.put("/password")
    async def change_password(
        body: ChangePasswordRequest,
        user: UserRecord = Depends(require_user),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        await services.accounts.change_password(user, body.current_password, body.new_password)
        return {"success": True, "message": "Password updated successfully"}

    @router.delete("/account")
    async def delete_account(
        body: DeleteAccountRequest,
        user: UserRecord = Depends(require_user),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        await services.accounts.delete_account(user, body.password)
        return {"success": True, "message": "Account deleted successfully"}

    @router.get("/export")
    async def export_data(
        user: UserRecord = Depends(require_user),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        return {
            "success": True,
            "data": services.accounts.export(user),
            "message": "Data exported successfully",
        }

    return router
