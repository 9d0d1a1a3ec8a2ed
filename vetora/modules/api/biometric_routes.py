"""
Biometric (WebAuthn) routes under /api/auth/biometric.

BiometricSecurityMiddleware runs in front of every route here; request body
validators run first thing inside each handler.
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, Request

from .auth_routes import session_payload
from .dependencies import get_services, require_user
from .models import (
    BiometricAuthenticateRequest,
    BiometricAuthOptionsRequest,
    BiometricRegisterRequest,
)
from ..auth.service import AuthServices
from ..biometric import DeviceInfo, validate_challenge_id, validate_credential_structure
from ..users import UserRecord

logger = logging.getLogger(__name__)


def create_biometric_router() -> APIRouter:
    """
    Create the biometric router.

    Returns:
        FastAPI router to be mounted under /api/auth/biometric
    """
    router = APIRouter(tags=["biometric"])

    @router.post("/generate-registration-options")
    async def generate_registration_options(
        user: UserRecord = Depends(require_user),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        result = await services.biometric.generate_registration_options(user)
        return {"success": True, **result}

    @router.post("/register")
    async def register(
        body: BiometricRegisterRequest,
        user: UserRecord = Depends(require_user),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        validate_challenge_id(body.challenge_id)
        validate_credential_structure(body.registration_response, "registration")
        result = await services.biometric.register(user, body.registration_response, body.challenge_id)
        return {
            "success": True,
            "message": "Biometric credentials registered successfully",
            "biometric": result,
        }

    @router.post("/generate-authentication-options")
    async def generate_authentication_options(
        body: BiometricAuthOptionsRequest,
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        result = await services.biometric.generate_authentication_options(
            user_email=body.user_email, credential_id=body.credential_id
        )
        return {"success": True, **result}

    @router.post("/authenticate")
    async def authenticate(
        body: BiometricAuthenticateRequest,
        request: Request,
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        validate_challenge_id(body.challenge_id)
        validate_credential_structure(body.authentication_response, "authentication")
        device = DeviceInfo(
            user_agent=request.headers.get("user-agent") or "Unknown",
            ip_address=request.state.device_info["ip"],
        )
        user = await services.biometric.authenticate(
            body.authentication_response, body.challenge_id, device
        )
        return {
            "success": True,
            "message": "Biometric authentication successful",
            **await session_payload(services, user),
            "authMethod": "biometric",
        }

    @router.delete("/remove")
    async def remove(
        user: UserRecord = Depends(require_user),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        await services.biometric.remove(user)
        return {"success": True, "message": "Biometric credentials removed successfully"}

    @router.get("/status")
    async def status(
        user: UserRecord = Depends(require_user),
        services: AuthServices = Depends(get_services),
    ) -> Dict:
        return {"success": True, "biometric": services.biometric.status(user)}

    return router
