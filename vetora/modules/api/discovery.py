"""
Auth discovery endpoint.

Tells clients which sign-in methods this deployment supports before they
render a login screen.
"""

from typing import Dict

from fastapi import APIRouter

from vetora.config.provider import ConfigProvider


def create_discovery_router(config_provider: ConfigProvider) -> APIRouter:
    """
    Create the discovery router with an injected config provider.

    Args:
        config_provider: Configuration provider instance

    Returns:
        FastAPI router with discovery endpoints
    """
    router = APIRouter(tags=["discovery"])

    @router.get("/.well-known/vetora-auth")
    async def get_auth_config() -> Dict:
        """
        Get authentication configuration for clients.

        Returns:
            Enabled methods plus the public identifiers each one needs
        """
        oauth_config = config_provider.get_oauth_config()
        webauthn_config = config_provider.get_webauthn_config()

        response = {
            "authentication_methods": ["password", "wallet", "biometric"],
            "token_type": "Bearer",
            "endpoints": {
                "login": "/api/auth/login",
                "refresh": "/api/auth/refresh",
                "logout": "/api/auth/logout",
            },
            "webauthn": {
                "rp_id": webauthn_config.rp_id,
                "rp_name": webauthn_config.rp_name,
                "user_verification": webauthn_config.user_verification,
            },
        }

        if oauth_config.google_enabled:
            response["authentication_methods"].append("google")
            response["google"] = {"client_id": oauth_config.google_client_id}

        if oauth_config.apple_enabled:
            response["authentication_methods"].append("apple")
            response["apple"] = {
                "client_id": oauth_config.apple_client_id,
                "issuer": oauth_config.apple_issuer,
            }

        return response

    return router
