"""
API Module - Black Box Interface

Purpose: HTTP surface of the auth service
Interface: create_auth_router, create_biometric_router, create_account_router,
           create_discovery_router
Hidden: Request models, response shaping, dependency wiring
"""

from .account_routes import create_account_router
from .auth_routes import create_auth_router
from .biometric_routes import create_biometric_router
from .discovery import create_discovery_router

__all__ = [
    "create_account_router",
    "create_auth_router",
    "create_biometric_router",
    "create_discovery_router",
]
