"""
Service container handed to the API layer.

Routes and dependencies reach every collaborator through one AuthServices
instance stored on app.state.services; nothing below the API layer knows
about FastAPI.
"""

from dataclasses import dataclass
from typing import Any

from .accounts import AccountService
from .audit import AuditLog
from .passwords import PasswordHasher
from .roles import VendorRoleSync
from .tokens import TokenIssuer
from ..biometric import BiometricChallengeManager
from ..email import EmailService
from ..oauth import AppleIdentityVerifier, GoogleTokenVerifier, WalletSignatureVerifier
from ..users import UserStore, VendorStoreRegistry
from ...config.provider import (
    APIConfig,
    OAuthConfig,
    RoleSyncConfig,
    SecurityConfig,
    WebAuthnConfig,
)


@dataclass
class AuthServices:
    """Everything the auth endpoints need, already wired."""
    redis: Any
    users: UserStore
    vendors: VendorStoreRegistry
    audit: AuditLog
    passwords: PasswordHasher
    tokens: TokenIssuer
    roles: VendorRoleSync
    biometric: BiometricChallengeManager
    google: GoogleTokenVerifier
    apple: AppleIdentityVerifier
    wallet: WalletSignatureVerifier
    email: EmailService
    accounts: AccountService
    api_config: APIConfig
    webauthn_config: WebAuthnConfig
    oauth_config: OAuthConfig
    security_config: SecurityConfig
    role_sync_config: RoleSyncConfig

    @property
    def is_development(self) -> bool:
        return self.api_config.is_development
