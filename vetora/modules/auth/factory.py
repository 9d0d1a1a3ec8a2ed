"""
Authentication Factory following Black Box Design principles.

This factory:
- Constructs the authentication stack from configuration
- Wires stores, verifiers and services together
- Returns the AuthServices container used by the API layer
"""

import logging
from typing import Any

from .accounts import AccountService
from .audit import AuditLog
from .passwords import PasswordHasher
from .roles import VendorRoleSync
from .service import AuthServices
from .tokens import InMemoryRefreshTokenStore, RedisRefreshTokenStore, TokenIssuer
from ..biometric import BiometricChallengeManager, WebAuthnVerifier
from ..email import EmailService
from ..oauth import AppleIdentityVerifier, GoogleTokenVerifier, WalletSignatureVerifier
from ..users import UserStore, VendorStoreRegistry
from ...config.provider import ConfigProvider

logger = logging.getLogger(__name__)


class AuthFactory:
    """
    Factory for building the authentication stack.

    This is the composition root: every component receives its collaborators
    through its constructor, so tests can build the same graph over a fake
    Redis client.
    """

    @staticmethod
    def build(config_provider: ConfigProvider, redis_client: Any) -> AuthServices:
        """
        Build the complete authentication stack.

        Args:
            config_provider: Configuration provider
            redis_client: Async Redis client shared by all stores

        Returns:
            AuthServices container
        """
        jwt_config = config_provider.get_jwt_config()
        webauthn_config = config_provider.get_webauthn_config()
        oauth_config = config_provider.get_oauth_config()
        security_config = config_provider.get_security_config()
        role_sync_config = config_provider.get_role_sync_config()
        email_config = config_provider.get_email_config()
        api_config = config_provider.get_api_config()

        if jwt_config.refresh_store == "memory":
            logger.warning("Refresh tokens kept in process memory; they are lost on restart")
            refresh_store = InMemoryRefreshTokenStore()
        else:
            refresh_store = RedisRefreshTokenStore(redis_client)

        audit = AuditLog(redis_client)
        users = UserStore(redis_client)
        vendors = VendorStoreRegistry(redis_client)
        passwords = PasswordHasher(rounds=security_config.bcrypt_rounds)
        tokens = TokenIssuer(jwt_config, refresh_store)
        roles = VendorRoleSync(
            users, vendors, redis_client, cache_ttl=role_sync_config.cache_ttl, audit=audit
        )
        biometric = BiometricChallengeManager(
            users, WebAuthnVerifier(webauthn_config), redis_client, webauthn_config, audit=audit
        )
        google = GoogleTokenVerifier(oauth_config)
        apple = AppleIdentityVerifier(oauth_config)
        wallet = WalletSignatureVerifier()
        email = EmailService(email_config)
        accounts = AccountService(
            users,
            passwords,
            google,
            apple,
            wallet,
            email,
            frontend_url=email_config.frontend_url,
            audit=audit,
        )

        logger.info(
            f"Auth stack built: google={'on' if oauth_config.google_enabled else 'off'} "
            f"apple={'on' if oauth_config.apple_enabled else 'off'} "
            f"rp_id={webauthn_config.rp_id} refresh_store={jwt_config.refresh_store}"
        )

        return AuthServices(
            redis=redis_client,
            users=users,
            vendors=vendors,
            audit=audit,
            passwords=passwords,
            tokens=tokens,
            roles=roles,
            biometric=biometric,
            google=google,
            apple=apple,
            wallet=wallet,
            email=email,
            accounts=accounts,
            api_config=api_config,
            webauthn_config=webauthn_config,
            oauth_config=oauth_config,
            security_config=security_config,
            role_sync_config=role_sync_config,
        )
