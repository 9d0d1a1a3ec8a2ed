"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass, field
from typing import List, Optional, Protocol


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class JWTConfig:
    """Token signing configuration."""
    secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    refresh_store: str = "redis"


@dataclass
class WebAuthnConfig:
    """WebAuthn relying party configuration."""
    rp_id: str
    rp_name: str
    origin: str
    timeout_ms: int = 300000
    auth_timeout_cap_ms: int = 120000
    attestation: str = "none"
    user_verification: str = "preferred"
    max_auth_challenges: int = 5
    max_recent_devices: int = 10
    verify_timeout: float = 10.0

    @property
    def auth_timeout_ms(self) -> int:
        """Authentication challenges live shorter than registration ones."""
        return min(self.timeout_ms, self.auth_timeout_cap_ms)


@dataclass
class OAuthConfig:
    """Third-party sign-in configuration."""
    google_client_id: Optional[str] = None
    apple_client_id: Optional[str] = None
    google_tokeninfo_url: str = "https://oauth2.googleapis.com/tokeninfo"
    apple_issuer: str = "https://appleid.apple.com"
    apple_jwks_uri: str = "https://appleid.apple.com/auth/keys"
    http_timeout: float = 5.0

    @property
    def google_enabled(self) -> bool:
        return bool(self.google_client_id)

    @property
    def apple_enabled(self) -> bool:
        return bool(self.apple_client_id)


@dataclass
class SecurityConfig:
    """Biometric endpoint hardening configuration."""
    environment: str = "development"
    require_https: bool = True
    rate_limit_window: int = 900
    rate_limit_max: int = 10
    slow_down_after: int = 3
    slow_down_delay_ms: int = 500
    slow_down_max_delay_ms: int = 20000
    trust_proxy: bool = False
    bcrypt_rounds: int = 12

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@dataclass
class RoleSyncConfig:
    """Vendor role synchronisation configuration."""
    cache_ttl: int = 300
    sweep_interval: int = 0


@dataclass
class EmailConfig:
    """Outbound email configuration."""
    smtp_host: Optional[str]
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    sender: str = "Vetora <no-reply@vetora.local>"
    use_tls: bool = True
    frontend_url: str = "http://localhost:4000"

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host)


@dataclass
class APIConfig:
    """API configuration."""
    port: int
    host: str
    debug: bool
    environment: str
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_jwt_config(self) -> JWTConfig:
        """Get token signing configuration."""
        ...

    def get_webauthn_config(self) -> WebAuthnConfig:
        """Get WebAuthn configuration."""
        ...

    def get_oauth_config(self) -> OAuthConfig:
        """Get OAuth configuration."""
        ...

    def get_security_config(self) -> SecurityConfig:
        """Get biometric hardening configuration."""
        ...

    def get_role_sync_config(self) -> RoleSyncConfig:
        """Get role sync configuration."""
        ...

    def get_email_config(self) -> EmailConfig:
        """Get email configuration."""
        ...

    def get_api_config(self) -> APIConfig:
        """Get API configuration."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_jwt_config(self) -> JWTConfig:
        """Get token signing configuration from environment variables."""
        secret = os.getenv("JWT_SECRET")
        refresh_secret = os.getenv("REFRESH_TOKEN_SECRET")
        # Secrets are required - no default for security
        if not secret or not refresh_secret:
            raise ValueError(
                "JWT_SECRET and REFRESH_TOKEN_SECRET environment variables are required. "
                "Generate them with: openssl rand -hex 32"
            )
        return JWTConfig(
            secret=secret,
            refresh_secret=refresh_secret,
            algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            refresh_store=os.getenv("REFRESH_TOKEN_STORE", "redis").lower(),
        )

    def get_webauthn_config(self) -> WebAuthnConfig:
        """Get WebAuthn configuration from environment variables."""
        return WebAuthnConfig(
            rp_id=os.getenv("RP_ID", "localhost"),
            rp_name=os.getenv("RP_NAME", "Vetora"),
            origin=os.getenv("FRONTEND_URL", "http://localhost:4000"),
            timeout_ms=int(os.getenv("WEBAUTHN_TIMEOUT", "300000")),
            attestation=os.getenv("WEBAUTHN_ATTESTATION", "none"),
            user_verification=os.getenv("WEBAUTHN_USER_VERIFICATION", "preferred"),
            verify_timeout=float(os.getenv("WEBAUTHN_VERIFY_TIMEOUT", "10")),
        )

    def get_oauth_config(self) -> OAuthConfig:
        """Get OAuth configuration from environment variables."""
        return OAuthConfig(
            google_client_id=os.getenv("GOOGLE_CLIENT_ID"),
            apple_client_id=os.getenv("APPLE_CLIENT_ID"),
            http_timeout=float(os.getenv("OAUTH_HTTP_TIMEOUT", "5")),
        )

    def get_security_config(self) -> SecurityConfig:
        """Get biometric hardening configuration from environment variables."""
        return SecurityConfig(
            environment=os.getenv("ENVIRONMENT", "development"),
            require_https=_env_bool("BIOMETRIC_REQUIRE_HTTPS", "true"),
            rate_limit_window=int(os.getenv("BIOMETRIC_RATE_WINDOW", "900")),
            rate_limit_max=int(os.getenv("BIOMETRIC_RATE_MAX", "10")),
            trust_proxy=_env_bool("TRUST_PROXY"),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
        )

    def get_role_sync_config(self) -> RoleSyncConfig:
        """Get role sync configuration from environment variables."""
        return RoleSyncConfig(
            cache_ttl=int(os.getenv("ROLE_CACHE_TTL", "300")),
            sweep_interval=int(os.getenv("ROLE_SYNC_INTERVAL", "0")),
        )

    def get_email_config(self) -> EmailConfig:
        """Get email configuration from environment variables."""
        return EmailConfig(
            smtp_host=os.getenv("SMTP_HOST"),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_user=os.getenv("SMTP_USER"),
            smtp_password=os.getenv("SMTP_PASSWORD"),
            sender=os.getenv("EMAIL_FROM", "Vetora <no-reply@vetora.local>"),
            use_tls=_env_bool("SMTP_USE_TLS", "true"),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:4000"),
        )

    def get_api_config(self) -> APIConfig:
        """Get API configuration from environment variables."""
        return APIConfig(
            port=int(os.getenv("API_PORT", "5000")),
            host=os.getenv("API_HOST", "0.0.0.0"),
            debug=_env_bool("API_DEBUG"),
            environment=os.getenv("ENVIRONMENT", "development"),
            cors_origins=os.getenv("CORS_ORIGINS", "*").split(","),
        )
