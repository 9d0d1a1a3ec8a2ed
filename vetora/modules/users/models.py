"""
User document models.

Stored in Redis as camelCase JSON; the same aliases are used on the wire.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .settings import UserSettings


class UserRole(str, Enum):
    """Platform roles."""

    USER = "user"
    VENDOR = "vendor"
    MODERATOR = "moderator"
    ADMIN = "admin"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuthChallenge(CamelModel):
    """An outstanding biometric authentication challenge."""

    id: str
    challenge: str
    expiry: datetime
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(UTC)) >= self.expiry


class BiometricCredentials(CamelModel):
    """
    The single WebAuthn credential a user may hold, plus challenge state.

    The registration challenge (challenge_id/challenge/challenge_expiry) is
    single-use. auth_challenges holds the most recent authentication
    challenges, newest last.
    """

    credential_id: Optional[str] = None
    public_key: Optional[str] = None
    counter: int = 0
    transports: List[str] = Field(default_factory=list)
    algorithm: Optional[str] = None
    device_type: Optional[str] = None
    backed_up: bool = False
    registered_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    challenge_id: Optional[str] = None
    challenge: Optional[str] = None
    challenge_expiry: Optional[datetime] = None
    auth_challenges: List[AuthChallenge] = Field(default_factory=list)

    @property
    def is_registered(self) -> bool:
        return bool(self.credential_id and self.public_key)

    def clear_registration_challenge(self) -> None:
        self.challenge_id = None
        self.challenge = None
        self.challenge_expiry = None


# Fields never returned to clients
SECRET_FIELDS = {"password_hash", "reset_password_token", "reset_password_expiry"}


class UserRecord(CamelModel):
    """A Vetora account."""

    id: str
    username: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    password_hash: Optional[str] = None
    wallet_address: Optional[str] = None
    google_id: Optional[str] = None
    apple_id: Optional[str] = None
    biometric_credentials: Optional[BiometricCredentials] = None
    avatar: str = ""
    cover: str = ""
    bio: str = ""
    location: str = ""
    website: str = ""
    social_links: Dict[str, str] = Field(default_factory=dict)
    is_verified: bool = False
    is_active: bool = True
    role: UserRole = UserRole.USER
    follower_count: int = 0
    following_count: int = 0
    post_count: int = 0
    last_login_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    deleted_at: Optional[datetime] = None
    reset_password_token: Optional[str] = None
    reset_password_expiry: Optional[datetime] = None
    settings: UserSettings = Field(default_factory=UserSettings)

    @property
    def has_biometric(self) -> bool:
        return bool(self.biometric_credentials and self.biometric_credentials.is_registered)

    def touch(self) -> None:
        self.updated_at = datetime.now(UTC)

    def to_document(self) -> str:
        """Serialize for storage (includes secrets)."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_document(cls, raw: str) -> "UserRecord":
        return cls.model_validate_json(raw)

    def to_public(self) -> Dict[str, Any]:
        """Client-facing representation without secrets or credential material."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude=SECRET_FIELDS | {"biometric_credentials"},
        )
