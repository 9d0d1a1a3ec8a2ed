"""
Vetora auth API request models.

Fields are optional at the schema level so that missing values reach the
service layer, which answers with the specific message for each case.
Bodies use camelCase keys on the wire.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# Password accounts


class RegisterRequest(RequestModel):
    """Sign-up with email and password."""

    email: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = None
    display_name: Optional[str] = None


class LoginRequest(RequestModel):
    """Sign-in; email may hold a username."""

    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    remember_me: bool = False

    @property
    def identifier(self) -> Optional[str]:
        return self.email or self.username


# Social and wallet sign-in


class GoogleAuthRequest(RequestModel):
    id_token: Optional[str] = None


class AppleAuthRequest(RequestModel):
    identity_token: Optional[str] = None


class WalletAuthRequest(RequestModel):
    wallet_address: Optional[str] = None
    signature: Optional[str] = None
    message: Optional[str] = None


# Tokens


class RefreshRequest(RequestModel):
    refresh_token: Optional[str] = None


class LogoutRequest(RequestModel):
    refresh_token: Optional[str] = None


# Biometric


class BiometricRegisterRequest(RequestModel):
    registration_response: Optional[Dict[str, Any]] = None
    challenge_id: Optional[str] = None


class BiometricAuthOptionsRequest(RequestModel):
    user_email: Optional[str] = None
    credential_id: Optional[str] = None


class BiometricAuthenticateRequest(RequestModel):
    authentication_response: Optional[Dict[str, Any]] = None
    challenge_id: Optional[str] = None


# Account


class ProfileUpdateRequest(RequestModel):
    display_name: Optional[str] = None
    username: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    avatar: Optional[str] = None
    cover: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        """Supplied fields only, camelCase keys."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ChangePasswordRequest(RequestModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class DeleteAccountRequest(RequestModel):
    password: Optional[str] = None


class ForgotPasswordRequest(RequestModel):
    email: Optional[str] = None


class ResetPasswordRequest(RequestModel):
    token: Optional[str] = None
    new_password: Optional[str] = None
