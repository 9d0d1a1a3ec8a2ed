"""
Biometric Module - Black Box Interface

Purpose: WebAuthn credential registration and passwordless sign-in
Interface: BiometricChallengeManager, WebAuthnVerifier, BiometricSecurityMiddleware
Hidden: Challenge storage, replay markers, py_webauthn option/verification details
"""

from .challenges import BiometricChallengeManager, DeviceInfo
from .security import (
    BiometricSecurityMiddleware,
    validate_challenge_id,
    validate_credential_structure,
)
from .verifier import (
    RegistrationResult,
    VerificationErrorKind,
    WebAuthnVerificationError,
    WebAuthnVerifier,
)

__all__ = [
    "BiometricChallengeManager",
    "BiometricSecurityMiddleware",
    "DeviceInfo",
    "RegistrationResult",
    "VerificationErrorKind",
    "WebAuthnVerificationError",
    "WebAuthnVerifier",
    "validate_challenge_id",
    "validate_credential_structure",
]
