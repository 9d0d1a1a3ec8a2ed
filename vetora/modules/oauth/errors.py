"""Typed failures of third-party identity verification."""
from enum import Enum


class OAuthErrorKind(str, Enum):
    """Why a provider token was not accepted."""

    MALFORMED = "malformed"
    INVALID_TOKEN = "invalid_token"
    AUDIENCE_MISMATCH = "audience_mismatch"
    EXPIRED = "expired"
    MISSING_SUBJECT = "missing_subject"
    PROVIDER_TIMEOUT = "provider_timeout"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    NOT_CONFIGURED = "not_configured"


class OAuthVerificationError(Exception):
    """Raised by identity verifiers."""

    def __init__(self, kind: OAuthErrorKind, detail: str = ""):
        super().__init__(detail or kind.value)
        self.kind = kind
        self.detail = detail
