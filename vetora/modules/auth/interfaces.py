"""Authentication interfaces following Black Box Design principles."""
from typing import Any, Dict, Protocol


class RefreshTokenStore(Protocol):
    """Protocol for refresh token storage - allows swappable implementations."""

    async def add(self, token: str) -> None:
        """Remember an issued refresh token."""
        ...

    async def contains(self, token: str) -> bool:
        """Check whether a refresh token is still outstanding."""
        ...

    async def discard(self, token: str) -> None:
        """Forget a refresh token (no error if unknown)."""
        ...


class IdentityVerifier(Protocol):
    """Protocol for third-party identity token verification."""

    async def verify(self, token: str) -> Dict[str, Any]:
        """
        Verify a provider token.

        Returns:
            Normalised identity claims (sub, email, name)

        Raises:
            OAuthVerificationError: When the token cannot be accepted
        """
        ...
