"""Google One Tap / Sign-In id_token verification via the tokeninfo endpoint."""
import logging
from typing import Any, Dict, Optional

import httpx

from .errors import OAuthErrorKind, OAuthVerificationError
from ...config.provider import OAuthConfig

logger = logging.getLogger(__name__)


class GoogleTokenVerifier:
    """
    Verifies Google id_tokens by asking Google.

    Google checks the signature and expiry; this class checks the audience
    and extracts the identity.
    """

    def __init__(self, config: OAuthConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.client_id = config.google_client_id
        self.transport = transport

    async def _fetch(self, id_token: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.config.http_timeout, transport=self.transport) as client:
            response = await client.get(self.config.google_tokeninfo_url, params={"id_token": id_token})
        if response.status_code == 400:
            raise OAuthVerificationError(OAuthErrorKind.MALFORMED, response.text[:200])
        response.raise_for_status()
        return response.json()

    async def verify(self, id_token: str) -> Dict[str, Any]:
        """
        Verify an id_token.

        Returns:
            Dict with sub, email (lowercased, may be empty) and name

        Raises:
            OAuthVerificationError: See OAuthErrorKind
        """
        if not self.client_id:
            raise OAuthVerificationError(OAuthErrorKind.NOT_CONFIGURED, "GOOGLE_CLIENT_ID not set")

        try:
            data = await self._fetch(id_token)
        except httpx.TimeoutException as e:
            logger.warning(f"Google tokeninfo timed out: {e}")
            raise OAuthVerificationError(OAuthErrorKind.PROVIDER_TIMEOUT, str(e))
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Google tokeninfo request failed: {e}")
            raise OAuthVerificationError(OAuthErrorKind.PROVIDER_UNAVAILABLE, str(e))

        if not data:
            raise OAuthVerificationError(OAuthErrorKind.INVALID_TOKEN, "no data received")

        if data.get("aud") != self.client_id:
            logger.warning(f"Google token audience mismatch: {data.get('aud')}")
            raise OAuthVerificationError(OAuthErrorKind.AUDIENCE_MISMATCH, f"aud={data.get('aud')}")

        if not data.get("sub"):
            raise OAuthVerificationError(OAuthErrorKind.MISSING_SUBJECT)

        email = (data.get("email") or "").lower()
        return {
            "sub": data["sub"],
            "email": email,
            "name": data.get("name") or (email.split("@")[0] if email else None),
        }
