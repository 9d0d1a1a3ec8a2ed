"""
Sign in with Apple identity token verification.

Identity tokens are RS256 JWTs signed with keys published at Apple's JWKS
endpoint; issuer, audience and expiry are enforced.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWKClient
from jwt.exceptions import PyJWKClientConnectionError, PyJWKClientError

from .errors import OAuthErrorKind, OAuthVerificationError
from ...config.provider import OAuthConfig

logger = logging.getLogger(__name__)


class AppleIdentityVerifier:
    """Validates Apple identity tokens via JWKS."""

    def __init__(self, config: OAuthConfig, jwks_client: Optional[PyJWKClient] = None):
        """
        Initialize Apple verifier with injected config.

        Args:
            config: OAuth configuration object
            jwks_client: Optional pre-built JWKS client (tests)
        """
        self.config = config
        self.issuer = config.apple_issuer
        self.audience = config.apple_client_id
        self.jwks_client = jwks_client or PyJWKClient(
            config.apple_jwks_uri,
            cache_keys=True,
            lifespan=3600  # Cache keys for 1 hour
        )

    def _decode(self, token: str) -> Dict[str, Any]:
        signing_key = self.jwks_client.get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=self.audience,
            issuer=self.issuer,
            options={
                "verify_signature": True,
                "verify_aud": True,
                "verify_iss": True,
                "verify_exp": True,
            }
        )

    async def verify(self, identity_token: str) -> Dict[str, Any]:
        """
        Verify an identity token.

        Returns:
            Dict with sub, email (lowercased, may be empty) and name

        Raises:
            OAuthVerificationError: See OAuthErrorKind
        """
        if not self.audience:
            raise OAuthVerificationError(OAuthErrorKind.NOT_CONFIGURED, "APPLE_CLIENT_ID not set")

        try:
            claims = await asyncio.to_thread(self._decode, identity_token)
        except jwt.ExpiredSignatureError:
            logger.debug("Apple identity token expired")
            raise OAuthVerificationError(OAuthErrorKind.EXPIRED)
        except (jwt.InvalidAudienceError, jwt.InvalidIssuerError) as e:
            logger.debug(f"Apple identity token iss/aud mismatch: {e}")
            raise OAuthVerificationError(OAuthErrorKind.AUDIENCE_MISMATCH, str(e))
        except jwt.InvalidSignatureError as e:
            logger.debug(f"Apple identity token signature mismatch: {e}")
            raise OAuthVerificationError(OAuthErrorKind.INVALID_TOKEN, str(e))
        except jwt.DecodeError as e:
            logger.debug(f"Malformed Apple identity token: {e}")
            raise OAuthVerificationError(OAuthErrorKind.MALFORMED, str(e))
        except PyJWKClientConnectionError as e:
            logger.error(f"Apple JWKS unreachable: {e}")
            raise OAuthVerificationError(OAuthErrorKind.PROVIDER_UNAVAILABLE, str(e))
        except (PyJWKClientError, jwt.InvalidTokenError) as e:
            logger.debug(f"Invalid Apple identity token: {e}")
            raise OAuthVerificationError(OAuthErrorKind.INVALID_TOKEN, str(e))

        if not claims.get("sub"):
            raise OAuthVerificationError(OAuthErrorKind.MISSING_SUBJECT)

        email = (claims.get("email") or "").lower()
        return {
            "sub": claims["sub"],
            "email": email,
            "name": email.split("@")[0] if email else None,
        }
