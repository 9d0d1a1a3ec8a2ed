"""
JWT issuing and refresh token bookkeeping.

Tokens carry only {"userId"} plus an issued-at claim and never expire;
verification ignores exp. Refresh tokens stay valid while they are present in
the injected RefreshTokenStore.
"""

import logging
import time
from typing import Set, Tuple

import jwt

from .errors import AuthError
from .interfaces import RefreshTokenStore
from ...config.provider import JWTConfig

logger = logging.getLogger(__name__)

REFRESH_TOKENS_KEY = "auth:refresh_tokens"


class InMemoryRefreshTokenStore:
    """Process-local refresh token set."""

    def __init__(self):
        self._tokens: Set[str] = set()

    async def add(self, token: str) -> None:
        self._tokens.add(token)

    async def contains(self, token: str) -> bool:
        return token in self._tokens

    async def discard(self, token: str) -> None:
        self._tokens.discard(token)


class RedisRefreshTokenStore:
    """Refresh token set shared by every API process."""

    def __init__(self, redis_client, key: str = REFRESH_TOKENS_KEY):
        self.redis = redis_client
        self.key = key

    async def add(self, token: str) -> None:
        await self.redis.sadd(self.key, token)

    async def contains(self, token: str) -> bool:
        return bool(await self.redis.sismember(self.key, token))

    async def discard(self, token: str) -> None:
        await self.redis.srem(self.key, token)


class TokenIssuer:
    """Mints and verifies access and refresh tokens."""

    def __init__(self, config: JWTConfig, refresh_store: RefreshTokenStore):
        self.config = config
        self.refresh_store = refresh_store

    def _encode(self, user_id: str, secret: str) -> str:
        return jwt.encode(
            {"userId": user_id, "iat": int(time.time())},
            secret,
            algorithm=self.config.algorithm,
        )

    def _decode(self, token: str, secret: str) -> str:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[self.config.algorithm],
            options={"verify_exp": False},
        )
        user_id = claims.get("userId")
        if not user_id or not isinstance(user_id, str):
            raise jwt.InvalidTokenError("Token has no userId claim")
        return user_id

    def issue_access_token(self, user_id: str) -> str:
        return self._encode(user_id, self.config.secret)

    async def issue_refresh_token(self, user_id: str) -> str:
        token = self._encode(user_id, self.config.refresh_secret)
        await self.refresh_store.add(token)
        return token

    async def issue_pair(self, user_id: str) -> Tuple[str, str]:
        """Return (access_token, refresh_token)."""
        return self.issue_access_token(user_id), await self.issue_refresh_token(user_id)

    def verify_access_token(self, token: str) -> str:
        """
        Verify an access token and return its user id.

        Raises:
            jwt.InvalidTokenError: Bad signature, malformed token or no userId
        """
        return self._decode(token, self.config.secret)

    def verify_refresh_token(self, token: str) -> str:
        return self._decode(token, self.config.refresh_secret)

    async def refresh(self, refresh_token: str, users) -> str:
        """
        Exchange a refresh token for a new access token.

        Args:
            refresh_token: Token previously issued by issue_refresh_token
            users: UserStore used to check the account still exists

        Raises:
            AuthError: 400 missing token, 403 unknown or invalid token, 404 no user
        """
        if not refresh_token:
            raise AuthError(400, "Refresh token is required")

        if not await self.refresh_store.contains(refresh_token):
            raise AuthError(403, "Invalid refresh token")

        try:
            user_id = self.verify_refresh_token(refresh_token)
        except jwt.InvalidTokenError as e:
            logger.info(f"Discarding unverifiable refresh token: {e}")
            await self.refresh_store.discard(refresh_token)
            raise AuthError(403, "Invalid refresh token")

        if await users.get(user_id) is None:
            raise AuthError(404, "User not found")

        return self.issue_access_token(user_id)

    async def revoke(self, refresh_token: str) -> None:
        if refresh_token:
            await self.refresh_store.discard(refresh_token)
