"""
Test doubles shared by the unit and API tests.

FakeRedis implements the subset of the redis.asyncio client the service uses,
with string values (decode_responses=True) and wall-clock TTLs.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from vetora.config.provider import (
    APIConfig,
    EmailConfig,
    JWTConfig,
    OAuthConfig,
    RoleSyncConfig,
    SecurityConfig,
    WebAuthnConfig,
)


class FakeRedis:
    """In-memory async Redis double."""

    def __init__(self):
        self._values: Dict[str, Any] = {}
        self._expiry: Dict[str, float] = {}
        self.closed = False

    def _alive(self, key: str) -> bool:
        deadline = self._expiry.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self._values.pop(key, None)
            self._expiry.pop(key, None)
        return key in self._values

    def expire_now(self, key: str) -> None:
        """Force a key past its TTL."""
        if key in self._values:
            self._expiry[key] = time.monotonic() - 1

    def keys_matching(self, prefix: str) -> List[str]:
        return sorted(k for k in list(self._values) if k.startswith(prefix) and self._alive(k))

    # Strings

    async def get(self, key: str) -> Optional[str]:
        if not self._alive(key):
            return None
        value = self._values[key]
        return value if isinstance(value, str) else None

    async def set(self, key: str, value: Any, nx: bool = False, ex: Optional[int] = None):
        if nx and self._alive(key):
            return None
        self._values[key] = str(value)
        self._expiry.pop(key, None)
        if ex:
            self._expiry[key] = time.monotonic() + ex
        return True

    async def setex(self, key: str, ttl: int, value: Any):
        return await self.set(key, value, ex=ttl)

    async def incr(self, key: str) -> int:
        current = int(await self.get(key) or 0) + 1
        deadline = self._expiry.get(key)
        self._values[key] = str(current)
        if deadline is not None:
            self._expiry[key] = deadline
        return current

    async def expire(self, key: str, ttl: int) -> bool:
        if not self._alive(key):
            return False
        self._expiry[key] = time.monotonic() + ttl
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self._values.pop(key, None)
            self._expiry.pop(key, None)
        return removed

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if self._alive(key))

    # Sets

    def _set(self, key: str) -> Set[str]:
        if not self._alive(key):
            self._values[key] = set()
        return self._values[key]

    async def sadd(self, key: str, *members: str) -> int:
        target = self._set(key)
        added = len(set(members) - target)
        target.update(members)
        return added

    async def srem(self, key: str, *members: str) -> int:
        target = self._set(key)
        removed = len(target & set(members))
        target.difference_update(members)
        return removed

    async def sismember(self, key: str, member: str) -> bool:
        return self._alive(key) and member in self._values[key]

    async def smembers(self, key: str) -> Set[str]:
        return set(self._values[key]) if self._alive(key) else set()

    # Lists

    def _list(self, key: str) -> List[str]:
        if not self._alive(key):
            self._values[key] = []
        return self._values[key]

    async def lpush(self, key: str, *values: str) -> int:
        target = self._list(key)
        for value in values:
            target.insert(0, value)
        return len(target)

    async def ltrim(self, key: str, start: int, end: int) -> bool:
        target = self._list(key)
        target[:] = target[start:end + 1 if end != -1 else None]
        return True

    async def lrange(self, key: str, start: int, end: int) -> List[str]:
        if not self._alive(key):
            return []
        return list(self._values[key][start:end + 1 if end != -1 else None])

    # Connection

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True


@dataclass
class StaticConfigProvider:
    """ConfigProvider with fixed, test-friendly values."""
    jwt: JWTConfig = field(
        default_factory=lambda: JWTConfig(
            secret="test-access-secret",
            refresh_secret="test-refresh-secret",
            refresh_store="memory",
        )
    )
    webauthn: WebAuthnConfig = field(
        default_factory=lambda: WebAuthnConfig(
            rp_id="localhost",
            rp_name="Vetora",
            origin="http://localhost:4000",
        )
    )
    oauth: OAuthConfig = field(
        default_factory=lambda: OAuthConfig(
            google_client_id="google-client-id",
            apple_client_id="com.vetora.app",
        )
    )
    security: SecurityConfig = field(
        default_factory=lambda: SecurityConfig(
            environment="test",
            require_https=True,
            slow_down_delay_ms=0,
            bcrypt_rounds=4,
        )
    )
    role_sync: RoleSyncConfig = field(default_factory=RoleSyncConfig)
    email: EmailConfig = field(
        default_factory=lambda: EmailConfig(smtp_host=None, frontend_url="http://localhost:4000")
    )
    api: APIConfig = field(
        default_factory=lambda: APIConfig(
            port=5000, host="127.0.0.1", debug=False, environment="test"
        )
    )

    def get_jwt_config(self) -> JWTConfig:
        return self.jwt

    def get_webauthn_config(self) -> WebAuthnConfig:
        return self.webauthn

    def get_oauth_config(self) -> OAuthConfig:
        return self.oauth

    def get_security_config(self) -> SecurityConfig:
        return self.security

    def get_role_sync_config(self) -> RoleSyncConfig:
        return self.role_sync

    def get_email_config(self) -> EmailConfig:
        return self.email

    def get_api_config(self) -> APIConfig:
        return self.api
