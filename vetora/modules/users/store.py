"""
Redis-backed user store.

Keys:
- user:{id}                      JSON document
- user:index:{kind}:{value}      secondary index pointing at a user id
- users:all                      set of every user id
"""

import logging
import uuid
from typing import Dict, List, Optional

from .models import UserRecord

logger = logging.getLogger(__name__)

USERS_SET = "users:all"

# index kind -> function extracting the indexed value from a user
INDEXED_FIELDS = {
    "email": lambda u: u.email.lower() if u.email else None,
    "username": lambda u: u.username.lower() if u.username else None,
    "google": lambda u: u.google_id,
    "apple": lambda u: u.apple_id,
    "wallet": lambda u: u.wallet_address.lower() if u.wallet_address else None,
    "credential": lambda u: (
        u.biometric_credentials.credential_id if u.biometric_credentials else None
    ),
    "reset": lambda u: u.reset_password_token,
}


class DuplicateUserError(ValueError):
    """Raised when a unique field is already taken."""

    def __init__(self, field: str):
        super().__init__(f"{field} already exists")
        self.field = field


class UserStore:
    """Persists user documents and keeps their indexes consistent."""

    def __init__(self, redis_client):
        """
        Initialize user store.

        Args:
            redis_client: Async Redis client (decode_responses=True)
        """
        self.redis = redis_client

    @staticmethod
    def _user_key(user_id: str) -> str:
        return f"user:{user_id}"

    @staticmethod
    def _index_key(kind: str, value: str) -> str:
        return f"user:index:{kind}:{value}"

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    async def get(self, user_id: str) -> Optional[UserRecord]:
        """Load a user by id."""
        if not user_id:
            return None
        raw = await self.redis.get(self._user_key(user_id))
        if not raw:
            return None
        return UserRecord.from_document(raw)

    async def _find(self, kind: str, value: Optional[str]) -> Optional[UserRecord]:
        if not value:
            return None
        user_id = await self.redis.get(self._index_key(kind, value))
        if not user_id:
            return None
        user = await self.get(user_id)
        if user is None:
            # Dangling index entry
            await self.redis.delete(self._index_key(kind, value))
        return user

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        return await self._find("email", email.lower() if email else None)

    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        return await self._find("username", username.lower() if username else None)

    async def find_by_google_id(self, google_id: str) -> Optional[UserRecord]:
        return await self._find("google", google_id)

    async def find_by_apple_id(self, apple_id: str) -> Optional[UserRecord]:
        return await self._find("apple", apple_id)

    async def find_by_wallet(self, address: str) -> Optional[UserRecord]:
        return await self._find("wallet", address.lower() if address else None)

    async def find_by_credential_id(self, credential_id: str) -> Optional[UserRecord]:
        return await self._find("credential", credential_id)

    async def find_by_reset_token(self, token: str) -> Optional[UserRecord]:
        return await self._find("reset", token)

    async def create(self, user: UserRecord) -> UserRecord:
        """
        Insert a new user.

        Raises:
            DuplicateUserError: If any indexed value is already claimed
        """
        claimed: List[str] = []
        for kind, value in self._index_values(user).items():
            key = self._index_key(kind, value)
            if not await self.redis.set(key, user.id, nx=True):
                for k in claimed:
                    await self.redis.delete(k)
                raise DuplicateUserError(kind)
            claimed.append(key)

        await self.redis.set(self._user_key(user.id), user.to_document())
        await self.redis.sadd(USERS_SET, user.id)
        logger.info(f"Created user {user.id} ({user.username})")
        return user

    async def save(self, user: UserRecord) -> UserRecord:
        """
        Persist changes to an existing user and re-point changed indexes.

        Raises:
            DuplicateUserError: If a changed indexed value belongs to someone else
        """
        previous = await self.get(user.id)
        old_values = self._index_values(previous) if previous else {}
        new_values = self._index_values(user)

        for kind, value in new_values.items():
            if old_values.get(kind) == value:
                continue
            key = self._index_key(kind, value)
            owner = await self.redis.get(key)
            if owner and owner != user.id:
                raise DuplicateUserError(kind)

        user.touch()
        await self.redis.set(self._user_key(user.id), user.to_document())
        await self.redis.sadd(USERS_SET, user.id)

        for kind, value in old_values.items():
            if new_values.get(kind) != value:
                await self.redis.delete(self._index_key(kind, value))
        for kind, value in new_values.items():
            if old_values.get(kind) != value:
                await self.redis.set(self._index_key(kind, value), user.id)

        return user

    async def username_taken(self, username: str, exclude_id: Optional[str] = None) -> bool:
        owner = await self.redis.get(self._index_key("username", username.lower()))
        return bool(owner) and owner != exclude_id

    async def unique_username(self, base: Optional[str]) -> str:
        """
        Derive a free username from arbitrary text.

        Lowercased, anything outside [a-z0-9_] replaced by an underscore,
        cut to 24 characters, then suffixed _1, _2, ... until free.
        """
        sanitized = "".join(
            c if c.isascii() and (c.isalnum() or c == "_") else "_"
            for c in (base or "user").lower()
        )[:24] or "user"
        candidate = sanitized
        i = 0
        while await self.username_taken(candidate):
            i += 1
            candidate = f"{sanitized}_{i}"[:30]
        return candidate

    async def all_ids(self) -> List[str]:
        return sorted(await self.redis.smembers(USERS_SET))

    @staticmethod
    def _index_values(user: UserRecord) -> Dict[str, str]:
        values = {}
        for kind, extract in INDEXED_FIELDS.items():
            value = extract(user)
            if value:
                values[kind] = value
        return values
