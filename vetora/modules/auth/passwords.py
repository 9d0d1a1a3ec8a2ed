"""Password hashing with bcrypt."""
import asyncio
import secrets
from typing import Optional

import bcrypt


class PasswordHasher:
    """bcrypt hashing; the work happens in a thread so the event loop stays free."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.rounds)).decode()

    def verify(self, password: str, hashed: Optional[str]) -> bool:
        if not password or not hashed:
            return False
        try:
            return bcrypt.checkpw(password.encode(), hashed.encode())
        except ValueError:
            # Not a bcrypt hash
            return False

    async def hash_async(self, password: str) -> str:
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, password: str, hashed: Optional[str]) -> bool:
        return await asyncio.to_thread(self.verify, password, hashed)

    @staticmethod
    def random_password() -> str:
        """Throwaway password for accounts created through a social provider."""
        return secrets.token_urlsafe(24)
