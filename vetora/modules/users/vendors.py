"""
Vendor store registry.

Stores themselves are owned by the marketplace service, which writes
vendor:store:{user_id} directly. Role resolution checks that key on every
request, so listeners registered with on_change only hear about stores
opened or closed through this registry.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], Awaitable[None]]


class VendorStoreRegistry:
    """Answers "does this user own a vendor store?"."""

    def __init__(self, redis_client):
        self.redis = redis_client
        self._listeners: List[ChangeListener] = []

    @staticmethod
    def _key(user_id: str) -> str:
        return f"vendor:store:{user_id}"

    def on_change(self, listener: ChangeListener) -> None:
        """Register a coroutine called with the user id after a store is opened or closed."""
        self._listeners.append(listener)

    async def has_store(self, user_id: str) -> bool:
        return bool(await self.redis.exists(self._key(user_id)))

    async def open_store(self, user_id: str, name: Optional[str] = None) -> None:
        record = {"vendorId": user_id, "name": name, "createdAt": datetime.now(UTC).isoformat()}
        await self.redis.set(self._key(user_id), json.dumps(record))
        logger.info(f"Vendor store opened for user {user_id}")
        await self._notify(user_id)

    async def close_store(self, user_id: str) -> None:
        await self.redis.delete(self._key(user_id))
        logger.info(f"Vendor store closed for user {user_id}")
        await self._notify(user_id)

    async def _notify(self, user_id: str) -> None:
        for listener in self._listeners:
            await listener(user_id)
