"""
Vendor role synchronisation.

A user's effective role follows vendor store ownership:
- owns a store                  -> vendor
- no store but stored as vendor -> user
- otherwise                     -> the stored role

Request handlers only read roles (the stored role is cached). Writing a corrected role back to
the user document is done by sync_user(), which request handlers schedule as a
background task when they notice drift, and by sync_all() sweeps.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .audit import AuditLog
from ..users import UserRole, UserStore, VendorStoreRegistry

logger = logging.getLogger(__name__)


@dataclass
class RoleResolution:
    """Effective role of a user and whether the stored role disagrees."""
    role: str
    stored_role: Optional[str] = None
    drift: bool = False


def derive_role(stored_role: str, has_store: bool) -> str:
    if has_store:
        return UserRole.VENDOR.value
    if stored_role == UserRole.VENDOR.value:
        return UserRole.USER.value
    return stored_role


class VendorRoleSync:
    """Resolves effective roles and reconciles stored ones."""

    def __init__(
        self,
        users: UserStore,
        vendors: VendorStoreRegistry,
        redis_client,
        cache_ttl: int = 300,
        audit: Optional[AuditLog] = None,
    ):
        self.users = users
        self.vendors = vendors
        self.redis = redis_client
        self.cache_ttl = cache_ttl
        self.audit = audit
        vendors.on_change(self.invalidate)

    @staticmethod
    def _cache_key(user_id: str) -> str:
        return f"role:cache:{user_id}"

    async def invalidate(self, user_id: str) -> None:
        await self.redis.delete(self._cache_key(user_id))

    async def resolve_role(self, user_id: str) -> RoleResolution:
        """
        Effective role for a user without writing the user document.

        The stored role is cached; store ownership is checked on every call
        against the key the marketplace writes, so a store opened or closed
        outside this service takes effect immediately.
        """
        stored = await self.redis.get(self._cache_key(user_id))
        if not stored:
            user = await self.users.get(user_id)
            if user is None:
                return RoleResolution(role=UserRole.USER.value)
            stored = user.role.value
            if self.cache_ttl > 0:
                await self.redis.setex(self._cache_key(user_id), self.cache_ttl, stored)

        role = derive_role(stored, await self.vendors.has_store(user_id))
        return RoleResolution(role=role, stored_role=stored, drift=role != stored)

    async def sync_user(self, user_id: str) -> bool:
        """
        Write the derived role to the user document if it differs.

        Idempotent: returns True only when a change was written.
        """
        user = await self.users.get(user_id)
        if user is None:
            return False

        stored = user.role.value
        role = derive_role(stored, await self.vendors.has_store(user_id))
        await self.invalidate(user_id)
        if role == stored:
            return False

        user.role = UserRole(role)
        await self.users.save(user)
        logger.info(f"Role for user {user_id} synced: {stored} -> {role}")
        if self.audit:
            await self.audit.record("role_synced", {"user": user_id, "from": stored, "to": role})
        return True

    async def sync_all(self) -> int:
        """Sweep every user; returns the number of roles corrected."""
        changed = 0
        for user_id in await self.users.all_ids():
            try:
                if await self.sync_user(user_id):
                    changed += 1
            except Exception as e:
                logger.error(f"Role sync failed for user {user_id}: {e}")
        logger.info(f"Role sweep complete: {changed} role(s) corrected")
        return changed

    async def run_periodic(self, interval: int) -> None:
        """Sweep forever, every interval seconds, until cancelled."""
        logger.info(f"Background role sync every {interval}s")
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sync_all()
            except Exception as e:
                logger.error(f"Role sweep failed: {e}")
