"""Security audit trail kept in a capped Redis list."""
import json
import logging
from datetime import UTC, datetime
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

AUDIT_KEY = "auth:audit"
AUDIT_MAX_ENTRIES = 10000


class AuditLog:
    """Append-only audit events for authentication activity."""

    def __init__(self, redis_client=None):
        self.redis = redis_client

    async def record(self, event_type: str, data: Dict[str, Any]) -> None:
        """Log authentication event for audit."""
        event = {
            "type": event_type,
            "data": data,
            "timestamp": datetime.now(UTC).isoformat()
        }
        logger.debug(f"Audit event {event_type}: {data}")

        if self.redis:
            await self.redis.lpush(AUDIT_KEY, json.dumps(event))
            await self.redis.ltrim(AUDIT_KEY, 0, AUDIT_MAX_ENTRIES - 1)

    async def recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        if not self.redis:
            return []
        raw = await self.redis.lrange(AUDIT_KEY, 0, limit - 1)
        return [json.loads(item) for item in raw]
