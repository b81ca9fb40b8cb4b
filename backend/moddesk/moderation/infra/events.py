"""Redis stream publisher for moderation queue events."""

from __future__ import annotations

from datetime import datetime, timezone

from redis.asyncio import Redis

from moddesk.infra.redis import RedisProxy
from moddesk.moderation.domain.events import ItemEvents
from moddesk.moderation.domain.models import ModerationItem


class RedisItemEvents(ItemEvents):
    """Appends one entry per event to a capped stream read by staff notifiers."""

    def __init__(self, redis: Redis | RedisProxy, stream: str = "mod:items", maxlen: int = 10_000) -> None:
        self.redis = redis
        self.stream = stream
        self.maxlen = maxlen

    async def publish(self, event: str, item: ModerationItem) -> None:
        body = {
            "event": event,
            "item_id": item.item_id,
            "kind": item.kind.value,
            "status": item.status.value,
            "assigned_role": item.assigned_role.name,
            "reason_code": item.reason_code.value,
            "post_id": item.subject.post_id or "",
            "user_id": item.subject.user_id or "",
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        await self.redis.xadd(self.stream, body, maxlen=self.maxlen, approximate=True)
