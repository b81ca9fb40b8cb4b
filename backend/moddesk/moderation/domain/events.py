"""Announcements of items that need a moderator's attention."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from moddesk.moderation.domain.models import ModerationItem

logger = logging.getLogger(__name__)


class ItemEvents(Protocol):
    async def publish(self, event: str, item: ModerationItem) -> None:
        ...


class NullItemEvents(ItemEvents):
    async def publish(self, event: str, item: ModerationItem) -> None:
        return None


@dataclass
class RecordingItemEvents(ItemEvents):
    events: list[tuple[str, str]] = field(default_factory=list)

    async def publish(self, event: str, item: ModerationItem) -> None:
        self.events.append((event, item.item_id))


async def announce(events: ItemEvents, event: str, item: ModerationItem) -> None:
    """Publish after a committed write; a failed announcement never undoes the write."""
    try:
        await events.publish(event, item)
    except Exception:
        logger.warning(
            "moderation_event_publish_failed",
            exc_info=True,
            extra={"event": event, "item_id": item.item_id},
        )
