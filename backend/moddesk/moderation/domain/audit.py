from __future__ import annotations

from typing import Any

from moddesk.moderation.domain.models import ModerationItem
from moddesk.moderation.domain.rbac import ActorContext
from moddesk.obs.logging import get_logger

audit_logger = get_logger("audit.moderation")


def record(event: str, item: ModerationItem, actor: ActorContext | None, **meta: Any) -> None:
    payload: dict[str, Any] = {
        "event": event,
        "item_id": item.item_id,
        "item_kind": item.kind.value,
        "item_status": item.status.value,
        "assigned_role": item.assigned_role.name,
        "actor_id": actor.actor_id if actor else None,
        "actor_role": actor.role.name if actor else None,
    }
    payload.update(meta)
    audit_logger.info("moderation_audit", extra={key: value for key, value in payload.items() if value is not None})
