"""Hand-off of a moderation item to a higher authority tier."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from moddesk.moderation.domain import audit
from moddesk.moderation.domain.errors import (
    ConcurrentModificationError,
    ItemNotFoundError,
    ValidationFailedError,
)
from moddesk.moderation.domain.events import ItemEvents, NullItemEvents, announce
from moddesk.moderation.domain.models import ItemStatus, ModerationItem, utcnow
from moddesk.moderation.domain.rbac import ActorContext, StaffAction, authorize
from moddesk.moderation.domain.repository import ModerationRepository, new_history_entry
from moddesk.moderation.domain.roles import DEFAULT_HIERARCHY, RoleHierarchy, RoleTier
from moddesk.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 1000


@dataclass
class EscalationEngine:
    repository: ModerationRepository
    hierarchy: RoleHierarchy = DEFAULT_HIERARCHY
    events: ItemEvents = field(default_factory=NullItemEvents)
    clock: Callable[[], datetime] = utcnow

    async def escalate(
        self,
        *,
        item_id: str,
        actor: ActorContext,
        target_role: RoleTier,
        reason: str,
    ) -> ModerationItem:
        item = await self.repository.get_by_id(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        authorize(self.hierarchy, actor, StaffAction.ESCALATE, item)

        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailedError("reason_required")
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationFailedError("reason_too_long")
        if target_role not in self.hierarchy.escalation_targets(actor.role):
            raise ValidationFailedError("invalid_escalation_target")

        now = self.clock()
        entry = new_history_entry(
            item_id=item.item_id,
            from_role=actor.role,
            to_role=target_role,
            escalated_by=actor.actor_id,
            reason=reason,
            created_at=now,
        )
        # The item drops its claimant and waits, unclaimed, at the new tier.
        updated = await self.repository.cas_update(
            item_id,
            item.guard(),
            {
                "status": ItemStatus.ESCALATED,
                "assigned_role": target_role,
                "assigned_to": None,
                "escalated_from": actor.actor_id,
                "escalated_by": actor.actor_id,
                "escalated_at": now,
                "escalation_reason": reason,
            },
            history=entry,
        )
        if updated is None:
            obs_metrics.MOD_CAS_CONFLICTS_TOTAL.labels(operation="escalate").inc()
            logger.info("moderation_escalate_conflict", extra={"item_id": item_id, "actor_id": actor.actor_id})
            raise ConcurrentModificationError("item_changed")

        obs_metrics.MOD_ITEM_TRANSITIONS_TOTAL.labels(transition=f"{item.status.value}_to_escalated").inc()
        obs_metrics.MOD_ESCALATIONS_TOTAL.labels(to_role=target_role.name).inc()
        audit.record(
            "item.escalate",
            updated,
            actor,
            from_role=actor.role.name,
            to_role=target_role.name,
            reason=reason,
        )
        await announce(self.events, "escalated", updated)
        return updated
