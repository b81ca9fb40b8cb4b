"""Single-owner claiming of moderation items."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from moddesk.moderation.domain import audit
from moddesk.moderation.domain.collaborators import IdentityDirectory
from moddesk.moderation.domain.errors import ConcurrentModificationError, ItemNotFoundError
from moddesk.moderation.domain.models import (
    CLAIMABLE_STATUSES,
    CasGuard,
    ItemStatus,
    ModerationItem,
)
from moddesk.moderation.domain.rbac import ActorContext, StaffAction, authorize, subject_role_of
from moddesk.moderation.domain.repository import ModerationRepository
from moddesk.moderation.domain.roles import DEFAULT_HIERARCHY, RoleHierarchy
from moddesk.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


@dataclass
class ClaimCoordinator:
    repository: ModerationRepository
    hierarchy: RoleHierarchy = DEFAULT_HIERARCHY
    identity: Optional[IdentityDirectory] = None

    async def claim(self, *, item_id: str, actor: ActorContext) -> ModerationItem:
        item = await self.repository.get_by_id(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        subject_role = await subject_role_of(self.identity, item)
        authorize(self.hierarchy, actor, StaffAction.CLAIM, item, subject_role=subject_role)
        if item.status is ItemStatus.REVIEWING and item.assigned_to == actor.actor_id:
            return item
        if item.status not in CLAIMABLE_STATUSES:
            obs_metrics.MOD_CAS_CONFLICTS_TOTAL.labels(operation="claim").inc()
            raise ConcurrentModificationError("already_claimed")

        # Only an unclaimed row still waiting at the tier we authorized against may be taken.
        guard = CasGuard(
            statuses=CLAIMABLE_STATUSES,
            assigned_to=None,
            assigned_role=item.assigned_role,
        )
        updated = await self.repository.cas_update(
            item_id,
            guard,
            {"status": ItemStatus.REVIEWING, "assigned_to": actor.actor_id},
        )
        if updated is None:
            obs_metrics.MOD_CAS_CONFLICTS_TOTAL.labels(operation="claim").inc()
            logger.info("moderation_claim_conflict", extra={"item_id": item_id, "actor_id": actor.actor_id})
            raise ConcurrentModificationError("item_changed")
        obs_metrics.MOD_ITEM_TRANSITIONS_TOTAL.labels(transition=f"{item.status.value}_to_reviewing").inc()
        audit.record("item.claim", updated, actor, previous_status=item.status.value)
        return updated
