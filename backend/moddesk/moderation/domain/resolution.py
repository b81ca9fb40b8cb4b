"""Terminal dispositions and their effect on the referenced post."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from moddesk.moderation.domain import audit
from moddesk.moderation.domain.collaborators import IdentityDirectory, PostsModeration
from moddesk.moderation.domain.errors import (
    ConcurrentModificationError,
    ItemNotFoundError,
    ValidationFailedError,
)
from moddesk.moderation.domain.models import Disposition, ModerationItem, utcnow
from moddesk.moderation.domain.rbac import ActorContext, StaffAction, authorize, subject_role_of
from moddesk.moderation.domain.repository import ModerationRepository
from moddesk.moderation.domain.roles import DEFAULT_HIERARCHY, RoleHierarchy
from moddesk.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 2000
POST_SYNC_FAILED = "post_sync_failed"


@dataclass(slots=True)
class ResolutionOutcome:
    """The recorded decision, plus a marker when the post side effect did not land."""

    item: ModerationItem
    side_effect_error: Optional[str] = None


@dataclass
class ResolutionEngine:
    repository: ModerationRepository
    posts: PostsModeration
    hierarchy: RoleHierarchy = DEFAULT_HIERARCHY
    identity: Optional[IdentityDirectory] = None
    clock: Callable[[], datetime] = utcnow

    async def resolve(
        self,
        *,
        item_id: str,
        actor: ActorContext,
        disposition: Disposition,
        notes: str | None,
    ) -> ResolutionOutcome:
        item = await self.repository.get_by_id(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        subject_role = await subject_role_of(self.identity, item)
        authorize(self.hierarchy, actor, StaffAction.RESOLVE, item, subject_role=subject_role)

        cleaned = (notes or "").strip() or None
        if disposition is not Disposition.DISMISSED and cleaned is None:
            raise ValidationFailedError("notes_required")
        if cleaned is not None and len(cleaned) > MAX_NOTES_LENGTH:
            raise ValidationFailedError("notes_too_long")

        now = self.clock()
        updated = await self.repository.cas_update(
            item_id,
            item.guard(),
            {
                "status": disposition.status,
                "resolved_by": actor.actor_id,
                "resolution_notes": cleaned,
                "resolved_at": now,
            },
        )
        if updated is None:
            obs_metrics.MOD_CAS_CONFLICTS_TOTAL.labels(operation="resolve").inc()
            logger.info("moderation_resolve_conflict", extra={"item_id": item_id, "actor_id": actor.actor_id})
            raise ConcurrentModificationError("item_changed")

        obs_metrics.MOD_ITEM_TRANSITIONS_TOTAL.labels(transition=f"{item.status.value}_to_{updated.status.value}").inc()
        audit.record("item.resolve", updated, actor, disposition=disposition.value)
        side_effect_error = await self._apply_to_post(updated, actor, disposition, cleaned, now)
        return ResolutionOutcome(item=updated, side_effect_error=side_effect_error)

    async def _apply_to_post(
        self,
        item: ModerationItem,
        actor: ActorContext,
        disposition: Disposition,
        notes: str | None,
        at: datetime,
    ) -> Optional[str]:
        post_id = item.subject.post_id
        if post_id is None or disposition is Disposition.DISMISSED:
            return None
        try:
            if disposition is Disposition.REMOVED:
                await self.posts.mark_removed(post_id, notes, actor.actor_id, at)
            else:
                await self.posts.mark_sensitive(post_id, actor.actor_id, at)
        except Exception:
            # The decision stays recorded; the post update needs a manual retry.
            obs_metrics.MOD_POST_SYNC_FAILURES_TOTAL.labels(disposition=disposition.value).inc()
            logger.exception(
                "moderation_post_sync_failed",
                extra={"item_id": item.item_id, "post_id": post_id, "disposition": disposition.value},
            )
            return POST_SYNC_FAILED
        return None
