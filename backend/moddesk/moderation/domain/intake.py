"""Filing of new flags and reports into the review queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

from moddesk.moderation.domain import audit
from moddesk.moderation.domain.collaborators import PostsModeration
from moddesk.moderation.domain.errors import ItemNotFoundError, ValidationFailedError
from moddesk.moderation.domain.events import ItemEvents, NullItemEvents, announce
from moddesk.moderation.domain.models import (
    ItemKind,
    ModerationItem,
    NewItem,
    ReasonCode,
    SubjectRef,
)
from moddesk.moderation.domain.repository import ModerationRepository
from moddesk.moderation.domain.roles import DEFAULT_HIERARCHY, RoleHierarchy, RoleTier
from moddesk.obs import metrics as obs_metrics

MAX_FREE_TEXT_LENGTH = 2000


def resolve_baseline_overrides(
    overrides: Mapping[str, str] | None,
    hierarchy: RoleHierarchy = DEFAULT_HIERARCHY,
) -> dict[ReasonCode, RoleTier]:
    """Map configured per-reason baselines to tiers.

    Raises ``ValueError`` for an unknown reason code, an unknown tier, or a
    tier below the staff ladder.
    """
    resolved: dict[ReasonCode, RoleTier] = {}
    for reason_name, tier_name in (overrides or {}).items():
        try:
            reason = ReasonCode(str(reason_name).strip().lower())
        except ValueError as exc:
            raise ValueError(f"unknown_reason_code:{reason_name}") from exc
        tier = hierarchy.parse(tier_name)
        if not hierarchy.is_staff(tier):
            raise ValueError(f"baseline_not_staff:{reason.value}={tier.name}")
        resolved[reason] = tier
    return resolved


def baseline_tier(
    reason: ReasonCode,
    overrides: Mapping[str, str] | None = None,
    hierarchy: RoleHierarchy = DEFAULT_HIERARCHY,
) -> RoleTier:
    """Tier that first reviews an item filed for ``reason``."""
    return resolve_baseline_overrides(overrides, hierarchy).get(reason, RoleTier.JUNIOR_MOD)


def _clean_text(value: Optional[str]) -> Optional[str]:
    text = (value or "").strip()
    if len(text) > MAX_FREE_TEXT_LENGTH:
        raise ValidationFailedError("free_text_too_long")
    return text or None


@dataclass
class ItemIntake:
    repository: ModerationRepository
    posts: PostsModeration
    events: ItemEvents = field(default_factory=NullItemEvents)
    baseline_overrides: Mapping[str, str] = field(default_factory=dict)
    hierarchy: RoleHierarchy = DEFAULT_HIERARCHY

    def __post_init__(self) -> None:
        self._baselines = resolve_baseline_overrides(self.baseline_overrides, self.hierarchy)

    async def submit_flag(
        self,
        *,
        post_id: str,
        flagger_id: Optional[str],
        reason_code: ReasonCode,
        comments: Optional[str] = None,
    ) -> ModerationItem:
        """File a content flag. ``flagger_id=None`` marks an automated detection."""
        author_id = await self.posts.author_of(post_id)
        if author_id is None:
            raise ItemNotFoundError(f"post:{post_id}")
        subject = SubjectRef(post_id=post_id)
        if flagger_id is not None:
            if author_id == flagger_id:
                raise ValidationFailedError("cannot_flag_own_post")
            existing = await self.repository.find_open_item(
                kind=ItemKind.FLAG, originator_id=flagger_id, post_id=post_id
            )
            if existing is not None:
                raise ValidationFailedError("duplicate_flag")
        return await self._file(ItemKind.FLAG, subject, flagger_id, reason_code, _clean_text(comments))

    async def submit_report(
        self,
        *,
        reported_user_id: str,
        reporter_id: str,
        reason_code: ReasonCode,
        comments: Optional[str] = None,
        post_id: Optional[str] = None,
    ) -> ModerationItem:
        if not reporter_id:
            raise ValidationFailedError("reporter_required")
        if reported_user_id == reporter_id:
            raise ValidationFailedError("cannot_report_self")
        if post_id is not None:
            author_id = await self.posts.author_of(post_id)
            if author_id is None:
                raise ItemNotFoundError(f"post:{post_id}")
            if author_id != reported_user_id:
                raise ValidationFailedError("post_not_by_reported_user")
        subject = SubjectRef(post_id=post_id, user_id=reported_user_id)
        existing = await self.repository.find_open_item(
            kind=ItemKind.REPORT, originator_id=reporter_id, user_id=reported_user_id
        )
        if existing is not None:
            raise ValidationFailedError("duplicate_report")
        return await self._file(ItemKind.REPORT, subject, reporter_id, reason_code, _clean_text(comments))

    async def _file(
        self,
        kind: ItemKind,
        subject: SubjectRef,
        originator_id: Optional[str],
        reason_code: ReasonCode,
        free_text: Optional[str],
    ) -> ModerationItem:
        item = await self.repository.create_item(
            NewItem(
                kind=kind,
                subject=subject,
                originator_id=originator_id,
                reason_code=reason_code,
                free_text=free_text,
                assigned_role=self._baselines.get(reason_code, RoleTier.JUNIOR_MOD),
            )
        )
        obs_metrics.MOD_ITEMS_SUBMITTED_TOTAL.labels(kind=kind.value, reason=reason_code.value).inc()
        audit.record("item.submit", item, None, originator_id=originator_id, reason_code=reason_code.value)
        await announce(self.events, "submitted", item)
        return item
