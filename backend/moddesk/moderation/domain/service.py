"""Facade over the moderation engines used by the HTTP layer and staff tooling.

Every public coroutine returns a :class:`ServiceResult`; workflow errors and
collaborator failures never propagate to the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, time as dt_time
from typing import Any, Awaitable, Callable, Collection, Generic, Mapping, Optional, TypeVar

from moddesk.moderation.domain.claims import ClaimCoordinator
from moddesk.moderation.domain.collaborators import IdentityDirectory, PostsModeration
from moddesk.moderation.domain.errors import (
    ErrorKind,
    ItemNotFoundError,
    ModerationWorkflowError,
    ValidationFailedError,
)
from moddesk.moderation.domain.escalation import EscalationEngine
from moddesk.moderation.domain.events import ItemEvents, NullItemEvents
from moddesk.moderation.domain.intake import ItemIntake
from moddesk.moderation.domain.models import (
    Disposition,
    ItemDetail,
    ItemKind,
    ItemStats,
    ItemStatus,
    ModerationItem,
    ReasonCode,
    utcnow,
)
from moddesk.moderation.domain.rbac import ActorContext, StaffAction, authorize
from moddesk.moderation.domain.repository import ModerationRepository
from moddesk.moderation.domain.resolution import ResolutionEngine
from moddesk.moderation.domain.roles import DEFAULT_HIERARCHY, RoleHierarchy, RoleTier
from moddesk.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_PAGE_SIZE = 200


@dataclass(slots=True)
class ServiceResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    side_effect_error: Optional[str] = None

    @property
    def item(self) -> Optional[T]:
        return self.value

    @classmethod
    def success(cls, value: T, *, side_effect_error: Optional[str] = None) -> "ServiceResult[T]":
        return cls(ok=True, value=value, side_effect_error=side_effect_error)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "ServiceResult[T]":
        return cls(ok=False, error_kind=kind, message=message)


def _parse_enum(enum_type: Any, value: Any, message: str) -> Any:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationFailedError(message) from exc


def _parse_role(hierarchy: RoleHierarchy, value: RoleTier | str | int) -> RoleTier:
    try:
        return hierarchy.parse(value)
    except ValueError as exc:
        raise ValidationFailedError("invalid_escalation_target") from exc


@dataclass
class ModerationService:
    repository: ModerationRepository
    identity: IdentityDirectory
    posts: PostsModeration
    hierarchy: RoleHierarchy = DEFAULT_HIERARCHY
    events: ItemEvents = field(default_factory=NullItemEvents)
    baseline_overrides: Mapping[str, str] = field(default_factory=dict)
    clock: Callable[[], datetime] = utcnow

    def __post_init__(self) -> None:
        self.claims = ClaimCoordinator(repository=self.repository, hierarchy=self.hierarchy, identity=self.identity)
        self.escalations = EscalationEngine(
            repository=self.repository,
            hierarchy=self.hierarchy,
            events=self.events,
            clock=self.clock,
        )
        self.resolutions = ResolutionEngine(
            repository=self.repository,
            posts=self.posts,
            hierarchy=self.hierarchy,
            identity=self.identity,
            clock=self.clock,
        )
        self.intake = ItemIntake(
            repository=self.repository,
            posts=self.posts,
            events=self.events,
            baseline_overrides=self.baseline_overrides,
            hierarchy=self.hierarchy,
        )

    async def _actor(self, actor_id: str) -> ActorContext:
        role = await self.identity.role_of(actor_id)
        return ActorContext(actor_id=actor_id, role=role)

    async def _run(self, operation: str, call: Callable[[], Awaitable[T]]) -> ServiceResult[T]:
        try:
            value = await call()
        except ModerationWorkflowError as exc:
            return ServiceResult.failure(exc.kind, exc.message)
        except Exception:
            logger.exception("moderation_operation_failed", extra={"operation": operation})
            return ServiceResult.failure(ErrorKind.INTERNAL, "try_again")
        return ServiceResult.success(value)

    # Queue reads

    async def list_items(
        self,
        actor_id: str,
        *,
        statuses: Optional[Collection[ItemStatus | str]] = None,
        kind: Optional[ItemKind | str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> ServiceResult[list[ModerationItem]]:
        """Items visible at the caller's tier. ``statuses=None`` means every status."""

        async def call() -> list[ModerationItem]:
            actor = await self._actor(actor_id)
            authorize(self.hierarchy, actor, StaffAction.VIEW)
            wanted = (
                None
                if statuses is None
                else {_parse_enum(ItemStatus, status, "invalid_status") for status in statuses}
            )
            wanted_kind = None if kind is None else _parse_enum(ItemKind, kind, "invalid_kind")
            if limit < 1 or offset < 0:
                raise ValidationFailedError("invalid_page")
            started = time.perf_counter()
            items = await self.repository.list_by_status(
                statuses=wanted,
                assigned_roles=self.hierarchy.visible_tiers(actor.role),
                kind=wanted_kind,
                limit=min(limit, MAX_PAGE_SIZE),
                offset=offset,
            )
            obs_metrics.MOD_ITEM_LIST_LATENCY_MS.observe((time.perf_counter() - started) * 1000.0)
            return items

        return await self._run("list_items", call)

    async def get_item(self, actor_id: str, item_id: str) -> ServiceResult[ItemDetail]:
        async def call() -> ItemDetail:
            actor = await self._actor(actor_id)
            item = await self.repository.get_by_id(item_id)
            if item is None:
                raise ItemNotFoundError(item_id)
            authorize(self.hierarchy, actor, StaffAction.VIEW, item)
            history = await self.repository.list_history(item_id)
            return ItemDetail(item=item, history=history)

        return await self._run("get_item", call)

    async def item_stats(self, actor_id: str) -> ServiceResult[ItemStats]:
        async def call() -> ItemStats:
            actor = await self._actor(actor_id)
            authorize(self.hierarchy, actor, StaffAction.VIEW)
            now = self.clock()
            midnight = datetime.combine(now.date(), dt_time.min, tzinfo=now.tzinfo)
            return await self.repository.count_by_status(
                assigned_roles=self.hierarchy.visible_tiers(actor.role),
                resolved_since=midnight,
            )

        return await self._run("item_stats", call)

    async def escalation_targets(self, actor_id: str) -> ServiceResult[tuple[RoleTier, ...]]:
        async def call() -> tuple[RoleTier, ...]:
            actor = await self._actor(actor_id)
            authorize(self.hierarchy, actor, StaffAction.VIEW)
            return self.hierarchy.escalation_targets(actor.role)

        return await self._run("escalation_targets", call)

    # Workflow transitions

    async def claim(self, actor_id: str, item_id: str) -> ServiceResult[ModerationItem]:
        async def call() -> ModerationItem:
            actor = await self._actor(actor_id)
            return await self.claims.claim(item_id=item_id, actor=actor)

        return await self._run("claim", call)

    async def escalate(
        self,
        actor_id: str,
        item_id: str,
        *,
        target_role: RoleTier | str | int,
        reason: str,
    ) -> ServiceResult[ModerationItem]:
        async def call() -> ModerationItem:
            actor = await self._actor(actor_id)
            return await self.escalations.escalate(
                item_id=item_id,
                actor=actor,
                target_role=_parse_role(self.hierarchy, target_role),
                reason=reason,
            )

        return await self._run("escalate", call)

    async def resolve(
        self,
        actor_id: str,
        item_id: str,
        *,
        disposition: Disposition | str,
        notes: Optional[str] = None,
    ) -> ServiceResult[ModerationItem]:
        try:
            actor = await self._actor(actor_id)
            outcome = await self.resolutions.resolve(
                item_id=item_id,
                actor=actor,
                disposition=_parse_enum(Disposition, disposition, "invalid_disposition"),
                notes=notes,
            )
        except ModerationWorkflowError as exc:
            return ServiceResult.failure(exc.kind, exc.message)
        except Exception:
            logger.exception("moderation_operation_failed", extra={"operation": "resolve"})
            return ServiceResult.failure(ErrorKind.INTERNAL, "try_again")
        return ServiceResult.success(outcome.item, side_effect_error=outcome.side_effect_error)

    # Intake

    async def submit_flag(
        self,
        *,
        post_id: str,
        flagger_id: Optional[str],
        reason_code: ReasonCode | str,
        comments: Optional[str] = None,
    ) -> ServiceResult[ModerationItem]:
        async def call() -> ModerationItem:
            return await self.intake.submit_flag(
                post_id=post_id,
                flagger_id=flagger_id,
                reason_code=_parse_enum(ReasonCode, reason_code, "invalid_reason_code"),
                comments=comments,
            )

        return await self._run("submit_flag", call)

    async def submit_report(
        self,
        *,
        reported_user_id: str,
        reporter_id: str,
        reason_code: ReasonCode | str,
        comments: Optional[str] = None,
        post_id: Optional[str] = None,
    ) -> ServiceResult[ModerationItem]:
        async def call() -> ModerationItem:
            return await self.intake.submit_report(
                reported_user_id=reported_user_id,
                reporter_id=reporter_id,
                reason_code=_parse_enum(ReasonCode, reason_code, "invalid_reason_code"),
                comments=comments,
                post_id=post_id,
            )

        return await self._run("submit_report", call)

    # Reported users

    async def pending_reports(self, user_id: str) -> ServiceResult[int]:
        """Open reports against ``user_id``, shown to that user as a warning."""

        async def call() -> int:
            if not user_id:
                raise ValidationFailedError("user_required")
            return await self.repository.count_open_reports(user_id)

        return await self._run("pending_reports", call)
