"""Authorization policy shared by every moderation operation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from moddesk.moderation.domain.collaborators import IdentityDirectory
from moddesk.moderation.domain.errors import InvalidStateError, UnauthorizedActionError
from moddesk.moderation.domain.models import ESCALATABLE_STATUSES, ItemKind, ItemStatus, ModerationItem
from moddesk.moderation.domain.roles import RoleHierarchy, RoleTier


class StaffAction(str, Enum):
    VIEW = "view"
    CLAIM = "claim"
    ESCALATE = "escalate"
    RESOLVE = "resolve"


SUBJECT_GUARDED_ACTIONS = frozenset({StaffAction.CLAIM, StaffAction.RESOLVE})


@dataclass(frozen=True, slots=True)
class ActorContext:
    """Who is acting and with what authority, resolved once per request."""

    actor_id: str
    role: RoleTier


def authorize(
    hierarchy: RoleHierarchy,
    actor: ActorContext,
    action: StaffAction,
    item: Optional[ModerationItem] = None,
    *,
    subject_role: Optional[RoleTier] = None,
) -> None:
    """Raise unless ``actor`` may perform ``action`` on ``item``.

    Terminal items are checked before the actor so that every mutation of a
    resolved item reports ``invalid_state`` regardless of who asks.
    ``subject_role`` is the current role of a reported user; claiming or
    resolving that report needs a strictly higher role.
    """

    if item is not None and action is not StaffAction.VIEW and item.status.is_terminal:
        raise InvalidStateError("item_resolved")
    if not hierarchy.is_staff(actor.role):
        raise UnauthorizedActionError("moderator_required")
    if item is None:
        return
    if not hierarchy.at_least(actor.role, item.assigned_role):
        raise UnauthorizedActionError("higher_role_required")
    if action in SUBJECT_GUARDED_ACTIONS and subject_role is not None:
        if hierarchy.compare(actor.role, subject_role) <= 0:
            raise UnauthorizedActionError("cannot_moderate_user")
    if action is StaffAction.ESCALATE:
        if item.status not in ESCALATABLE_STATUSES:
            raise InvalidStateError("claim_required_before_escalation")
        if item.status is ItemStatus.REVIEWING and item.assigned_to != actor.actor_id:
            raise UnauthorizedActionError("not_claimant")


async def subject_role_of(identity: Optional[IdentityDirectory], item: ModerationItem) -> Optional[RoleTier]:
    """Role of the user a report is about, or ``None`` for flags."""
    if identity is None or item.kind is not ItemKind.REPORT or item.subject.user_id is None:
        return None
    return await identity.role_of(item.subject.user_id)
