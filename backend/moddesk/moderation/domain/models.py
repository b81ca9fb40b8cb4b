"""Moderation item records and their workflow vocabulary."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from moddesk.moderation.domain.roles import RoleTier


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ItemKind(str, Enum):
    FLAG = "flag"
    REPORT = "report"


class ReasonCode(str, Enum):
    SPAM = "spam"
    HARASSMENT = "harassment"
    MINOR_SAFETY = "minor_safety"
    NON_CONSENSUAL = "non_consensual"
    ILLEGAL = "illegal"
    MISINFORMATION = "misinformation"
    COPYRIGHT = "copyright"
    OTHER = "other"


class ItemStatus(str, Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    ESCALATED = "escalated"
    RESOLVED_REMOVED = "resolved_removed"
    RESOLVED_FLAGGED = "resolved_flagged"
    RESOLVED_DISMISSED = "resolved_dismissed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class Disposition(str, Enum):
    REMOVED = "removed"
    FLAGGED = "flagged"
    DISMISSED = "dismissed"

    @property
    def status(self) -> ItemStatus:
        return ItemStatus(f"resolved_{self.value}")


TERMINAL_STATUSES = frozenset(
    {ItemStatus.RESOLVED_REMOVED, ItemStatus.RESOLVED_FLAGGED, ItemStatus.RESOLVED_DISMISSED}
)
OPEN_STATUSES = frozenset({ItemStatus.PENDING, ItemStatus.REVIEWING, ItemStatus.ESCALATED})
CLAIMABLE_STATUSES = frozenset({ItemStatus.PENDING, ItemStatus.ESCALATED})
ESCALATABLE_STATUSES = frozenset({ItemStatus.PENDING, ItemStatus.REVIEWING})


@dataclass(frozen=True, slots=True)
class SubjectRef:
    """What an item is about: a post, a user, or a user's post."""

    post_id: Optional[str] = None
    user_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.post_id and not self.user_id:
            raise ValueError("subject_required")


@dataclass(slots=True)
class ModerationItem:
    """A flag or report moving through review.

    Flags and reports share one record shape and one state machine; ``kind``
    tells them apart.
    """

    item_id: str
    kind: ItemKind
    subject: SubjectRef
    originator_id: Optional[str]
    reason_code: ReasonCode
    free_text: Optional[str]
    status: ItemStatus
    assigned_role: RoleTier
    created_at: datetime
    updated_at: datetime
    assigned_to: Optional[str] = None
    escalated_from: Optional[str] = None
    escalated_by: Optional[str] = None
    escalated_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None
    resolved_by: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_system_origin(self) -> bool:
        return self.originator_id is None

    def guard(self) -> "CasGuard":
        """Snapshot of the fields a conditional write must still match."""
        return CasGuard(
            statuses=frozenset({self.status}),
            assigned_to=self.assigned_to,
            assigned_role=self.assigned_role,
        )


@dataclass(frozen=True, slots=True)
class CasGuard:
    """Expected current state for a compare-and-swap write."""

    statuses: frozenset[ItemStatus]
    assigned_to: Optional[str]
    assigned_role: RoleTier

    def matches(self, item: ModerationItem) -> bool:
        return (
            item.status in self.statuses
            and item.assigned_to == self.assigned_to
            and item.assigned_role == self.assigned_role
        )


@dataclass(frozen=True, slots=True)
class EscalationHistoryEntry:
    """Append-only audit row written once per escalation."""

    entry_id: str
    item_id: str
    from_role: RoleTier
    to_role: RoleTier
    escalated_by: str
    reason: str
    created_at: datetime


@dataclass(slots=True)
class NewItem:
    """Input for filing a fresh item."""

    kind: ItemKind
    subject: SubjectRef
    originator_id: Optional[str]
    reason_code: ReasonCode
    free_text: Optional[str]
    assigned_role: RoleTier


@dataclass(slots=True)
class ItemStats:
    pending: int = 0
    reviewing: int = 0
    escalated: int = 0
    resolved_today: int = 0


@dataclass(slots=True)
class ItemDetail:
    item: ModerationItem
    history: list[EscalationHistoryEntry] = field(default_factory=list)
