"""Storage contract for moderation items and an in-memory implementation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Collection, Mapping, Protocol
from uuid import uuid4

from moddesk.moderation.domain.models import (
    CasGuard,
    EscalationHistoryEntry,
    ItemKind,
    ItemStats,
    ItemStatus,
    ModerationItem,
    NewItem,
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    utcnow,
)
from moddesk.moderation.domain.roles import RoleTier

# Fields a conditional write may set. ``updated_at`` is always refreshed by the store.
MUTABLE_FIELDS = frozenset(
    {
        "status",
        "assigned_to",
        "assigned_role",
        "escalated_from",
        "escalated_by",
        "escalated_at",
        "escalation_reason",
        "resolved_by",
        "resolution_notes",
        "resolved_at",
    }
)


def check_changes(changes: Mapping[str, Any]) -> None:
    unknown = set(changes) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"immutable_fields:{','.join(sorted(unknown))}")


class ModerationRepository(Protocol):
    """Persistence used by the claim, escalation and resolution engines.

    Every mutation goes through :meth:`cas_update`, which applies ``changes``
    only while the stored row still matches ``expected``. Implementations must
    perform the comparison and the write as one atomic step.
    """

    async def get_by_id(self, item_id: str) -> ModerationItem | None:
        ...

    async def create_item(self, new: NewItem) -> ModerationItem:
        ...

    async def cas_update(
        self,
        item_id: str,
        expected: CasGuard,
        changes: Mapping[str, Any],
        *,
        history: EscalationHistoryEntry | None = None,
    ) -> ModerationItem | None:
        """Apply ``changes`` if the row matches ``expected``.

        Returns the updated item, or ``None`` when zero rows matched. When
        ``history`` is given it is appended in the same transaction as the
        update, and only if the update matched.
        """

    async def append_history(self, entry: EscalationHistoryEntry) -> EscalationHistoryEntry:
        ...

    async def list_history(self, item_id: str) -> list[EscalationHistoryEntry]:
        ...

    async def list_by_status(
        self,
        *,
        statuses: Collection[ItemStatus] | None,
        assigned_roles: Collection[RoleTier] | None,
        kind: ItemKind | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ModerationItem]:
        ...

    async def find_open_item(
        self,
        *,
        kind: ItemKind,
        originator_id: str,
        post_id: str | None = None,
        user_id: str | None = None,
    ) -> ModerationItem | None:
        """Open item of ``kind`` filed by ``originator_id`` against the given post and/or user."""

    async def count_by_status(
        self,
        *,
        assigned_roles: Collection[RoleTier],
        resolved_since: datetime,
    ) -> ItemStats:
        ...

    async def count_open_reports(self, user_id: str) -> int:
        """Open reports filed against ``user_id``."""


@dataclass
class InMemoryModerationRepository(ModerationRepository):
    """Repository with in-process state for local development and tests."""

    items: dict[str, ModerationItem] = field(default_factory=dict)
    history: dict[str, list[EscalationHistoryEntry]] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def get_by_id(self, item_id: str) -> ModerationItem | None:
        item = self.items.get(item_id)
        return replace(item) if item is not None else None

    async def create_item(self, new: NewItem) -> ModerationItem:
        now = utcnow()
        item = ModerationItem(
            item_id=str(uuid4()),
            kind=new.kind,
            subject=new.subject,
            originator_id=new.originator_id,
            reason_code=new.reason_code,
            free_text=new.free_text,
            status=ItemStatus.PENDING,
            assigned_role=new.assigned_role,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self.items[item.item_id] = item
        return replace(item)

    async def cas_update(
        self,
        item_id: str,
        expected: CasGuard,
        changes: Mapping[str, Any],
        *,
        history: EscalationHistoryEntry | None = None,
    ) -> ModerationItem | None:
        check_changes(changes)
        async with self._lock:
            current = self.items.get(item_id)
            if current is None or not expected.matches(current):
                return None
            updated = replace(current, **changes, updated_at=utcnow())
            self.items[item_id] = updated
            if history is not None:
                self.history.setdefault(item_id, []).append(history)
        return replace(updated)

    async def append_history(self, entry: EscalationHistoryEntry) -> EscalationHistoryEntry:
        async with self._lock:
            self.history.setdefault(entry.item_id, []).append(entry)
        return entry

    async def list_history(self, item_id: str) -> list[EscalationHistoryEntry]:
        return list(self.history.get(item_id, ()))

    async def list_by_status(
        self,
        *,
        statuses: Collection[ItemStatus] | None,
        assigned_roles: Collection[RoleTier] | None,
        kind: ItemKind | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ModerationItem]:
        matches = [
            replace(item)
            for item in self.items.values()
            if (statuses is None or item.status in statuses)
            and (assigned_roles is None or item.assigned_role in assigned_roles)
            and (kind is None or item.kind is kind)
        ]
        matches.sort(key=lambda item: item.created_at, reverse=True)
        return matches[offset : offset + limit]

    async def find_open_item(
        self,
        *,
        kind: ItemKind,
        originator_id: str,
        post_id: str | None = None,
        user_id: str | None = None,
    ) -> ModerationItem | None:
        for item in self.items.values():
            if (
                item.kind is kind
                and item.originator_id == originator_id
                and (post_id is None or item.subject.post_id == post_id)
                and (user_id is None or item.subject.user_id == user_id)
                and item.status in OPEN_STATUSES
            ):
                return replace(item)
        return None

    async def count_by_status(
        self,
        *,
        assigned_roles: Collection[RoleTier],
        resolved_since: datetime,
    ) -> ItemStats:
        stats = ItemStats()
        for item in self.items.values():
            if item.assigned_role not in assigned_roles:
                continue
            if item.status is ItemStatus.PENDING:
                stats.pending += 1
            elif item.status is ItemStatus.REVIEWING:
                stats.reviewing += 1
            elif item.status is ItemStatus.ESCALATED:
                stats.escalated += 1
            elif item.status in TERMINAL_STATUSES and item.resolved_at and item.resolved_at >= resolved_since:
                stats.resolved_today += 1
        return stats

    async def count_open_reports(self, user_id: str) -> int:
        return sum(
            1
            for item in self.items.values()
            if item.kind is ItemKind.REPORT and item.subject.user_id == user_id and item.status in OPEN_STATUSES
        )


def new_history_entry(
    *,
    item_id: str,
    from_role: RoleTier,
    to_role: RoleTier,
    escalated_by: str,
    reason: str,
    created_at: datetime,
) -> EscalationHistoryEntry:
    return EscalationHistoryEntry(
        entry_id=str(uuid4()),
        item_id=item_id,
        from_role=from_role,
        to_role=to_role,
        escalated_by=escalated_by,
        reason=reason,
        created_at=created_at,
    )
