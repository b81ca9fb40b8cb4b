"""PostgreSQL-backed repository for moderation items."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Collection, Mapping, Optional

import asyncpg

from moddesk.moderation.domain.models import (
    CasGuard,
    EscalationHistoryEntry,
    ItemKind,
    ItemStats,
    ItemStatus,
    ModerationItem,
    NewItem,
    OPEN_STATUSES,
    ReasonCode,
    SubjectRef,
)
from moddesk.moderation.domain.repository import ModerationRepository, check_changes
from moddesk.moderation.domain.roles import RoleTier

_ITEM_COLUMNS = """
    id, kind, post_id, user_id, originator_id, reason_code, free_text, status,
    assigned_to, assigned_role, escalated_from, escalated_by, escalated_at,
    escalation_reason, resolved_by, resolution_notes, resolved_at, created_at, updated_at
"""

_HISTORY_COLUMNS = "id, item_id, from_role, to_role, escalated_by, reason, created_at"


def _db_value(value: Any) -> Any:
    if isinstance(value, RoleTier):
        return value.name
    if isinstance(value, (ItemStatus, ItemKind, ReasonCode)):
        return value.value
    return value


class PostgresModerationRepository(ModerationRepository):
    """Persists moderation items using asyncpg.

    Conditional writes are a single ``UPDATE ... WHERE`` over the guarded
    columns so the database decides which of two racing writers wins.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def get_by_id(self, item_id: str) -> ModerationItem | None:
        query = f"SELECT {_ITEM_COLUMNS} FROM mod_item WHERE id = $1"
        record = await self.pool.fetchrow(query, item_id)
        if record is None:
            return None
        return _item_from_record(record)

    async def create_item(self, new: NewItem) -> ModerationItem:
        query = f"""
        INSERT INTO mod_item (kind, post_id, user_id, originator_id, reason_code, free_text, status, assigned_role)
        VALUES ($1, $2, $3, $4, $5, $6, 'pending', $7)
        RETURNING {_ITEM_COLUMNS}
        """
        record = await self.pool.fetchrow(
            query,
            new.kind.value,
            new.subject.post_id,
            new.subject.user_id,
            new.originator_id,
            new.reason_code.value,
            new.free_text,
            new.assigned_role.name,
        )
        assert record is not None
        return _item_from_record(record)

    async def cas_update(
        self,
        item_id: str,
        expected: CasGuard,
        changes: Mapping[str, Any],
        *,
        history: EscalationHistoryEntry | None = None,
    ) -> ModerationItem | None:
        check_changes(changes)
        fields = sorted(changes)
        assignments = ", ".join(f"{name} = ${index}" for index, name in enumerate(fields, start=5))
        query = f"""
        UPDATE mod_item
        SET {assignments}{", " if assignments else ""}updated_at = now()
        WHERE id = $1
          AND status = ANY($2::text[])
          AND assigned_to IS NOT DISTINCT FROM $3
          AND assigned_role = $4
        RETURNING {_ITEM_COLUMNS}
        """
        args = [
            item_id,
            [status.value for status in expected.statuses],
            expected.assigned_to,
            expected.assigned_role.name,
            *(_db_value(changes[name]) for name in fields),
        ]
        if history is None:
            record = await self.pool.fetchrow(query, *args)
            return _item_from_record(record) if record is not None else None

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                record = await conn.fetchrow(query, *args)
                if record is None:
                    return None
                await _insert_history(conn, history)
        return _item_from_record(record)

    async def append_history(self, entry: EscalationHistoryEntry) -> EscalationHistoryEntry:
        async with self.pool.acquire() as conn:
            return await _insert_history(conn, entry)

    async def list_history(self, item_id: str) -> list[EscalationHistoryEntry]:
        query = f"""
        SELECT {_HISTORY_COLUMNS}
        FROM mod_escalation_history
        WHERE item_id = $1
        ORDER BY created_at ASC, seq ASC
        """
        records = await self.pool.fetch(query, item_id)
        return [_history_from_record(record) for record in records]

    async def list_by_status(
        self,
        *,
        statuses: Collection[ItemStatus] | None,
        assigned_roles: Collection[RoleTier] | None,
        kind: ItemKind | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ModerationItem]:
        clauses: list[str] = []
        args: list[Any] = []
        if statuses is not None:
            args.append([status.value for status in statuses])
            clauses.append(f"status = ANY(${len(args)}::text[])")
        if assigned_roles is not None:
            args.append([role.name for role in assigned_roles])
            clauses.append(f"assigned_role = ANY(${len(args)}::text[])")
        if kind is not None:
            args.append(kind.value)
            clauses.append(f"kind = ${len(args)}")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        args.extend([limit, offset])
        query = f"""
        SELECT {_ITEM_COLUMNS}
        FROM mod_item
        {where}
        ORDER BY created_at DESC
        LIMIT ${len(args) - 1} OFFSET ${len(args)}
        """
        records = await self.pool.fetch(query, *args)
        return [_item_from_record(record) for record in records]

    async def find_open_item(
        self,
        *,
        kind: ItemKind,
        originator_id: str,
        post_id: str | None = None,
        user_id: str | None = None,
    ) -> ModerationItem | None:
        query = f"""
        SELECT {_ITEM_COLUMNS}
        FROM mod_item
        WHERE kind = $1
          AND originator_id = $2
          AND ($3::text IS NULL OR post_id = $3)
          AND ($4::text IS NULL OR user_id = $4)
          AND status = ANY($5::text[])
        LIMIT 1
        """
        record = await self.pool.fetchrow(
            query,
            kind.value,
            originator_id,
            post_id,
            user_id,
            [status.value for status in OPEN_STATUSES],
        )
        return _item_from_record(record) if record is not None else None

    async def count_by_status(
        self,
        *,
        assigned_roles: Collection[RoleTier],
        resolved_since: datetime,
    ) -> ItemStats:
        query = """
        SELECT
            COUNT(*) FILTER (WHERE status = 'pending') AS pending,
            COUNT(*) FILTER (WHERE status = 'reviewing') AS reviewing,
            COUNT(*) FILTER (WHERE status = 'escalated') AS escalated,
            COUNT(*) FILTER (WHERE status LIKE 'resolved_%' AND resolved_at >= $2) AS resolved_today
        FROM mod_item
        WHERE assigned_role = ANY($1::text[])
        """
        record = await self.pool.fetchrow(query, [role.name for role in assigned_roles], resolved_since)
        assert record is not None
        return ItemStats(
            pending=int(record["pending"]),
            reviewing=int(record["reviewing"]),
            escalated=int(record["escalated"]),
            resolved_today=int(record["resolved_today"]),
        )

    async def count_open_reports(self, user_id: str) -> int:
        query = """
        SELECT COUNT(*) FROM mod_item
        WHERE kind = 'report' AND user_id = $1 AND status IN ('pending', 'reviewing', 'escalated')
        """
        return int(await self.pool.fetchval(query, user_id) or 0)


async def _insert_history(conn: asyncpg.Connection, entry: EscalationHistoryEntry) -> EscalationHistoryEntry:
    query = f"""
    INSERT INTO mod_escalation_history (id, item_id, from_role, to_role, escalated_by, reason, created_at)
    VALUES ($1, $2, $3, $4, $5, $6, $7)
    RETURNING {_HISTORY_COLUMNS}
    """
    record = await conn.fetchrow(
        query,
        entry.entry_id,
        entry.item_id,
        entry.from_role.name,
        entry.to_role.name,
        entry.escalated_by,
        entry.reason,
        entry.created_at,
    )
    assert record is not None
    return _history_from_record(record)


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _item_from_record(record: asyncpg.Record) -> ModerationItem:
    return ModerationItem(
        item_id=str(record["id"]),
        kind=ItemKind(record["kind"]),
        subject=SubjectRef(post_id=_optional_str(record["post_id"]), user_id=_optional_str(record["user_id"])),
        originator_id=_optional_str(record["originator_id"]),
        reason_code=ReasonCode(record["reason_code"]),
        free_text=_optional_str(record["free_text"]),
        status=ItemStatus(record["status"]),
        assigned_role=RoleTier[record["assigned_role"]],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
        assigned_to=_optional_str(record["assigned_to"]),
        escalated_from=_optional_str(record["escalated_from"]),
        escalated_by=_optional_str(record["escalated_by"]),
        escalated_at=record["escalated_at"],
        escalation_reason=_optional_str(record["escalation_reason"]),
        resolved_by=_optional_str(record["resolved_by"]),
        resolution_notes=_optional_str(record["resolution_notes"]),
        resolved_at=record["resolved_at"],
    )


def _history_from_record(record: asyncpg.Record) -> EscalationHistoryEntry:
    return EscalationHistoryEntry(
        entry_id=str(record["id"]),
        item_id=str(record["item_id"]),
        from_role=RoleTier[record["from_role"]],
        to_role=RoleTier[record["to_role"]],
        escalated_by=str(record["escalated_by"]),
        reason=str(record["reason"]),
        created_at=record["created_at"],
    )
