"""Review queue endpoints for moderation staff."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from moddesk.moderation.api.errors import error_response
from moddesk.infra.auth import AuthenticatedUser, get_current_user
from moddesk.moderation.domain.container import get_moderation_service
from moddesk.moderation.domain.models import EscalationHistoryEntry, ItemDetail, ItemStats, ModerationItem
from moddesk.moderation.domain.roles import RoleTier
from moddesk.moderation.domain.service import ModerationService, ServiceResult

router = APIRouter(prefix="/api/mod/v1/items", tags=["moderation-items"])

StatusName = Literal[
    "pending",
    "reviewing",
    "escalated",
    "resolved_removed",
    "resolved_flagged",
    "resolved_dismissed",
]


class ItemOut(BaseModel):
    item_id: str
    kind: Literal["flag", "report"]
    post_id: str | None
    user_id: str | None
    originator_id: str | None
    reason_code: str
    free_text: str | None
    status: StatusName
    assigned_role: str
    assigned_to: str | None
    escalated_from: str | None
    escalated_by: str | None
    escalated_at: datetime | None
    escalation_reason: str | None
    resolved_by: str | None
    resolution_notes: str | None
    resolved_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, item: ModerationItem) -> "ItemOut":
        return cls(
            item_id=item.item_id,
            kind=item.kind.value,
            post_id=item.subject.post_id,
            user_id=item.subject.user_id,
            originator_id=item.originator_id,
            reason_code=item.reason_code.value,
            free_text=item.free_text,
            status=item.status.value,
            assigned_role=item.assigned_role.name,
            assigned_to=item.assigned_to,
            escalated_from=item.escalated_from,
            escalated_by=item.escalated_by,
            escalated_at=item.escalated_at,
            escalation_reason=item.escalation_reason,
            resolved_by=item.resolved_by,
            resolution_notes=item.resolution_notes,
            resolved_at=item.resolved_at,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )


class HistoryOut(BaseModel):
    entry_id: str
    from_role: str
    to_role: str
    escalated_by: str
    reason: str
    created_at: datetime

    @classmethod
    def from_model(cls, entry: EscalationHistoryEntry) -> "HistoryOut":
        return cls(
            entry_id=entry.entry_id,
            from_role=entry.from_role.name,
            to_role=entry.to_role.name,
            escalated_by=entry.escalated_by,
            reason=entry.reason,
            created_at=entry.created_at,
        )


class ItemDetailOut(ItemOut):
    history: list[HistoryOut]

    @classmethod
    def from_detail(cls, detail: ItemDetail) -> "ItemDetailOut":
        base = ItemOut.from_model(detail.item)
        return cls(**base.model_dump(), history=[HistoryOut.from_model(entry) for entry in detail.history])


class ItemResultOut(BaseModel):
    ok: bool = True
    item: ItemOut
    side_effect_error: str | None = None


class StatsOut(BaseModel):
    pending: int
    reviewing: int
    escalated: int
    resolved_today: int

    @classmethod
    def from_model(cls, stats: ItemStats) -> "StatsOut":
        return cls(
            pending=stats.pending,
            reviewing=stats.reviewing,
            escalated=stats.escalated,
            resolved_today=stats.resolved_today,
        )


class RoleOut(BaseModel):
    role: str
    rank: int
    display_name: str


class EscalateIn(BaseModel):
    target_role: str = Field(..., description="Tier name, e.g. SENIOR_MOD")
    reason: str


class ResolveIn(BaseModel):
    disposition: Literal["removed", "flagged", "dismissed"]
    notes: str | None = None


def get_moderation_service_dep() -> ModerationService:
    return get_moderation_service()


def _item_result(result: ServiceResult[ModerationItem]) -> ItemResultOut:
    return ItemResultOut(item=ItemOut.from_model(result.value), side_effect_error=result.side_effect_error)


@router.get("", response_model=list[ItemOut])
async def list_items(
    *,
    status: list[StatusName] | None = Query(default=None),
    kind: Literal["flag", "report", None] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
    service: ModerationService = Depends(get_moderation_service_dep),
):
    result = await service.list_items(user.id, statuses=status, kind=kind, limit=limit, offset=offset)
    if not result.ok:
        return error_response(result.error_kind, result.message)
    return [ItemOut.from_model(item) for item in result.value]


@router.get("/stats", response_model=StatsOut)
async def item_stats(
    user: AuthenticatedUser = Depends(get_current_user),
    service: ModerationService = Depends(get_moderation_service_dep),
):
    result = await service.item_stats(user.id)
    if not result.ok:
        return error_response(result.error_kind, result.message)
    return StatsOut.from_model(result.value)


@router.get("/escalation-targets", response_model=list[RoleOut])
async def escalation_targets(
    user: AuthenticatedUser = Depends(get_current_user),
    service: ModerationService = Depends(get_moderation_service_dep),
):
    result = await service.escalation_targets(user.id)
    if not result.ok:
        return error_response(result.error_kind, result.message)
    tiers: tuple[RoleTier, ...] = result.value
    return [
        RoleOut(role=tier.name, rank=service.hierarchy.rank_of(tier), display_name=tier.display_name)
        for tier in tiers
    ]


@router.get("/{item_id}", response_model=ItemDetailOut)
async def get_item(
    item_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ModerationService = Depends(get_moderation_service_dep),
):
    result = await service.get_item(user.id, item_id)
    if not result.ok:
        return error_response(result.error_kind, result.message)
    return ItemDetailOut.from_detail(result.value)


@router.post("/{item_id}/claim", response_model=ItemResultOut)
async def claim_item(
    item_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ModerationService = Depends(get_moderation_service_dep),
):
    result = await service.claim(user.id, item_id)
    if not result.ok:
        return error_response(result.error_kind, result.message)
    return _item_result(result)


@router.post("/{item_id}/escalate", response_model=ItemResultOut)
async def escalate_item(
    item_id: str,
    body: EscalateIn,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ModerationService = Depends(get_moderation_service_dep),
):
    result = await service.escalate(user.id, item_id, target_role=body.target_role, reason=body.reason)
    if not result.ok:
        return error_response(result.error_kind, result.message)
    return _item_result(result)


@router.post("/{item_id}/resolve", response_model=ItemResultOut)
async def resolve_item(
    item_id: str,
    body: ResolveIn,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ModerationService = Depends(get_moderation_service_dep),
):
    result = await service.resolve(user.id, item_id, disposition=body.disposition, notes=body.notes)
    if not result.ok:
        return error_response(result.error_kind, result.message)
    return _item_result(result)
