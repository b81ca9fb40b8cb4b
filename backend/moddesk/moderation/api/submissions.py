"""User-facing endpoints for flagging posts and reporting accounts."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from moddesk.moderation.api.errors import error_response
from moddesk.infra.auth import AuthenticatedUser, get_current_user
from moddesk.moderation.api.items import ItemOut, ItemResultOut, get_moderation_service_dep
from moddesk.moderation.domain.service import ModerationService

router = APIRouter(prefix="/api/mod/v1", tags=["moderation-submissions"])


class FlagIn(BaseModel):
    post_id: str
    reason_code: str
    comments: str | None = Field(default=None, max_length=2000)


class ReportIn(BaseModel):
    reported_user_id: str
    reason_code: str
    post_id: str | None = None
    comments: str | None = Field(default=None, max_length=2000)


@router.post("/flags", response_model=ItemResultOut, status_code=status.HTTP_201_CREATED)
async def submit_flag(
    body: FlagIn,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ModerationService = Depends(get_moderation_service_dep),
):
    result = await service.submit_flag(
        post_id=body.post_id,
        flagger_id=user.id,
        reason_code=body.reason_code,
        comments=body.comments,
    )
    if not result.ok:
        return error_response(result.error_kind, result.message)
    return ItemResultOut(item=ItemOut.from_model(result.value))


@router.post("/reports", response_model=ItemResultOut, status_code=status.HTTP_201_CREATED)
async def submit_report(
    body: ReportIn,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ModerationService = Depends(get_moderation_service_dep),
):
    result = await service.submit_report(
        reported_user_id=body.reported_user_id,
        reporter_id=user.id,
        reason_code=body.reason_code,
        comments=body.comments,
        post_id=body.post_id,
    )
    if not result.ok:
        return error_response(result.error_kind, result.message)
    return ItemResultOut(item=ItemOut.from_model(result.value))


class PendingReportsOut(BaseModel):
    has_pending_reports: bool
    count: int


@router.get("/reports/pending", response_model=PendingReportsOut)
async def pending_reports(
    user: AuthenticatedUser = Depends(get_current_user),
    service: ModerationService = Depends(get_moderation_service_dep),
):
    result = await service.pending_reports(user.id)
    if not result.ok:
        return error_response(result.error_kind, result.message)
    return PendingReportsOut(has_pending_reports=result.value > 0, count=result.value)
