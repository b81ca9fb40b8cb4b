from __future__ import annotations

import pytest

from moddesk.moderation.domain.collaborators import InMemoryPosts
from moddesk.moderation.domain.escalation import EscalationEngine
from moddesk.moderation.domain.intake import ItemIntake
from moddesk.moderation.domain.models import ItemStatus, ReasonCode
from moddesk.moderation.domain.rbac import ActorContext
from moddesk.moderation.domain.repository import InMemoryModerationRepository
from moddesk.moderation.domain.roles import RoleTier
from moddesk.moderation.infra.events import RedisItemEvents


class ExplodingEvents:
    async def publish(self, event, item):
        raise ConnectionError("redis down")


@pytest.mark.asyncio
async def test_submitted_and_escalated_items_are_streamed(fake_redis):
    repo = InMemoryModerationRepository()
    events = RedisItemEvents(fake_redis, stream="mod:items")
    intake = ItemIntake(repository=repo, posts=InMemoryPosts(authors={"post-1": "author-1"}), events=events)
    item = await intake.submit_flag(post_id="post-1", flagger_id="user-9", reason_code=ReasonCode.HARASSMENT)

    await EscalationEngine(repo, events=events).escalate(
        item_id=item.item_id,
        actor=ActorContext(actor_id="jr-a", role=RoleTier.JUNIOR_MOD),
        target_role=RoleTier.SENIOR_MOD,
        reason="threats",
    )

    entries = await fake_redis.xrange("mod:items")
    assert [fields["event"] for _, fields in entries] == ["submitted", "escalated"]
    escalated = entries[-1][1]
    assert escalated["item_id"] == item.item_id
    assert escalated["assigned_role"] == "SENIOR_MOD"
    assert escalated["status"] == "escalated"
    assert escalated["post_id"] == "post-1"
    assert escalated["user_id"] == ""


@pytest.mark.asyncio
async def test_publish_failure_does_not_undo_escalation():
    repo = InMemoryModerationRepository()
    intake = ItemIntake(repository=repo, posts=InMemoryPosts(authors={"post-1": "author-1"}))
    item = await intake.submit_flag(post_id="post-1", flagger_id="user-9", reason_code=ReasonCode.SPAM)

    escalated = await EscalationEngine(repo, events=ExplodingEvents()).escalate(
        item_id=item.item_id,
        actor=ActorContext(actor_id="jr-a", role=RoleTier.JUNIOR_MOD),
        target_role=RoleTier.MODERATOR,
        reason="unsure",
    )

    assert escalated.status is ItemStatus.ESCALATED
    assert len(await repo.list_history(item.item_id)) == 1
