from __future__ import annotations

import pytest

from moddesk.moderation.domain import container
from moddesk.moderation.domain.events import NullItemEvents
from moddesk.moderation.domain.roles import RoleTier
from moddesk.moderation.infra.events import RedisItemEvents
from moddesk.moderation.infra.identity import PostgresIdentityDirectory
from moddesk.moderation.infra.postgres_repo import PostgresModerationRepository
from moddesk.moderation.infra.posts_sink import PostgresPostsModeration
from moddesk.settings import Settings, settings


class DummyPool:
    """Stands in for an asyncpg pool; constructors only keep a reference."""


def test_configure_postgres_wires_database_collaborators(fake_redis, monkeypatch):
    monkeypatch.setattr(settings, "moderation_events_enabled", True)
    pool = DummyPool()

    service = container.configure_postgres(pool, fake_redis)  # type: ignore[arg-type]

    assert container.get_moderation_service() is service
    assert isinstance(service.repository, PostgresModerationRepository)
    assert isinstance(service.identity, PostgresIdentityDirectory)
    assert isinstance(service.posts, PostgresPostsModeration)
    assert isinstance(service.events, RedisItemEvents)
    assert service.events.stream == settings.moderation_events_stream
    assert service.repository.pool is pool


def test_events_can_be_disabled(fake_redis, monkeypatch):
    monkeypatch.setattr(settings, "moderation_events_enabled", False)

    service = container.configure_postgres(DummyPool(), fake_redis)  # type: ignore[arg-type]

    assert isinstance(service.events, NullItemEvents)


def test_configure_keeps_unspecified_collaborators(repository, identity):
    service = container.configure(baseline_overrides={"illegal": "ADMIN"})

    assert service.repository is repository
    assert service.identity is identity
    assert service.intake.baseline_overrides == {"illegal": "ADMIN"}


def test_configure_rejects_invisible_baseline_and_keeps_current_service():
    current = container.get_moderation_service()

    with pytest.raises(ValueError, match="baseline_not_staff"):
        container.configure(baseline_overrides={"spam": "USER"})

    assert container.get_moderation_service() is current
    assert container._baseline_overrides == current.baseline_overrides


def test_settings_parse_moderation_mappings(monkeypatch):
    monkeypatch.setenv("MODERATION_ROLE_RANKS", '{"moderator": 6}')
    monkeypatch.setenv("MODERATION_BASELINE_OVERRIDES", '{"MINOR_SAFETY": "senior_mod"}')
    monkeypatch.setenv("LOG_LEVEL", "debug")

    loaded = Settings()

    assert loaded.moderation_role_ranks == {"MODERATOR": 6}
    assert loaded.moderation_baseline_overrides == {"minor_safety": "SENIOR_MOD"}
    assert loaded.obs_log_level == "DEBUG"


@pytest.mark.asyncio
async def test_container_service_uses_configured_hierarchy(identity):
    from moddesk.moderation.domain.roles import RoleHierarchy

    service = container.configure(hierarchy=RoleHierarchy.from_config({"MODERATOR": 6}))
    targets = await service.escalation_targets("jr-a")

    assert targets.value == (RoleTier.MODERATOR, RoleTier.SENIOR_MOD, RoleTier.ADMIN)
    assert service.hierarchy.rank_of(RoleTier.MODERATOR) == 6
