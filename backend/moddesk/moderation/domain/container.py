"""Lightweight service container shared by moderation modules."""

from __future__ import annotations

from typing import Mapping, Optional

import asyncpg
from redis.asyncio import Redis

from moddesk.infra.redis import RedisProxy, redis_client
from moddesk.moderation.domain.collaborators import (
    IdentityDirectory,
    InMemoryIdentityDirectory,
    InMemoryPosts,
    PostsModeration,
)
from moddesk.moderation.domain.events import ItemEvents, NullItemEvents
from moddesk.moderation.domain.repository import InMemoryModerationRepository, ModerationRepository
from moddesk.moderation.domain.roles import RoleHierarchy
from moddesk.moderation.domain.service import ModerationService
from moddesk.settings import settings

_hierarchy: RoleHierarchy = RoleHierarchy.from_config(settings.moderation_role_ranks)
_baseline_overrides: Mapping[str, str] = dict(settings.moderation_baseline_overrides)
_repository: ModerationRepository = InMemoryModerationRepository()
_identity: IdentityDirectory = InMemoryIdentityDirectory()
_posts: PostsModeration = InMemoryPosts()
_events: ItemEvents = NullItemEvents()
_service = ModerationService(
    repository=_repository,
    identity=_identity,
    posts=_posts,
    hierarchy=_hierarchy,
    events=_events,
    baseline_overrides=_baseline_overrides,
)


def configure(
    *,
    repository: Optional[ModerationRepository] = None,
    identity: Optional[IdentityDirectory] = None,
    posts: Optional[PostsModeration] = None,
    events: Optional[ItemEvents] = None,
    hierarchy: Optional[RoleHierarchy] = None,
    baseline_overrides: Optional[Mapping[str, str]] = None,
) -> ModerationService:
    """Swap collaborators and rebuild the service. Omitted arguments keep their current value."""

    global _repository, _identity, _posts, _events, _hierarchy, _baseline_overrides, _service
    service = ModerationService(
        repository=repository if repository is not None else _repository,
        identity=identity if identity is not None else _identity,
        posts=posts if posts is not None else _posts,
        hierarchy=hierarchy if hierarchy is not None else _hierarchy,
        events=events if events is not None else _events,
        baseline_overrides=dict(baseline_overrides) if baseline_overrides is not None else _baseline_overrides,
    )
    # Only commit once the service validated its configuration.
    _repository, _identity, _posts = service.repository, service.identity, service.posts
    _events, _hierarchy, _baseline_overrides = service.events, service.hierarchy, service.baseline_overrides
    _service = service
    return _service


def configure_postgres(pool: asyncpg.Pool, redis_conn: Redis | RedisProxy | None = None) -> ModerationService:
    from moddesk.moderation.infra.events import RedisItemEvents
    from moddesk.moderation.infra.identity import PostgresIdentityDirectory
    from moddesk.moderation.infra.postgres_repo import PostgresModerationRepository
    from moddesk.moderation.infra.posts_sink import PostgresPostsModeration

    events: ItemEvents = NullItemEvents()
    if settings.moderation_events_enabled:
        events = RedisItemEvents(redis_conn or redis_client, stream=settings.moderation_events_stream)
    return configure(
        repository=PostgresModerationRepository(pool),
        identity=PostgresIdentityDirectory(pool, _hierarchy),
        posts=PostgresPostsModeration(pool),
        events=events,
    )


def reset() -> ModerationService:
    """Return to fresh in-memory collaborators and the configured hierarchy."""
    return configure(
        hierarchy=RoleHierarchy.from_config(settings.moderation_role_ranks),
        baseline_overrides=settings.moderation_baseline_overrides,
        repository=InMemoryModerationRepository(),
        identity=InMemoryIdentityDirectory(),
        posts=InMemoryPosts(),
        events=NullItemEvents(),
    )


def get_repository() -> ModerationRepository:
    return _repository


def get_identity() -> IdentityDirectory:
    return _identity


def get_posts() -> PostsModeration:
    return _posts


def get_hierarchy() -> RoleHierarchy:
    return _hierarchy


def get_moderation_service() -> ModerationService:
    return _service
