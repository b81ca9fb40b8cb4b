from __future__ import annotations

import asyncio
from pathlib import Path
from typing import AsyncIterator, Iterator

import asyncpg
import pytest
import pytest_asyncio

from moddesk.moderation.domain.errors import ErrorKind
from moddesk.moderation.domain.models import ItemStatus
from moddesk.moderation.domain.roles import RoleTier
from moddesk.moderation.domain.service import ModerationService
from moddesk.moderation.infra.identity import PostgresIdentityDirectory
from moddesk.moderation.infra.postgres_repo import PostgresModerationRepository
from moddesk.moderation.infra.posts_sink import PostgresPostsModeration

pytestmark = pytest.mark.asyncio

REPO_ROOT = Path(__file__).resolve().parents[3]
MIGRATIONS_DIR = REPO_ROOT / "infra" / "migrations"

# Minimal shapes of the identity and posts tables owned by other services.
COLLABORATOR_TABLES = """
CREATE TABLE profiles (
    id TEXT PRIMARY KEY,
    role INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE posts (
    id TEXT PRIMARY KEY,
    author_id TEXT NOT NULL REFERENCES profiles(id),
    is_sensitive BOOLEAN NOT NULL DEFAULT FALSE,
    moderation_status TEXT NULL,
    moderation_reason TEXT NULL,
    moderated_by TEXT NULL,
    moderated_at TIMESTAMPTZ NULL
);
INSERT INTO profiles (id, role) VALUES
    ('author-1', 0), ('user-9', 0), ('jr-a', 3), ('jr-c', 3), ('jr-d', 4), ('sr-b', 7);
INSERT INTO posts (id, author_id) VALUES ('post-1', 'author-1'), ('post-2', 'author-1');
"""


@pytest.fixture(scope="module")
def postgres_container() -> Iterator["PostgresContainer"]:
    testcontainers = pytest.importorskip(
        "testcontainers.postgres",
        reason="testcontainers.postgres is required for integration tests",
    )
    PostgresContainer = testcontainers.PostgresContainer
    try:
        container = PostgresContainer("postgres:16-alpine")
        container.start()
    except Exception as exc:  # pragma: no cover - environment without docker
        pytest.skip(f"unable to start postgres container: {exc}")
    try:
        yield container
    finally:
        container.stop()


async def _run_migrations(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute("DROP SCHEMA IF EXISTS public CASCADE")
        await conn.execute("CREATE SCHEMA public")
        await conn.execute("GRANT ALL ON SCHEMA public TO PUBLIC")
        await conn.execute(COLLABORATOR_TABLES)
        for path in sorted(MIGRATIONS_DIR.glob("*.sql")):
            await conn.execute(path.read_text(encoding="utf-8"))


@pytest_asyncio.fixture(scope="function")
async def postgres_pool(postgres_container) -> AsyncIterator[asyncpg.Pool]:
    url = postgres_container.get_connection_url().replace("postgresql+psycopg2", "postgresql")
    pool = await asyncpg.create_pool(dsn=url, min_size=1, max_size=4)
    await _run_migrations(pool)
    try:
        yield pool
    finally:
        await pool.close()


@pytest.fixture
def pg_service(postgres_pool) -> ModerationService:
    return ModerationService(
        repository=PostgresModerationRepository(postgres_pool),
        identity=PostgresIdentityDirectory(postgres_pool),
        posts=PostgresPostsModeration(postgres_pool),
    )


async def test_full_workflow_persists_rows(pg_service, postgres_pool):
    flag = await pg_service.submit_flag(post_id="post-1", flagger_id="user-9", reason_code="spam")
    assert flag.ok, flag.message
    item_id = flag.item.item_id

    assert (await pg_service.claim("jr-a", item_id)).ok
    escalated = await pg_service.escalate("jr-a", item_id, target_role="SENIOR_MOD", reason="needs senior review")
    assert escalated.ok
    assert escalated.item.assigned_role is RoleTier.SENIOR_MOD
    assert (await pg_service.claim("sr-b", item_id)).ok
    resolved = await pg_service.resolve("sr-b", item_id, disposition="removed", notes="policy violation")
    assert resolved.ok and resolved.side_effect_error is None

    detail = await pg_service.get_item("sr-b", item_id)
    assert detail.value.item.status is ItemStatus.RESOLVED_REMOVED
    assert [(h.from_role, h.to_role) for h in detail.value.history] == [(RoleTier.JUNIOR_MOD, RoleTier.SENIOR_MOD)]
    post = await postgres_pool.fetchrow("SELECT moderation_status, moderated_by FROM posts WHERE id = 'post-1'")
    assert dict(post) == {"moderation_status": "removed", "moderated_by": "sr-b"}


async def test_concurrent_claims_against_database(pg_service):
    flag = await pg_service.submit_flag(post_id="post-2", flagger_id="user-9", reason_code="harassment")
    item_id = flag.item.item_id

    results = await asyncio.gather(*(pg_service.claim(actor, item_id) for actor in ("jr-a", "jr-c", "jr-d")))

    assert sum(1 for result in results if result.ok) == 1
    assert {result.error_kind for result in results if not result.ok} == {ErrorKind.CONFLICT}


async def test_stored_numeric_role_maps_to_tier(postgres_pool):
    directory = PostgresIdentityDirectory(postgres_pool)

    assert await directory.role_of("jr-d") is RoleTier.JUNIOR_MOD
    assert await directory.role_of("sr-b") is RoleTier.SENIOR_MOD
    assert await directory.role_of("ghost") is RoleTier.USER


async def test_rejected_escalation_writes_no_history(pg_service, postgres_pool):
    flag = await pg_service.submit_flag(post_id="post-1", flagger_id="user-9", reason_code="other")
    item_id = flag.item.item_id
    await pg_service.escalate("jr-a", item_id, target_role="MODERATOR", reason="unsure")

    stale = await pg_service.escalate("jr-a", item_id, target_role="SENIOR_MOD", reason="again")

    assert stale.error_kind is ErrorKind.UNAUTHORIZED
    count = await postgres_pool.fetchval("SELECT COUNT(*) FROM mod_escalation_history WHERE item_id = $1", item_id)
    assert count == 1


async def test_report_against_senior_staff_needs_higher_role(pg_service):
    report = await pg_service.submit_report(reported_user_id="sr-b", reporter_id="user-9", reason_code="harassment")
    assert report.ok, report.message
    item_id = report.item.item_id

    denied = await pg_service.claim("jr-a", item_id)
    assert denied.error_kind is ErrorKind.UNAUTHORIZED
    assert denied.message == "cannot_moderate_user"

    pending = await pg_service.pending_reports("sr-b")
    assert pending.ok and pending.value == 1
    assert (await pg_service.pending_reports("author-1")).value == 0
