import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from moddesk.infra import postgres
from moddesk.main import app
from moddesk.moderation.domain import container
from moddesk.moderation.domain.collaborators import InMemoryIdentityDirectory, InMemoryPosts
from moddesk.moderation.domain.repository import InMemoryModerationRepository
from moddesk.moderation.domain.roles import RoleTier
from moddesk.settings import settings


# Ensure a selector-based event loop policy on Windows to avoid Proactor issues with async IO
if hasattr(asyncio, "WindowsSelectorEventLoopPolicy"):
	try:
		asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
	except Exception:
		# Non-fatal; proceed with default policy
		pass


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from moddesk.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Ensure a consistent test environment.

	API tests authenticate via the X-User-Id header, which is only accepted in dev mode.
	"""
	original_env = settings.environment
	settings.environment = "dev"
	try:
		yield
	finally:
		settings.environment = original_env


@pytest.fixture
def identity() -> InMemoryIdentityDirectory:
	return InMemoryIdentityDirectory(
		roles={
			"jr-a": RoleTier.JUNIOR_MOD,
			"jr-c": RoleTier.JUNIOR_MOD,
			"jr-d": RoleTier.JUNIOR_MOD,
			"mod-m": RoleTier.MODERATOR,
			"sr-b": RoleTier.SENIOR_MOD,
			"admin-z": RoleTier.ADMIN,
			"trusted-t": RoleTier.TRUSTED_USER,
		}
	)


@pytest.fixture
def posts() -> InMemoryPosts:
	return InMemoryPosts(authors={"post-1": "author-1", "post-2": "author-2"})


@pytest.fixture
def repository() -> InMemoryModerationRepository:
	return InMemoryModerationRepository()


@pytest.fixture(autouse=True)
def moderation_container(repository, identity, posts):
	"""Point the application container at fresh in-memory collaborators."""
	service = container.configure(repository=repository, identity=identity, posts=posts)
	try:
		yield service
	finally:
		container.reset()


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
