"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from moddesk.api import ops
from moddesk.api.errors import install_error_handlers
from moddesk.infra import postgres
from moddesk.infra.redis import redis_client
from moddesk.moderation import configure_postgres as configure_moderation
from moddesk.moderation import router as moderation_router
from moddesk.obs import init as obs_init
from moddesk.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	pool = await postgres.init_pool()
	configure_moderation(pool, redis_client)
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(title="Moddesk Moderation API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins and settings.is_dev():
	allow_origins = ["http://localhost:3000"]
if allow_origins:
	app.add_middleware(
		CORSMiddleware,
		allow_origins=allow_origins,
		allow_credentials="*" not in allow_origins,
		allow_methods=["*"],
		allow_headers=["*"],
	)

obs_init(app)
app.include_router(ops.router)
app.include_router(moderation_router)
