"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sportsmatch.api import notifications, ops
from sportsmatch.api.errors import install_error_handlers
from sportsmatch.container import build_container
from sportsmatch.domain.chat.sockets import MatchChatNamespace
from sportsmatch.infra import postgres
from sportsmatch.obs import init as obs_init
from sportsmatch.settings import settings

logger = logging.getLogger(__name__)

container = build_container()


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.store_backend == "postgres":
		await postgres.init_pool()
	logger.info("startup", extra={"store_backend": settings.store_backend, "namespace": settings.chat_namespace})
	try:
		yield
	finally:
		await container.engine.drain()
		await postgres.close_pool()


app = FastAPI(title="Sportsmatch Realtime Core", lifespan=lifespan)
app.state.container = container
install_error_handlers(app)

allow_origins = list(getattr(settings, "cors_allow_origins", []))
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

client_manager = socketio.AsyncRedisManager(settings.socketio_redis_url) if settings.socketio_redis_url else None
# Use the same allowed origins for Socket.IO as for the REST API
sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins, client_manager=client_manager)
chat_namespace = MatchChatNamespace(container.engine, container.users)
sio.register_namespace(chat_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
obs_init(app)

app.include_router(notifications.router, tags=["notifications"])
app.include_router(ops.router, tags=["ops"])
