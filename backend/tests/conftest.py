import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from sportsmatch.container import build_container
from sportsmatch.infra import postgres
from sportsmatch.main import app
from sportsmatch.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from sportsmatch.infra.redis import redis_client, set_redis_client
	original = redis_client._client
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

	API tests authenticate via the X-User-Id header, which is only accepted in
	dev mode; socket tests sign tokens with a known secret.
	"""
	original_env = settings.environment
	original_secret = settings.secret_key
	original_backend = settings.store_backend
	settings.environment = "dev"
	settings.secret_key = "test-secret"
	settings.store_backend = "memory"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.secret_key = original_secret
		settings.store_backend = original_backend


@pytest.fixture
def transport():
	"""Records every per-connection send as an awaited call."""
	return AsyncMock()


@pytest_asyncio.fixture
async def container(transport):
	"""A memory-backed core with the recording transport bound."""
	built = build_container("memory")
	built.engine.bind_transport(transport)
	original = getattr(app.state, "container", None)
	app.state.container = built
	try:
		yield built
	finally:
		await built.engine.drain()
		app.state.container = original


@pytest_asyncio.fixture
async def api_client(container):
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
