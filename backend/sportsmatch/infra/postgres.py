"""AsyncPG pool management for the backend."""

from __future__ import annotations

import json
from typing import Optional

import asyncpg

from sportsmatch.settings import settings

_pool: Optional[asyncpg.pool.Pool] = None


async def _init_connection(conn: asyncpg.Connection) -> None:
	# notification_preferences is stored as JSONB
	await conn.set_type_codec("jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")


async def init_pool() -> asyncpg.pool.Pool:
	global _pool
	if _pool is None:
		_pool = await asyncpg.create_pool(
			dsn=settings.postgres_url,
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
			init=_init_connection,
		)
	return _pool


async def get_pool() -> asyncpg.pool.Pool:
	if _pool is None:
		await init_pool()
	assert _pool is not None
	return _pool


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None
