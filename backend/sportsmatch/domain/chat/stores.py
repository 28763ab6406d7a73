"""Read/write collaborators the chat core depends on.

The Protocols describe what the core consumes; ``Postgres*`` classes read
the shared relational schema (``user_matches``, ``friendships``, ``users``)
and ``Memory*`` classes back local development and tests.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

import asyncpg

from sportsmatch.domain.chat.exceptions import TransientStoreError
from sportsmatch.domain.chat.models import (
	Participation,
	ParticipationStatus,
	Relationship,
	RelationshipStatus,
)
from sportsmatch.infra.postgres import get_pool

UNKNOWN_DISPLAY_NAME = "Unknown"

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class ParticipationStore(Protocol):
	async def find_confirmed_participation(self, user_id: str, match_id: str) -> Optional[Participation]:
		...

	async def list_confirmed_participants(self, match_id: str) -> List[str]:
		...


class RelationshipStore(Protocol):
	async def find_block_between(self, user_a: str, user_b: str) -> bool:
		...

	async def find_any_block_with_set(self, user_id: str, other_user_ids: Iterable[str]) -> bool:
		...


class UserDirectory(Protocol):
	async def user_exists(self, user_id: str) -> bool:
		...

	async def get_display_name(self, user_id: str) -> str:
		...

	async def get_notification_preferences(self, user_id: str) -> Optional[Dict[str, bool]]:
		"""Return the stored preference map, ``{}`` when unset, ``None`` for unknown users."""
		...

	async def update_notification_preferences(self, user_id: str, preferences: Mapping[str, bool]) -> Dict[str, bool]:
		...


@asynccontextmanager
async def store_connection() -> AsyncIterator[asyncpg.Connection]:
	try:
		pool = await get_pool()
		async with pool.acquire() as conn:
			yield conn
	except _STORE_ERRORS as exc:
		raise TransientStoreError() from exc


def valid_uuid(value: object) -> bool:
	try:
		uuid.UUID(str(value))
	except ValueError:
		return False
	return True


def _display_name(first_name: Optional[str], last_name: Optional[str]) -> str:
	name = " ".join(part for part in (first_name, last_name) if part)
	return name or UNKNOWN_DISPLAY_NAME


class PostgresParticipationStore:
	async def find_confirmed_participation(self, user_id: str, match_id: str) -> Optional[Participation]:
		if not (valid_uuid(user_id) and valid_uuid(match_id)):
			return None
		async with store_connection() as conn:
			row = await conn.fetchrow(
				"""
				SELECT user_id, match_id, participation_status, joined_at
				FROM user_matches
				WHERE user_id = $1 AND match_id = $2 AND participation_status = 'confirmed'
				LIMIT 1
				""",
				user_id,
				match_id,
			)
		return Participation.from_record(row) if row else None

	async def list_confirmed_participants(self, match_id: str) -> List[str]:
		if not valid_uuid(match_id):
			return []
		async with store_connection() as conn:
			rows = await conn.fetch(
				"""
				SELECT user_id
				FROM user_matches
				WHERE match_id = $1 AND participation_status = 'confirmed'
				ORDER BY joined_at
				""",
				match_id,
			)
		return [str(row["user_id"]) for row in rows]


class PostgresRelationshipStore:
	async def find_block_between(self, user_a: str, user_b: str) -> bool:
		if not (valid_uuid(user_a) and valid_uuid(user_b)):
			return False
		async with store_connection() as conn:
			row = await conn.fetchrow(
				"""
				SELECT 1
				FROM friendships
				WHERE status = 'blocked'
				  AND ((sender_id = $1 AND receiver_id = $2) OR (sender_id = $2 AND receiver_id = $1))
				LIMIT 1
				""",
				user_a,
				user_b,
			)
		return row is not None

	async def find_any_block_with_set(self, user_id: str, other_user_ids: Iterable[str]) -> bool:
		others = [str(uid) for uid in other_user_ids if str(uid) != str(user_id) and valid_uuid(uid)]
		if not others or not valid_uuid(user_id):
			return False
		async with store_connection() as conn:
			row = await conn.fetchrow(
				"""
				SELECT 1
				FROM friendships
				WHERE status = 'blocked'
				  AND ((sender_id = $1 AND receiver_id = ANY($2::uuid[]))
				    OR (receiver_id = $1 AND sender_id = ANY($2::uuid[])))
				LIMIT 1
				""",
				user_id,
				others,
			)
		return row is not None


class PostgresUserDirectory:
	async def user_exists(self, user_id: str) -> bool:
		if not valid_uuid(user_id):
			return False
		async with store_connection() as conn:
			row = await conn.fetchrow("SELECT 1 FROM users WHERE id = $1", user_id)
		return row is not None

	async def get_display_name(self, user_id: str) -> str:
		if not valid_uuid(user_id):
			return UNKNOWN_DISPLAY_NAME
		async with store_connection() as conn:
			row = await conn.fetchrow("SELECT first_name, last_name FROM users WHERE id = $1", user_id)
		if not row:
			return UNKNOWN_DISPLAY_NAME
		return _display_name(row["first_name"], row["last_name"])

	async def get_notification_preferences(self, user_id: str) -> Optional[Dict[str, bool]]:
		if not valid_uuid(user_id):
			return None
		async with store_connection() as conn:
			row = await conn.fetchrow("SELECT notification_preferences FROM users WHERE id = $1", user_id)
		if not row:
			return None
		return dict(row["notification_preferences"] or {})

	async def update_notification_preferences(self, user_id: str, preferences: Mapping[str, bool]) -> Dict[str, bool]:
		if not valid_uuid(user_id):
			raise LookupError(user_id)
		async with store_connection() as conn:
			row = await conn.fetchrow(
				"""
				UPDATE users
				SET notification_preferences = COALESCE(notification_preferences, '{}'::jsonb) || $2::jsonb,
				    updated_at = NOW()
				WHERE id = $1
				RETURNING notification_preferences
				""",
				user_id,
				dict(preferences),
			)
		if not row:
			raise LookupError(user_id)
		return dict(row["notification_preferences"] or {})


class MemoryParticipationStore:
	def __init__(self) -> None:
		self._rows: Dict[Tuple[str, str], Participation] = {}

	def upsert(
		self,
		user_id: str,
		match_id: str,
		status: ParticipationStatus = ParticipationStatus.CONFIRMED,
	) -> Participation:
		key = (str(user_id), str(match_id))
		existing = self._rows.get(key)
		joined_at = existing.joined_at if existing else datetime.now(timezone.utc)
		row = Participation(user_id=key[0], match_id=key[1], status=status, joined_at=joined_at)
		self._rows[key] = row
		return row

	def remove(self, user_id: str, match_id: str) -> None:
		self._rows.pop((str(user_id), str(match_id)), None)

	async def find_confirmed_participation(self, user_id: str, match_id: str) -> Optional[Participation]:
		row = self._rows.get((str(user_id), str(match_id)))
		return row if row and row.is_confirmed else None

	async def list_confirmed_participants(self, match_id: str) -> List[str]:
		rows = [row for row in self._rows.values() if row.match_id == str(match_id) and row.is_confirmed]
		rows.sort(key=lambda row: row.joined_at)
		return [row.user_id for row in rows]


class MemoryRelationshipStore:
	def __init__(self) -> None:
		self._rows: Dict[Tuple[str, str], Relationship] = {}

	def set_status(self, sender_id: str, receiver_id: str, status: RelationshipStatus) -> Relationship:
		# One row per unordered pair; a later action overwrites the earlier one.
		for key, row in list(self._rows.items()):
			if row.involves(sender_id, receiver_id):
				del self._rows[key]
		row = Relationship(sender_id=str(sender_id), receiver_id=str(receiver_id), status=status)
		self._rows[(row.sender_id, row.receiver_id)] = row
		return row

	def remove(self, user_a: str, user_b: str) -> None:
		for key, row in list(self._rows.items()):
			if row.involves(user_a, user_b):
				del self._rows[key]

	async def find_block_between(self, user_a: str, user_b: str) -> bool:
		return any(
			row.status is RelationshipStatus.BLOCKED and row.involves(user_a, user_b)
			for row in self._rows.values()
		)

	async def find_any_block_with_set(self, user_id: str, other_user_ids: Iterable[str]) -> bool:
		for other in other_user_ids:
			if str(other) == str(user_id):
				continue
			if await self.find_block_between(user_id, other):
				return True
		return False


class MemoryUserDirectory:
	def __init__(self) -> None:
		self._names: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
		self._preferences: Dict[str, Dict[str, bool]] = {}

	def add_user(
		self,
		user_id: str,
		first_name: Optional[str] = None,
		last_name: Optional[str] = None,
		*,
		preferences: Optional[Mapping[str, bool]] = None,
	) -> None:
		self._names[str(user_id)] = (first_name, last_name)
		self._preferences[str(user_id)] = dict(preferences or {})

	def rename(self, user_id: str, first_name: Optional[str], last_name: Optional[str]) -> None:
		self._names[str(user_id)] = (first_name, last_name)

	async def user_exists(self, user_id: str) -> bool:
		return str(user_id) in self._names

	async def get_display_name(self, user_id: str) -> str:
		names = self._names.get(str(user_id))
		if names is None:
			return UNKNOWN_DISPLAY_NAME
		return _display_name(*names)

	async def get_notification_preferences(self, user_id: str) -> Optional[Dict[str, bool]]:
		if str(user_id) not in self._names:
			return None
		return dict(self._preferences.get(str(user_id), {}))

	async def update_notification_preferences(self, user_id: str, preferences: Mapping[str, bool]) -> Dict[str, bool]:
		if str(user_id) not in self._names:
			raise LookupError(user_id)
		merged = self._preferences.setdefault(str(user_id), {})
		merged.update(preferences)
		return dict(merged)
