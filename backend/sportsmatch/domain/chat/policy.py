"""Authorization gate for match chat.

Every join and every send re-reads participation and block state; nothing
is cached on the connection, so a withdrawn participation or a new block
takes effect on the very next action.
"""

from __future__ import annotations

from typing import List

from sportsmatch.domain.chat.exceptions import BlockedRelationshipError, NotAuthorizedError
from sportsmatch.domain.chat.models import Participation
from sportsmatch.domain.chat.stores import ParticipationStore, RelationshipStore


class AuthorizationGate:
	def __init__(self, participations: ParticipationStore, relationships: RelationshipStore) -> None:
		self._participations = participations
		self._relationships = relationships

	async def assert_confirmed_participant(self, user_id: str, match_id: str) -> Participation:
		participation = await self._participations.find_confirmed_participation(user_id, match_id)
		if participation is None:
			raise NotAuthorizedError()
		return participation

	async def assert_not_blocked_with_participants(self, user_id: str, match_id: str) -> List[str]:
		"""Fail when any other confirmed participant is blocked with ``user_id``.

		Returns the other confirmed participants so callers can reuse the read.
		"""
		others = [
			uid for uid in await self._participations.list_confirmed_participants(match_id) if uid != str(user_id)
		]
		if others and await self._relationships.find_any_block_with_set(user_id, others):
			raise BlockedRelationshipError()
		return others

	async def authorize(self, user_id: str, match_id: str) -> List[str]:
		await self.assert_confirmed_participant(user_id, match_id)
		return await self.assert_not_blocked_with_participants(user_id, match_id)
