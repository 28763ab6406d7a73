"""Per-match broadcast groups of live connections."""

from __future__ import annotations

from typing import Dict, FrozenSet, List, Set


class RoomMembershipManager:
	"""Tracks which connections are admitted to which match room.

	Callers must have passed the authorization gate before ``join``; this
	class only does bookkeeping. A (connection, match) pair is either joined
	or not, and every operation is safe to repeat.
	"""

	def __init__(self) -> None:
		self._members: Dict[str, Set[str]] = {}
		self._rooms_by_sid: Dict[str, Set[str]] = {}

	def join(self, sid: str, match_id: str) -> bool:
		"""Admit ``sid`` to the room; return False when it was already a member."""
		members = self._members.setdefault(str(match_id), set())
		if sid in members:
			return False
		members.add(sid)
		self._rooms_by_sid.setdefault(sid, set()).add(str(match_id))
		return True

	def leave(self, sid: str, match_id: str) -> bool:
		"""Remove ``sid`` from the room; return False when it was not a member."""
		match_id = str(match_id)
		members = self._members.get(match_id)
		if not members or sid not in members:
			return False
		members.discard(sid)
		if not members:
			del self._members[match_id]
		rooms = self._rooms_by_sid.get(sid)
		if rooms is not None:
			rooms.discard(match_id)
			if not rooms:
				del self._rooms_by_sid[sid]
		return True

	def leave_all(self, sid: str) -> List[str]:
		"""Remove ``sid`` from every room and return the match ids it left."""
		left = sorted(self._rooms_by_sid.get(sid, ()))
		for match_id in left:
			self.leave(sid, match_id)
		return left

	def members_of(self, match_id: str) -> FrozenSet[str]:
		return frozenset(self._members.get(str(match_id), ()))

	def rooms_of(self, sid: str) -> FrozenSet[str]:
		return frozenset(self._rooms_by_sid.get(sid, ()))

	def is_member(self, sid: str, match_id: str) -> bool:
		return sid in self._members.get(str(match_id), ())
