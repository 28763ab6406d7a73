"""Process-local registry of live connections per user.

A user may hold several connections at once (tabs, devices); notification
fan-out targets all of them. Presence is best-effort: a restart loses it
and clients rebuild it by reconnecting.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Set


class PresenceRegistry:
	def __init__(self) -> None:
		self._by_user: Dict[str, Set[str]] = {}

	def register(self, user_id: str, sid: str) -> None:
		self._by_user.setdefault(str(user_id), set()).add(sid)

	def unregister(self, user_id: str, sid: str) -> None:
		sids = self._by_user.get(str(user_id))
		if sids is None:
			return
		sids.discard(sid)
		if not sids:
			del self._by_user[str(user_id)]

	def connections_for(self, user_id: str) -> FrozenSet[str]:
		return frozenset(self._by_user.get(str(user_id), ()))

	def is_online(self, user_id: str) -> bool:
		return str(user_id) in self._by_user

	def online_users(self) -> FrozenSet[str]:
		return frozenset(self._by_user)

	def __len__(self) -> int:
		return len(self._by_user)
