"""Match chat broadcast engine."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Set

import ulid

from sportsmatch.domain.chat import schemas
from sportsmatch.domain.chat.exceptions import ValidationError
from sportsmatch.domain.chat.models import ChatMessage
from sportsmatch.domain.chat.policy import AuthorizationGate
from sportsmatch.domain.chat.presence import PresenceRegistry
from sportsmatch.domain.chat.rooms import RoomMembershipManager
from sportsmatch.domain.chat.stores import UserDirectory
from sportsmatch.domain.chat.transport import ConnectionTransport, fan_out
from sportsmatch.domain.notifications.service import NotificationFanout
from sportsmatch.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _message_id() -> str:
	return f"msg_{ulid.new()}"


class ChatBroadcastEngine:
	"""Turns authorized send requests into room broadcasts and presence announcements.

	Room membership is read once per delivery into a fixed snapshot, so a
	message reaches either every member present when delivery starts or,
	when the gate rejects it, nobody.
	"""

	def __init__(
		self,
		*,
		gate: AuthorizationGate,
		rooms: RoomMembershipManager,
		presence: PresenceRegistry,
		users: UserDirectory,
		transport: Optional[ConnectionTransport] = None,
		notifier: Optional[NotificationFanout] = None,
		max_message_length: int = 500,
	) -> None:
		self.gate = gate
		self.rooms = rooms
		self.presence = presence
		self._users = users
		self._transport = transport
		self._notifier = notifier
		self._max_message_length = max_message_length
		self._pending: Set[asyncio.Task] = set()

	def bind_transport(self, transport: ConnectionTransport) -> None:
		"""Attach the live transport; the notifier shares it for pushes."""
		self._transport = transport
		if self._notifier is not None:
			self._notifier.bind_transport(transport)

	def _require_transport(self) -> ConnectionTransport:
		if self._transport is None:
			raise RuntimeError("chat engine has no transport bound")
		return self._transport

	async def post_message(self, user_id: str, match_id: str, body: str) -> ChatMessage:
		transport = self._require_transport()
		others = await self.gate.authorize(user_id, match_id)

		text = (body or "").strip()
		if not text:
			raise ValidationError("Message cannot be empty")
		if len(text) > self._max_message_length:
			raise ValidationError(f"Message exceeds {self._max_message_length} characters")

		message = ChatMessage(
			id=_message_id(),
			match_id=str(match_id),
			user_id=str(user_id),
			user_name=await self._users.get_display_name(user_id),
			message=text,
			timestamp=datetime.now(timezone.utc),
		)
		payload = schemas.NewMessageEvent(
			id=message.id,
			match_id=message.match_id,
			user_id=message.user_id,
			user_name=message.user_name,
			message=message.message,
			timestamp=message.timestamp,
		).to_wire()
		delivered = await fan_out(transport, self.rooms.members_of(match_id), schemas.NEW_MESSAGE, payload)
		obs_metrics.inc_chat_send(delivered)
		logger.info(
			"chat_message_broadcast",
			extra={"match_id": message.match_id, "msg_id": message.id, "delivered": delivered},
		)

		if self._notifier is not None and others:
			self._spawn(self._notify_participants(others, message))
		return message

	async def _notify_participants(self, recipients: List[str], message: ChatMessage) -> None:
		for recipient_id in recipients:
			try:
				await self._notifier.notify_new_message(
					recipient_id,
					sender_name=message.user_name,
					body=message.message,
				)
			except Exception:
				logger.exception(
					"chat_message_notify_failed",
					extra={"match_id": message.match_id, "recipient_id": recipient_id},
				)

	def _spawn(self, coro) -> None:
		task = asyncio.create_task(coro)
		self._pending.add(task)
		task.add_done_callback(self._pending.discard)

	async def drain(self) -> None:
		"""Wait for scheduled notification work; used on shutdown and in tests."""
		while self._pending:
			await asyncio.gather(*list(self._pending), return_exceptions=True)

	async def _announce(self, event: str, user_id: str, match_id: str, exclude_sid: Optional[str]) -> int:
		transport = self._require_transport()
		targets = self.rooms.members_of(match_id) - {exclude_sid}
		if not targets:
			return 0
		payload = schemas.MemberEvent(
			match_id=str(match_id),
			user_id=str(user_id),
			user_name=await self._users.get_display_name(user_id),
		).to_wire()
		return await fan_out(transport, targets, event, payload)

	async def announce_join(self, user_id: str, match_id: str, *, exclude_sid: Optional[str] = None) -> int:
		return await self._announce(schemas.USER_JOINED_MATCH, user_id, match_id, exclude_sid)

	async def announce_leave(self, user_id: str, match_id: str, *, exclude_sid: Optional[str] = None) -> int:
		return await self._announce(schemas.USER_LEFT_MATCH, user_id, match_id, exclude_sid)

	async def broadcast_participant_update(self, match_id: str, participant_count: int) -> int:
		transport = self._require_transport()
		payload = schemas.ParticipantUpdateEvent(
			match_id=str(match_id),
			participant_count=participant_count,
		).to_wire()
		return await fan_out(transport, self.rooms.members_of(match_id), schemas.PARTICIPANT_UPDATE, payload)

	async def revoke_participant(self, user_id: str, match_id: str) -> List[str]:
		"""Drop every connection of ``user_id`` from the match room.

		Used when a participation is withdrawn; the remaining members get a
		``userLeftMatch`` announcement and each removed connection a ``leftMatch``.
		"""
		transport = self._require_transport()
		removed = [
			sid for sid in sorted(self.presence.connections_for(user_id)) if self.rooms.leave(sid, match_id)
		]
		if not removed:
			return []
		ack = schemas.RoomAckEvent(match_id=str(match_id)).to_wire()
		await fan_out(transport, removed, schemas.LEFT_MATCH, ack)
		await self.announce_leave(user_id, match_id)
		logger.info("chat_participant_revoked", extra={"match_id": str(match_id), "user_id": str(user_id)})
		return removed
