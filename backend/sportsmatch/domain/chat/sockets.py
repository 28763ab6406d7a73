"""Socket.IO namespace for per-match chat."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional

import socketio
from redis.exceptions import RedisError

from sportsmatch.domain.chat import schemas
from sportsmatch.domain.chat.exceptions import (
	AuthenticationError,
	ChatError,
	RateLimitedError,
	TransientStoreError,
)
from sportsmatch.domain.chat.models import Connection
from sportsmatch.domain.chat.service import ChatBroadcastEngine
from sportsmatch.domain.chat.stores import UserDirectory
from sportsmatch.infra import rate_limit
from sportsmatch.infra.auth import InvalidCredential, bearer_from_header, parse_access_token
from sportsmatch.obs import logging as obs_logging
from sportsmatch.obs import metrics as obs_metrics
from sportsmatch.settings import settings

logger = logging.getLogger(__name__)


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


class MatchChatNamespace(socketio.AsyncNamespace):
	"""Namespace that admits authenticated users to match rooms and relays chat."""

	def __init__(self, engine: ChatBroadcastEngine, users: UserDirectory, namespace: Optional[str] = None) -> None:
		super().__init__(namespace or settings.chat_namespace)
		self.engine = engine
		self._users = users
		self._sessions: Dict[str, Connection] = {}
		engine.bind_transport(self)

	async def send(self, sid: str, event: str, payload: dict) -> None:
		obs_metrics.socket_event(self.namespace, event)
		await self.emit(event, payload, room=sid)

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		obs_metrics.socket_connected(self.namespace)
		try:
			user_id = await self._authenticate(environ, auth)
		except AuthenticationError as exc:
			obs_metrics.socket_disconnected(self.namespace)
			obs_metrics.inc_socket_auth_reject(exc.detail)
			logger.info("socket_auth_rejected", extra={"sid": sid, "reason": exc.detail})
			raise ConnectionRefusedError("unauthorized") from None
		except TransientStoreError:
			obs_metrics.socket_disconnected(self.namespace)
			obs_metrics.inc_socket_auth_reject("store_unavailable")
			logger.warning("socket_auth_store_unavailable", extra={"sid": sid})
			raise ConnectionRefusedError("unavailable") from None

		self._sessions[sid] = Connection(sid=sid, user_id=user_id, authenticated_at=datetime.now(timezone.utc))
		self.engine.presence.register(user_id, sid)
		obs_metrics.set_presence_online(len(self.engine.presence))
		await self.emit("matches:ack", {"ok": True, "userId": user_id}, room=sid)
		logger.info("socket_connected", extra={"sid": sid, "user_id": user_id})

	async def on_disconnect(self, sid: str, reason: Optional[str] = None) -> None:
		obs_metrics.socket_disconnected(self.namespace)
		connection = self._sessions.pop(sid, None)
		if connection is None:
			return
		tokens = obs_logging.bind_context(user_id=connection.user_id, sid=sid)
		try:
			left = self.engine.rooms.leave_all(sid)
			self.engine.presence.unregister(connection.user_id, sid)
			obs_metrics.set_presence_online(len(self.engine.presence))
			for match_id in left:
				try:
					await self.engine.announce_leave(connection.user_id, match_id, exclude_sid=sid)
				except ChatError as exc:
					logger.warning("chat_leave_announce_failed", extra={"match_id": match_id, "reason": exc.reason})
				except Exception:
					logger.exception("chat_leave_announce_failed", extra={"match_id": match_id})
			logger.info("socket_disconnected", extra={"reason": reason})
		finally:
			obs_logging.reset_context(tokens)

	async def on_joinMatch(self, sid: str, payload: Optional[dict] = None) -> None:
		await self._dispatch(sid, schemas.JOIN_MATCH, payload, self._join)

	async def on_leaveMatch(self, sid: str, payload: Optional[dict] = None) -> None:
		await self._dispatch(sid, schemas.LEAVE_MATCH, payload, self._leave)

	async def on_sendMessage(self, sid: str, payload: Optional[dict] = None) -> None:
		await self._dispatch(sid, schemas.SEND_MESSAGE, payload, self._send_message)

	async def _dispatch(
		self,
		sid: str,
		event: str,
		payload: Optional[dict],
		handler: Callable[[Connection, schemas.ClientPayload], Awaitable[None]],
	) -> None:
		obs_metrics.socket_event(self.namespace, event)
		connection = self._sessions.get(sid)
		if connection is None:
			raise ConnectionRefusedError("unauthenticated")
		match_id = payload.get("matchId") if isinstance(payload, dict) else None
		tokens = obs_logging.bind_context(user_id=connection.user_id, sid=sid, route=event)
		try:
			request = schemas.parse_client_event(event, payload)
			match_id = request.match_id
			await handler(connection, request)
		except ChatError as exc:
			obs_metrics.inc_chat_reject(event, exc.reason)
			if isinstance(exc, TransientStoreError):
				logger.warning("chat_store_unavailable", extra={"event": event, "match_id": match_id})
			else:
				logger.info("chat_action_rejected", extra={"event": event, "match_id": match_id, "reason": exc.reason})
			await self._report(sid, exc.to_payload(event=event, match_id=_as_str(match_id)))
		except Exception:
			obs_metrics.inc_chat_reject(event, "internal_error")
			logger.exception("chat_action_failed", extra={"event": event, "match_id": match_id})
			await self._report(
				sid,
				{
					"code": "internal_error",
					"message": "Something went wrong, please retry",
					"event": event,
					"matchId": _as_str(match_id),
				},
			)
		finally:
			obs_logging.reset_context(tokens)

	async def _report(self, sid: str, payload: dict) -> None:
		await self.send(sid, schemas.ERROR, payload)

	async def _join(self, connection: Connection, request: schemas.JoinMatchRequest) -> None:
		await self.engine.gate.authorize(connection.user_id, request.match_id)
		if self.engine.rooms.join(connection.sid, request.match_id):
			obs_metrics.inc_room_join()
			await self.engine.announce_join(connection.user_id, request.match_id, exclude_sid=connection.sid)
		ack = schemas.RoomAckEvent(match_id=request.match_id).to_wire()
		await self.send(connection.sid, schemas.JOINED_MATCH, ack)

	async def _leave(self, connection: Connection, request: schemas.LeaveMatchRequest) -> None:
		if self.engine.rooms.leave(connection.sid, request.match_id):
			await self.engine.announce_leave(connection.user_id, request.match_id, exclude_sid=connection.sid)
		ack = schemas.RoomAckEvent(match_id=request.match_id).to_wire()
		await self.send(connection.sid, schemas.LEFT_MATCH, ack)

	async def _send_message(self, connection: Connection, request: schemas.SendMessageRequest) -> None:
		try:
			allowed = await rate_limit.allow(
				"chat_send",
				connection.user_id,
				limit=settings.chat_send_per_minute,
			)
		except RedisError as exc:
			raise TransientStoreError() from exc
		if not allowed:
			raise RateLimitedError()
		await self.engine.post_message(connection.user_id, request.match_id, request.message)

	async def _authenticate(self, environ: dict, auth: Optional[dict]) -> str:
		scope = environ.get("asgi.scope", environ)
		auth_payload = auth if isinstance(auth, dict) else {}
		token = auth_payload.get("token") or bearer_from_header(_header(scope, "authorization"))
		if token:
			try:
				user_id = parse_access_token(str(token)).id
			except InvalidCredential as exc:
				raise AuthenticationError(str(exc)) from exc
		elif settings.is_dev() and auth_payload.get("userId"):
			user_id = str(auth_payload["userId"])
		else:
			raise AuthenticationError("missing_token")
		if not await self._users.user_exists(user_id):
			raise AuthenticationError("unknown_user")
		return user_id


def _as_str(value: object) -> Optional[str]:
	if value is None or value == "":
		return None
	return str(value)
