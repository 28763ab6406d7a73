"""Errors raised by the match chat core.

Every error carries a stable ``reason`` code that is sent to the acting
connection only; none of these are ever broadcast to a room.
"""

from __future__ import annotations

from typing import Optional


class ChatError(Exception):
	"""Base class for chat and notification delivery errors."""

	reason: str = "chat_error"
	default_message: str = "Chat action failed"

	def __init__(self, message: str | None = None, *, reason: str | None = None) -> None:
		super().__init__(message or self.default_message)
		self.detail = message or self.default_message
		if reason:
			self.reason = reason

	def to_payload(self, *, event: Optional[str] = None, match_id: Optional[str] = None) -> dict:
		payload: dict = {"code": self.reason, "message": self.detail}
		if event:
			payload["event"] = event
		if match_id:
			payload["matchId"] = match_id
		return payload


class AuthenticationError(ChatError):
	reason = "unauthenticated"
	default_message = "Authentication failed"


class NotAuthorizedError(ChatError):
	reason = "not_authorized"
	default_message = "Not authorized for this match"


class BlockedRelationshipError(ChatError):
	reason = "blocked"
	default_message = "A blocked relationship exists with a participant of this match"


class ValidationError(ChatError):
	reason = "validation_error"
	default_message = "Invalid request"


class RateLimitedError(ChatError):
	reason = "rate_limited"
	default_message = "Too many messages, slow down"


class TransientStoreError(ChatError):
	reason = "store_unavailable"
	default_message = "Temporary failure, please retry"
