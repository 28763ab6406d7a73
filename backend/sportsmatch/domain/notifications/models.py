"""Domain models for user notifications."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping


class NotificationType(str, Enum):
    """Type tags; each one can be switched off in the user's preferences."""

    NEW_MESSAGE = "new_message"
    FRIEND_REQUEST_RECEIVED = "friend_request_received"
    FRIEND_REQUEST_ACCEPTED = "friend_request_accepted"
    FRIEND_REQUEST_REJECTED = "friend_request_rejected"
    RATING_RECEIVED = "rating_received"
    MATCH_UPDATE = "match_update"


@dataclass(slots=True)
class Notification:
    id: str
    user_id: str
    type: str
    message: str
    is_read: bool
    is_dismissed: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Notification":
        return cls(
            id=str(record["id"]),
            user_id=str(record["user_id"]),
            type=record["type"],
            message=record["message"],
            is_read=bool(record["is_read"]),
            is_dismissed=bool(record["is_dismissed"]),
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "message": self.message,
            "is_read": self.is_read,
            "is_dismissed": self.is_dismissed,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
