"""Domain models for match chat."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping


class ParticipationStatus(str, Enum):
    """Participation states tracked in user_matches."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


class RelationshipStatus(str, Enum):
    """Friendship states tracked in friendships."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    BLOCKED = "blocked"


@dataclass(frozen=True, slots=True)
class Connection:
    """A live Socket.IO session bound to exactly one authenticated user."""

    sid: str
    user_id: str
    authenticated_at: datetime


@dataclass(slots=True)
class Participation:
    user_id: str
    match_id: str
    status: ParticipationStatus
    joined_at: datetime

    @property
    def is_confirmed(self) -> bool:
        return self.status is ParticipationStatus.CONFIRMED

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Participation":
        return cls(
            user_id=str(record["user_id"]),
            match_id=str(record["match_id"]),
            status=ParticipationStatus(record["participation_status"]),
            joined_at=record["joined_at"],
        )


@dataclass(slots=True)
class Relationship:
    """Directional friendship row; a block in either direction blocks both ways."""

    sender_id: str
    receiver_id: str
    status: RelationshipStatus

    def involves(self, user_a: str, user_b: str) -> bool:
        return {self.sender_id, self.receiver_id} == {str(user_a), str(user_b)}


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """A message as broadcast to a match room. Never persisted."""

    id: str
    match_id: str
    user_id: str
    user_name: str
    message: str
    timestamp: datetime

