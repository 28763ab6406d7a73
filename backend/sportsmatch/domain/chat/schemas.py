"""Pydantic schemas for match chat Socket.IO events.

Each client event name maps to exactly one payload model; payloads are
validated before dispatch. Server events are built through the ``*Event``
models so every emit has a fixed wire shape.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from sportsmatch.domain.chat.exceptions import ValidationError

JOIN_MATCH = "joinMatch"
LEAVE_MATCH = "leaveMatch"
SEND_MESSAGE = "sendMessage"

NEW_MESSAGE = "newMessage"
USER_JOINED_MATCH = "userJoinedMatch"
USER_LEFT_MATCH = "userLeftMatch"
PARTICIPANT_UPDATE = "participantUpdate"
NEW_NOTIFICATION = "newNotification"
JOINED_MATCH = "joinedMatch"
LEFT_MATCH = "leftMatch"
ERROR = "error"


class ClientPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    match_id: str = Field(..., alias="matchId", min_length=1, max_length=64)

    @field_validator("match_id", mode="before")
    @classmethod
    def _coerce_match_id(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value.strip() if isinstance(value, str) else value


class JoinMatchRequest(ClientPayload):
    pass


class LeaveMatchRequest(ClientPayload):
    pass


class SendMessageRequest(ClientPayload):
    # Length and emptiness are checked by the broadcast engine after trimming.
    message: str


CLIENT_EVENTS: Dict[str, Type[ClientPayload]] = {
    JOIN_MATCH: JoinMatchRequest,
    LEAVE_MATCH: LeaveMatchRequest,
    SEND_MESSAGE: SendMessageRequest,
}


def parse_client_event(event: str, payload: object) -> ClientPayload:
    model = CLIENT_EVENTS.get(event)
    if model is None:
        raise ValidationError(f"Unknown event {event}")
    if not isinstance(payload, dict):
        raise ValidationError("Payload must be an object")
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        fields = ",".join(sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()}))
        raise ValidationError(f"Invalid {event} payload: {fields}") from exc


class _ServerEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class NewMessageEvent(_ServerEvent):
    id: str
    match_id: str = Field(..., alias="matchId")
    user_id: str = Field(..., alias="userId")
    user_name: str = Field(..., alias="userName")
    message: str
    timestamp: datetime


class MemberEvent(_ServerEvent):
    """Payload of userJoinedMatch / userLeftMatch."""

    match_id: str = Field(..., alias="matchId")
    user_id: str = Field(..., alias="userId")
    user_name: str = Field(..., alias="userName")


class ParticipantUpdateEvent(_ServerEvent):
    match_id: str = Field(..., alias="matchId")
    participant_count: int = Field(..., alias="participantCount", ge=0)


class RoomAckEvent(_ServerEvent):
    """Payload of joinedMatch / leftMatch sent to the acting connection."""

    match_id: str = Field(..., alias="matchId")
