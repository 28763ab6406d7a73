"""Pydantic schemas for the notifications REST surface."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, RootModel, field_validator

from sportsmatch.domain.notifications.models import Notification, NotificationType

_KNOWN_TYPES = frozenset(item.value for item in NotificationType)


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: str
    message: str
    is_read: bool
    is_dismissed: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationOut":
        return cls.model_validate(notification)


class Pagination(BaseModel):
    page: int
    limit: int
    count: int


class NotificationListResponse(BaseModel):
    items: List[NotificationOut]
    pagination: Pagination


class UnreadCountResponse(BaseModel):
    unread: int


class PreferencesPayload(RootModel[Dict[str, bool]]):
    """Partial preference map; only known notification types are accepted."""

    @field_validator("root")
    @classmethod
    def _known_types(cls, value: Dict[str, bool]) -> Dict[str, bool]:
        unknown = sorted(set(value) - _KNOWN_TYPES)
        if unknown:
            raise ValueError(f"unknown notification types: {', '.join(unknown)}")
        return value


class PreferencesResponse(BaseModel):
    preferences: Dict[str, bool]

    @classmethod
    def with_defaults(cls, stored: Dict[str, bool]) -> "PreferencesResponse":
        # Absent keys mean enabled.
        merged = {kind: stored.get(kind, True) is not False for kind in sorted(_KNOWN_TYPES)}
        return cls(preferences=merged)
