"""Notification persistence."""

from __future__ import annotations

import itertools
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from sportsmatch.domain.chat.stores import store_connection, valid_uuid
from sportsmatch.domain.notifications.models import Notification

SORT_FIELDS = ("created_at", "is_read")

_COLUMNS = "id, user_id, type, message, is_read, is_dismissed, created_at, updated_at"


@dataclass(slots=True)
class ListQuery:
    page: int = 1
    limit: int = 10
    is_read: Optional[bool] = None
    include_dismissed: bool = False
    sort_by: str = "created_at"
    sort_order: str = "desc"

    @property
    def offset(self) -> int:
        return (max(self.page, 1) - 1) * self.limit

    @property
    def order_column(self) -> str:
        return self.sort_by if self.sort_by in SORT_FIELDS else "created_at"

    @property
    def descending(self) -> bool:
        return self.sort_order.lower() != "asc"


class NotificationStore(Protocol):
    async def create(self, recipient_id: str, type: str, message: str) -> Notification:
        ...

    async def get(self, user_id: str, notification_id: str) -> Optional[Notification]:
        ...

    async def list_for_user(self, user_id: str, query: ListQuery) -> List[Notification]:
        ...

    async def count_unread(self, user_id: str) -> int:
        ...

    async def mark_read(self, user_id: str, notification_id: str) -> Optional[Notification]:
        ...

    async def dismiss(self, user_id: str, notification_id: str) -> Optional[Notification]:
        ...

    async def delete(self, user_id: str, notification_id: str) -> bool:
        ...


class NotificationRepository:
    async def create(self, recipient_id: str, type: str, message: str) -> Notification:
        now = datetime.now(timezone.utc)
        async with store_connection() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO notifications (id, user_id, type, message, is_read, is_dismissed, created_at, updated_at)
                VALUES ($1, $2, $3, $4, FALSE, FALSE, $5, $5)
                RETURNING {_COLUMNS}
                """,
                str(uuid.uuid4()),
                recipient_id,
                type,
                message,
                now,
            )
        return Notification.from_record(row)

    async def get(self, user_id: str, notification_id: str) -> Optional[Notification]:
        if not valid_uuid(notification_id):
            return None
        async with store_connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM notifications WHERE id = $1 AND user_id = $2",
                notification_id,
                user_id,
            )
        return Notification.from_record(row) if row else None

    async def list_for_user(self, user_id: str, query: ListQuery) -> List[Notification]:
        clauses = ["user_id = $1"]
        params: list = [user_id]
        if query.is_read is not None:
            params.append(query.is_read)
            clauses.append(f"is_read = ${len(params)}")
        if not query.include_dismissed:
            clauses.append("is_dismissed = FALSE")
        params.extend([query.limit, query.offset])
        direction = "DESC" if query.descending else "ASC"
        sql = (
            f"SELECT {_COLUMNS} FROM notifications WHERE {' AND '.join(clauses)} "
            f"ORDER BY {query.order_column} {direction}, id {direction} "
            f"LIMIT ${len(params) - 1} OFFSET ${len(params)}"
        )
        async with store_connection() as conn:
            rows = await conn.fetch(sql, *params)
        return [Notification.from_record(row) for row in rows]

    async def count_unread(self, user_id: str) -> int:
        async with store_connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT COUNT(*) AS count
                FROM notifications
                WHERE user_id = $1 AND is_read = FALSE AND is_dismissed = FALSE
                """,
                user_id,
            )
        return int(row["count"]) if row else 0

    async def _set_flag(self, user_id: str, notification_id: str, column: str) -> Optional[Notification]:
        if not valid_uuid(notification_id):
            return None
        async with store_connection() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE notifications
                SET {column} = TRUE,
                    updated_at = CASE WHEN {column} THEN updated_at ELSE NOW() END
                WHERE id = $1 AND user_id = $2
                RETURNING {_COLUMNS}
                """,
                notification_id,
                user_id,
            )
        return Notification.from_record(row) if row else None

    async def mark_read(self, user_id: str, notification_id: str) -> Optional[Notification]:
        return await self._set_flag(user_id, notification_id, "is_read")

    async def dismiss(self, user_id: str, notification_id: str) -> Optional[Notification]:
        return await self._set_flag(user_id, notification_id, "is_dismissed")

    async def delete(self, user_id: str, notification_id: str) -> bool:
        if not valid_uuid(notification_id):
            return False
        async with store_connection() as conn:
            result = await conn.execute(
                "DELETE FROM notifications WHERE id = $1 AND user_id = $2",
                notification_id,
                user_id,
            )
        return result.endswith(" 1")


class MemoryNotificationRepository:
    def __init__(self) -> None:
        self._rows: Dict[str, Notification] = {}
        # Insertion order breaks created_at ties.
        self._sequence = itertools.count()
        self._order: Dict[str, int] = {}

    async def create(self, recipient_id: str, type: str, message: str) -> Notification:
        now = datetime.now(timezone.utc)
        notification = Notification(
            id=str(uuid.uuid4()),
            user_id=str(recipient_id),
            type=type,
            message=message,
            is_read=False,
            is_dismissed=False,
            created_at=now,
            updated_at=now,
        )
        self._rows[notification.id] = notification
        self._order[notification.id] = next(self._sequence)
        return notification

    async def get(self, user_id: str, notification_id: str) -> Optional[Notification]:
        row = self._rows.get(str(notification_id))
        if row is None or row.user_id != str(user_id):
            return None
        return row

    async def list_for_user(self, user_id: str, query: ListQuery) -> List[Notification]:
        rows = [row for row in self._rows.values() if row.user_id == str(user_id)]
        if query.is_read is not None:
            rows = [row for row in rows if row.is_read is query.is_read]
        if not query.include_dismissed:
            rows = [row for row in rows if not row.is_dismissed]
        column = query.order_column
        rows.sort(key=lambda row: (getattr(row, column), self._order[row.id]), reverse=query.descending)
        return rows[query.offset : query.offset + query.limit]

    async def count_unread(self, user_id: str) -> int:
        return sum(
            1 for row in self._rows.values() if row.user_id == str(user_id) and not row.is_read and not row.is_dismissed
        )

    async def mark_read(self, user_id: str, notification_id: str) -> Optional[Notification]:
        row = await self.get(user_id, notification_id)
        if row is not None and not row.is_read:
            row.is_read = True
            row.updated_at = datetime.now(timezone.utc)
        return row

    async def dismiss(self, user_id: str, notification_id: str) -> Optional[Notification]:
        row = await self.get(user_id, notification_id)
        if row is not None and not row.is_dismissed:
            row.is_dismissed = True
            row.updated_at = datetime.now(timezone.utc)
        return row

    async def delete(self, user_id: str, notification_id: str) -> bool:
        row = await self.get(user_id, notification_id)
        if row is None:
            return False
        del self._rows[row.id]
        self._order.pop(row.id, None)
        return True
