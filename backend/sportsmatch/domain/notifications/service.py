"""Durable notifications with best-effort live push."""

from __future__ import annotations

import logging
from typing import Optional

from sportsmatch.domain.chat.presence import PresenceRegistry
from sportsmatch.domain.chat.schemas import NEW_NOTIFICATION
from sportsmatch.domain.chat.stores import UserDirectory
from sportsmatch.domain.chat.transport import ConnectionTransport, fan_out
from sportsmatch.domain.notifications.models import Notification, NotificationType
from sportsmatch.domain.notifications.repo import NotificationStore
from sportsmatch.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_PREVIEW_LENGTH = 80


def _preview(text: str) -> str:
    text = " ".join(text.split())
    return text if len(text) <= _PREVIEW_LENGTH else f"{text[: _PREVIEW_LENGTH - 1]}…"


class NotificationFanout:
    """Persist a notification, then push it to every live connection of the recipient.

    The row is written before any push, so a client that receives
    ``newNotification`` can always fetch it right away. Pushes go through the
    presence registry and are independent of match room membership.
    """

    def __init__(
        self,
        *,
        users: UserDirectory,
        store: NotificationStore,
        presence: PresenceRegistry,
        transport: Optional[ConnectionTransport] = None,
    ) -> None:
        self._users = users
        self._store = store
        self._presence = presence
        self._transport = transport

    def bind_transport(self, transport: ConnectionTransport) -> None:
        self._transport = transport

    async def notify(self, recipient_id: str, type: NotificationType | str, message: str) -> Optional[Notification]:
        kind = type.value if isinstance(type, NotificationType) else str(type)
        preferences = await self._users.get_notification_preferences(recipient_id)
        if preferences is None:
            logger.warning("notification_recipient_missing", extra={"recipient_id": recipient_id, "type": kind})
            return None
        if preferences.get(kind) is False:
            obs_metrics.inc_notification_skipped(kind)
            logger.debug("notification_disabled", extra={"recipient_id": recipient_id, "type": kind})
            return None

        notification = await self._store.create(recipient_id, kind, message)
        obs_metrics.inc_notification_persisted(kind)

        sids = self._presence.connections_for(recipient_id)
        if sids and self._transport is not None:
            pushed = await fan_out(self._transport, sids, NEW_NOTIFICATION, notification.to_dict())
            obs_metrics.inc_notification_pushed(pushed)
            if pushed < len(sids):
                obs_metrics.inc_notification_push_failure(len(sids) - pushed)
        logger.info(
            "notification_created",
            extra={"recipient_id": recipient_id, "type": kind, "live_connections": len(sids)},
        )
        return notification

    async def notify_new_message(self, recipient_id: str, *, sender_name: str, body: str) -> Optional[Notification]:
        return await self.notify(
            recipient_id,
            NotificationType.NEW_MESSAGE,
            f"New message from {sender_name}: {_preview(body)}",
        )

    async def notify_friend_request_received(self, recipient_id: str, *, sender_name: str) -> Optional[Notification]:
        return await self.notify(
            recipient_id,
            NotificationType.FRIEND_REQUEST_RECEIVED,
            f"{sender_name} sent you a friend request.",
        )

    async def notify_friend_request_accepted(self, recipient_id: str, *, receiver_name: str) -> Optional[Notification]:
        return await self.notify(
            recipient_id,
            NotificationType.FRIEND_REQUEST_ACCEPTED,
            f"{receiver_name} accepted your friend request.",
        )

    async def notify_friend_request_rejected(self, recipient_id: str, *, receiver_name: str) -> Optional[Notification]:
        return await self.notify(
            recipient_id,
            NotificationType.FRIEND_REQUEST_REJECTED,
            f"{receiver_name} rejected your friend request.",
        )

    async def notify_rating_received(
        self,
        recipient_id: str,
        *,
        rating: int,
        match_title: str,
        rater_name: Optional[str] = None,
    ) -> Optional[Notification]:
        rater = rater_name or "an anonymous user"
        return await self.notify(
            recipient_id,
            NotificationType.RATING_RECEIVED,
            f'You received a rating ({rating}/5) from {rater} for the match "{match_title}".',
        )
