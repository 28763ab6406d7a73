"""Process-scoped wiring of the realtime core.

One ``Container`` is built per server process; the registries it holds are
passed explicitly to every component that needs them.
"""

from __future__ import annotations

from dataclasses import dataclass

from sportsmatch.domain.chat.policy import AuthorizationGate
from sportsmatch.domain.chat.presence import PresenceRegistry
from sportsmatch.domain.chat.rooms import RoomMembershipManager
from sportsmatch.domain.chat.service import ChatBroadcastEngine
from sportsmatch.domain.chat.stores import (
	MemoryParticipationStore,
	MemoryRelationshipStore,
	MemoryUserDirectory,
	ParticipationStore,
	PostgresParticipationStore,
	PostgresRelationshipStore,
	PostgresUserDirectory,
	RelationshipStore,
	UserDirectory,
)
from sportsmatch.domain.notifications.repo import (
	MemoryNotificationRepository,
	NotificationRepository,
	NotificationStore,
)
from sportsmatch.domain.notifications.service import NotificationFanout
from sportsmatch.settings import settings

STORE_BACKENDS = ("postgres", "memory")


@dataclass(slots=True)
class Container:
	participations: ParticipationStore
	relationships: RelationshipStore
	users: UserDirectory
	notifications: NotificationStore
	presence: PresenceRegistry
	rooms: RoomMembershipManager
	gate: AuthorizationGate
	notifier: NotificationFanout
	engine: ChatBroadcastEngine


def build_container(backend: str | None = None) -> Container:
	backend = (backend or settings.store_backend).lower()
	if backend == "memory":
		participations = MemoryParticipationStore()
		relationships = MemoryRelationshipStore()
		users = MemoryUserDirectory()
		notifications = MemoryNotificationRepository()
	elif backend == "postgres":
		participations = PostgresParticipationStore()
		relationships = PostgresRelationshipStore()
		users = PostgresUserDirectory()
		notifications = NotificationRepository()
	else:
		raise ValueError(f"unknown store backend {backend!r}; expected one of {', '.join(STORE_BACKENDS)}")

	presence = PresenceRegistry()
	rooms = RoomMembershipManager()
	gate = AuthorizationGate(participations, relationships)
	notifier = NotificationFanout(users=users, store=notifications, presence=presence)
	engine = ChatBroadcastEngine(
		gate=gate,
		rooms=rooms,
		presence=presence,
		users=users,
		notifier=notifier,
		max_message_length=settings.chat_max_message_length,
	)
	return Container(
		participations=participations,
		relationships=relationships,
		users=users,
		notifications=notifications,
		presence=presence,
		rooms=rooms,
		gate=gate,
		notifier=notifier,
		engine=engine,
	)
