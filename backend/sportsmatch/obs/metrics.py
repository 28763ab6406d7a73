"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"sportsmatch_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"sportsmatch_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"sportsmatch_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"sportsmatch_socketio_events_total",
	"Socket.IO events handled or emitted per namespace",
	["namespace", "event"],
)

SOCKET_AUTH_REJECTS = Counter(
	"sportsmatch_socketio_auth_rejects_total",
	"Socket.IO handshakes refused",
	["reason"],
)

PRESENCE_ONLINE_USERS = Gauge(
	"sportsmatch_presence_online_users",
	"Users holding at least one live connection in this process",
)

CHAT_MESSAGES_SENT = Counter(
	"sportsmatch_chat_messages_sent_total",
	"Match chat messages broadcast",
)

CHAT_MESSAGES_DELIVERED = Counter(
	"sportsmatch_chat_messages_delivered_total",
	"Match chat message deliveries (one per receiving connection)",
)

CHAT_REJECTS = Counter(
	"sportsmatch_chat_rejects_total",
	"Match chat actions rejected",
	["action", "reason"],
)

ROOM_JOINS = Counter(
	"sportsmatch_match_room_joins_total",
	"Connections admitted to a match room",
)

NOTIFICATION_PERSISTED = Counter(
	"sportsmatch_notifications_persisted_total",
	"Notifications written to the store",
	["type"],
)

NOTIFICATION_SKIPPED = Counter(
	"sportsmatch_notifications_skipped_total",
	"Notifications suppressed by recipient preference",
	["type"],
)

NOTIFICATION_PUSHED = Counter(
	"sportsmatch_notifications_pushed_total",
	"Notification pushes to live connections",
)

NOTIFICATION_PUSH_FAILURES = Counter(
	"sportsmatch_notifications_push_failures_total",
	"Notification pushes that raised",
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_socket_auth_reject(reason: str) -> None:
	SOCKET_AUTH_REJECTS.labels(reason=reason).inc()


def set_presence_online(count: int) -> None:
	PRESENCE_ONLINE_USERS.set(count)


def inc_chat_send(delivered: int) -> None:
	CHAT_MESSAGES_SENT.inc()
	CHAT_MESSAGES_DELIVERED.inc(delivered)


def inc_chat_reject(action: str, reason: str) -> None:
	CHAT_REJECTS.labels(action=action, reason=reason).inc()


def inc_room_join() -> None:
	ROOM_JOINS.inc()


def inc_notification_persisted(kind: str) -> None:
	NOTIFICATION_PERSISTED.labels(type=kind).inc()


def inc_notification_skipped(kind: str) -> None:
	NOTIFICATION_SKIPPED.labels(type=kind).inc()


def inc_notification_pushed(count: int = 1) -> None:
	NOTIFICATION_PUSHED.inc(count)


def inc_notification_push_failure(count: int = 1) -> None:
	NOTIFICATION_PUSH_FAILURES.inc(count)
