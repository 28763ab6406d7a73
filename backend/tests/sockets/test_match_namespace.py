from unittest.mock import AsyncMock

import pytest
import socketio

from sportsmatch.domain.chat import schemas, stores
from sportsmatch.domain.chat.exceptions import TransientStoreError
from sportsmatch.domain.chat.models import RelationshipStatus
from sportsmatch.domain.chat.policy import AuthorizationGate
from sportsmatch.domain.chat.sockets import MatchChatNamespace
from sportsmatch.infra import jwt as jwt_helper
from sportsmatch.settings import settings


def _scope_with_authorization(token: str) -> dict:
    return {
        "headers": [(b"authorization", f"Bearer {token}".encode())],
    }


def _emitted(namespace, event, sid=None):
    return [
        call.args[1]
        for call in namespace.emit.await_args_list
        if call.args[0] == event and (sid is None or call.kwargs.get("room") == sid)
    ]


@pytest.fixture
def namespace(container):
    server = socketio.AsyncServer(async_mode="asgi")
    ns = MatchChatNamespace(container.engine, container.users)
    server.register_namespace(ns)
    ns.emit = AsyncMock()
    ns.enter_room = AsyncMock()
    for user_id, first in (("u1", "Ana"), ("u2", "Ben"), ("u3", "Cleo")):
        container.users.add_user(user_id, first, None)
        container.participations.upsert(user_id, "m1")
    container.users.add_user("u4", "Dan", None)
    return ns


async def _connect(namespace, sid, user_id):
    token = jwt_helper.encode_access({"userId": user_id})
    await namespace.trigger_event("connect", sid, {"asgi.scope": {"headers": []}}, {"token": token})


@pytest.mark.asyncio
async def test_connect_requires_token(namespace):
    with pytest.raises(ConnectionRefusedError):
        await namespace.trigger_event("connect", "sid-1", {"asgi.scope": {"headers": []}})
    assert "sid-1" not in namespace._sessions


@pytest.mark.asyncio
async def test_connect_rejects_invalid_token_and_unknown_user(namespace):
    with pytest.raises(ConnectionRefusedError):
        await namespace.trigger_event("connect", "sid-1", {"asgi.scope": {"headers": []}}, {"token": "garbage"})

    ghost = jwt_helper.encode_access({"userId": "ghost"})
    with pytest.raises(ConnectionRefusedError):
        await namespace.trigger_event("connect", "sid-2", {"asgi.scope": _scope_with_authorization(ghost)})
    assert not namespace.engine.presence.is_online("ghost")


@pytest.mark.asyncio
async def test_connect_refused_when_store_unavailable(namespace, container, monkeypatch):
    monkeypatch.setattr(container.users, "user_exists", AsyncMock(side_effect=TransientStoreError()))

    with pytest.raises(ConnectionRefusedError):
        await _connect(namespace, "sid-1", "u1")


@pytest.mark.asyncio
async def test_connect_with_header_registers_presence(namespace, container):
    token = jwt_helper.encode_access({"sub": "u1"})
    await namespace.trigger_event("connect", "sid-1", {"asgi.scope": _scope_with_authorization(token)})

    assert namespace._sessions["sid-1"].user_id == "u1"
    assert container.presence.connections_for("u1") == frozenset({"sid-1"})
    namespace.enter_room.assert_not_awaited()
    assert _emitted(namespace, "matches:ack", "sid-1") == [{"ok": True, "userId": "u1"}]


@pytest.mark.asyncio
async def test_dev_mode_accepts_user_id_without_token(namespace, container):
    await namespace.trigger_event("connect", "sid-1", {"asgi.scope": {"headers": []}}, {"userId": "u2"})
    assert container.presence.is_online("u2")


@pytest.mark.asyncio
async def test_dev_user_id_refused_outside_dev(namespace, monkeypatch):
    monkeypatch.setattr(settings, "environment", "production")

    with pytest.raises(ConnectionRefusedError):
        await namespace.trigger_event("connect", "sid-1", {"asgi.scope": {"headers": []}}, {"userId": "u2"})


@pytest.mark.asyncio
async def test_join_announces_and_acknowledges(namespace, container):
    await _connect(namespace, "s1", "u1")
    await _connect(namespace, "s2", "u2")
    await namespace.trigger_event("joinMatch", "s1", {"matchId": "m1"})
    await namespace.trigger_event("joinMatch", "s2", {"matchId": "m1"})

    assert container.rooms.members_of("m1") == frozenset({"s1", "s2"})
    assert _emitted(namespace, schemas.JOINED_MATCH, "s2") == [{"matchId": "m1"}]
    assert _emitted(namespace, schemas.USER_JOINED_MATCH, "s1") == [
        {"matchId": "m1", "userId": "u2", "userName": "Ben"}
    ]
    assert _emitted(namespace, schemas.USER_JOINED_MATCH, "s2") == []


@pytest.mark.asyncio
async def test_rejoin_is_silent(namespace):
    await _connect(namespace, "s1", "u1")
    await _connect(namespace, "s2", "u2")
    await namespace.trigger_event("joinMatch", "s2", {"matchId": "m1"})
    await namespace.trigger_event("joinMatch", "s1", {"matchId": "m1"})
    await namespace.trigger_event("joinMatch", "s1", {"matchId": "m1"})

    assert len(_emitted(namespace, schemas.USER_JOINED_MATCH, "s2")) == 1
    assert len(_emitted(namespace, schemas.JOINED_MATCH, "s1")) == 2


@pytest.mark.asyncio
async def test_join_by_non_participant_reports_only_to_actor(namespace, container):
    await _connect(namespace, "s1", "u1")
    await namespace.trigger_event("joinMatch", "s1", {"matchId": "m1"})
    await _connect(namespace, "s4", "u4")

    await namespace.trigger_event("joinMatch", "s4", {"matchId": "m1"})

    assert not container.rooms.is_member("s4", "m1")
    assert _emitted(namespace, schemas.JOINED_MATCH, "s4") == []
    errors = _emitted(namespace, schemas.ERROR, "s4")
    assert errors == [
        {
            "code": "not_authorized",
            "message": "Not authorized for this match",
            "event": "joinMatch",
            "matchId": "m1",
        }
    ]
    assert _emitted(namespace, schemas.ERROR, "s1") == []
    assert _emitted(namespace, schemas.USER_JOINED_MATCH) == []


@pytest.mark.asyncio
async def test_send_message_broadcasts_to_room(namespace, container):
    for sid, user_id in (("s1", "u1"), ("s2", "u2"), ("s3", "u3")):
        await _connect(namespace, sid, user_id)
        await namespace.trigger_event("joinMatch", sid, {"matchId": "m1"})

    await namespace.trigger_event("sendMessage", "s1", {"matchId": "m1", "message": "hello"})
    await container.engine.drain()

    for sid in ("s1", "s2", "s3"):
        [payload] = _emitted(namespace, schemas.NEW_MESSAGE, sid)
        assert payload["message"] == "hello"
        assert payload["userId"] == "u1"
    # Other participants are online, so their new_message notification is pushed live.
    assert len(_emitted(namespace, schemas.NEW_NOTIFICATION, "s2")) == 1
    assert _emitted(namespace, schemas.NEW_NOTIFICATION, "s1") == []


@pytest.mark.asyncio
async def test_blocked_send_is_reported_and_not_broadcast(namespace, container):
    for sid, user_id in (("s1", "u1"), ("s2", "u2")):
        await _connect(namespace, sid, user_id)
        await namespace.trigger_event("joinMatch", sid, {"matchId": "m1"})
    container.relationships.set_status("u1", "u2", RelationshipStatus.BLOCKED)

    await namespace.trigger_event("sendMessage", "s2", {"matchId": "m1", "message": "hello"})

    assert _emitted(namespace, schemas.NEW_MESSAGE) == []
    assert _emitted(namespace, schemas.ERROR, "s2")[0]["code"] == "blocked"


@pytest.mark.asyncio
async def test_invalid_payload_and_blank_message_report_validation_error(namespace):
    await _connect(namespace, "s1", "u1")
    await namespace.trigger_event("joinMatch", "s1", {"matchId": "m1"})

    await namespace.trigger_event("sendMessage", "s1", {"message": "no match"})
    await namespace.trigger_event("sendMessage", "s1", {"matchId": "m1", "message": "   "})

    errors = _emitted(namespace, schemas.ERROR, "s1")
    assert [error["code"] for error in errors] == ["validation_error", "validation_error"]
    assert "matchId" not in errors[0]
    assert errors[1]["matchId"] == "m1"
    assert _emitted(namespace, schemas.NEW_MESSAGE) == []


@pytest.mark.asyncio
async def test_send_rate_limit(namespace, monkeypatch):
    monkeypatch.setattr(settings, "chat_send_per_minute", 2)
    await _connect(namespace, "s1", "u1")
    await namespace.trigger_event("joinMatch", "s1", {"matchId": "m1"})

    for index in range(3):
        await namespace.trigger_event("sendMessage", "s1", {"matchId": "m1", "message": f"msg {index}"})

    assert len(_emitted(namespace, schemas.NEW_MESSAGE, "s1")) == 2
    assert _emitted(namespace, schemas.ERROR, "s1")[0]["code"] == "rate_limited"


@pytest.mark.asyncio
async def test_unexpected_failure_reports_internal_error(namespace, container, monkeypatch):
    await _connect(namespace, "s1", "u1")
    monkeypatch.setattr(container.engine.gate, "authorize", AsyncMock(side_effect=RuntimeError("boom")))

    await namespace.trigger_event("joinMatch", "s1", {"matchId": "m1"})

    [error] = _emitted(namespace, schemas.ERROR, "s1")
    assert error["code"] == "internal_error"
    assert error["matchId"] == "m1"


@pytest.mark.asyncio
async def test_leave_match_announces_and_acknowledges(namespace, container):
    for sid, user_id in (("s1", "u1"), ("s2", "u2")):
        await _connect(namespace, sid, user_id)
        await namespace.trigger_event("joinMatch", sid, {"matchId": "m1"})

    await namespace.trigger_event("leaveMatch", "s2", {"matchId": "m1"})
    await namespace.trigger_event("leaveMatch", "s2", {"matchId": "m1"})

    assert container.rooms.members_of("m1") == frozenset({"s1"})
    assert len(_emitted(namespace, schemas.LEFT_MATCH, "s2")) == 2
    assert _emitted(namespace, schemas.USER_LEFT_MATCH, "s1") == [{"matchId": "m1", "userId": "u2", "userName": "Ben"}]


@pytest.mark.asyncio
async def test_disconnect_leaves_every_room_and_presence(namespace, container):
    container.participations.upsert("u1", "m2")
    container.participations.upsert("u2", "m2")
    for sid, user_id in (("s1", "u1"), ("s2", "u2")):
        await _connect(namespace, sid, user_id)
        await namespace.trigger_event("joinMatch", sid, {"matchId": "m1"})
        await namespace.trigger_event("joinMatch", sid, {"matchId": "m2"})

    await namespace.trigger_event("disconnect", "s1", "client disconnect")

    assert container.rooms.rooms_of("s1") == frozenset()
    assert not container.presence.is_online("u1")
    left = _emitted(namespace, schemas.USER_LEFT_MATCH, "s2")
    assert sorted(payload["matchId"] for payload in left) == ["m1", "m2"]

    # A second disconnect for the same sid is a no-op.
    await namespace.trigger_event("disconnect", "s1", "client disconnect")


@pytest.mark.asyncio
async def test_events_from_unknown_sid_are_refused(namespace):
    with pytest.raises(ConnectionRefusedError):
        await namespace.trigger_event("sendMessage", "nobody", {"matchId": "m1", "message": "hi"})


@pytest.mark.asyncio
async def test_join_with_malformed_match_id_is_not_authorized(namespace, container, monkeypatch):
    async def unreachable():
        raise OSError("connection refused")

    monkeypatch.setattr(stores, "get_pool", unreachable)
    gate = AuthorizationGate(stores.PostgresParticipationStore(), stores.PostgresRelationshipStore())
    monkeypatch.setattr(container.engine, "gate", gate)
    await _connect(namespace, "s1", "u1")

    await namespace.trigger_event("joinMatch", "s1", {"matchId": "abc"})

    [error] = _emitted(namespace, schemas.ERROR, "s1")
    assert error["code"] == "not_authorized"
    assert error["matchId"] == "abc"
    assert not container.rooms.is_member("s1", "abc")


@pytest.mark.asyncio
async def test_disconnect_cleans_up_when_leave_announcement_fails(namespace, container, monkeypatch):
    for sid, user_id in (("s1", "u1"), ("s2", "u2")):
        await _connect(namespace, sid, user_id)
        await namespace.trigger_event("joinMatch", sid, {"matchId": "m1"})
    monkeypatch.setattr(container.users, "get_display_name", AsyncMock(side_effect=RuntimeError("boom")))

    await namespace.trigger_event("disconnect", "s1", "transport close")

    assert not container.presence.is_online("u1")
    assert container.rooms.rooms_of("s1") == frozenset()
    assert container.rooms.members_of("m1") == frozenset({"s2"})
    assert "s1" not in namespace._sessions
