import pytest

from sportsmatch.infra import jwt as jwt_helper
from sportsmatch.settings import settings

HEADERS = {"X-User-Id": "u1"}


@pytest.fixture
def seeded(container):
    container.users.add_user("u1", "Ana", "Silva", preferences={"new_message": False})
    container.users.add_user("u2", "Ben", "Okafor")
    return container


async def _create(container, user_id="u1", count=1):
    return [await container.notifications.create(user_id, "rating_received", f"rating {i}") for i in range(count)]


@pytest.mark.asyncio
async def test_list_requires_authentication(api_client):
    response = await api_client.get("/notifications")
    assert response.status_code == 401
    assert response.json()["detail"] == "invalid_token"
    assert "request_id" in response.json()


@pytest.mark.asyncio
async def test_list_with_bearer_token(api_client, seeded):
    await _create(seeded, count=2)
    token = jwt_helper.encode_access({"userId": "u1"})

    response = await api_client.get("/notifications", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    body = response.json()
    assert len(body["items"]) == 2
    assert body["pagination"] == {"page": 1, "limit": 10, "count": 2}


@pytest.mark.asyncio
async def test_list_filters_and_paginates(api_client, seeded):
    rows = await _create(seeded, count=3)
    await _create(seeded, user_id="u2")
    await seeded.notifications.mark_read("u1", rows[0].id)
    await seeded.notifications.dismiss("u1", rows[1].id)

    unread = await api_client.get("/notifications", params={"is_read": "false"}, headers=HEADERS)
    everything = await api_client.get("/notifications", params={"include_dismissed": "true"}, headers=HEADERS)
    paged = await api_client.get(
        "/notifications",
        params={"page": 2, "limit": 1, "sort_order": "asc", "include_dismissed": "true"},
        headers=HEADERS,
    )

    assert [item["id"] for item in unread.json()["items"]] == [rows[2].id]
    assert len(everything.json()["items"]) == 3
    assert [item["id"] for item in paged.json()["items"]] == [rows[1].id]


@pytest.mark.asyncio
async def test_list_rejects_unknown_sort_field(api_client, seeded):
    response = await api_client.get("/notifications", params={"sort_by": "message"}, headers=HEADERS)

    assert response.status_code == 422
    assert response.json()["detail"] == "validation_error"


@pytest.mark.asyncio
async def test_unread_count(api_client, seeded):
    rows = await _create(seeded, count=3)
    await seeded.notifications.mark_read("u1", rows[0].id)

    response = await api_client.get("/notifications/unread-count", headers=HEADERS)

    assert response.json() == {"unread": 2}


@pytest.mark.asyncio
async def test_fetch_mark_read_and_dismiss(api_client, seeded):
    [row] = await _create(seeded)

    fetched = await api_client.get(f"/notifications/{row.id}", headers=HEADERS)
    read = await api_client.patch(f"/notifications/{row.id}/read", headers=HEADERS)
    dismissed = await api_client.patch(f"/notifications/{row.id}/dismiss", headers=HEADERS)

    assert fetched.status_code == 200
    assert fetched.json()["message"] == "rating 0"
    assert read.json()["is_read"] is True
    assert dismissed.json()["is_dismissed"] is True


@pytest.mark.asyncio
async def test_mark_read_and_dismiss_accept_put(api_client, seeded):
    [row] = await _create(seeded)

    read = await api_client.put(f"/notifications/{row.id}/read", headers=HEADERS)
    dismissed = await api_client.put(f"/notifications/{row.id}/dismiss", headers=HEADERS)

    assert read.status_code == 200
    assert read.json()["is_read"] is True
    assert dismissed.status_code == 200
    assert dismissed.json()["is_dismissed"] is True


@pytest.mark.asyncio
async def test_foreign_or_missing_notification_is_not_found(api_client, seeded):
    [row] = await _create(seeded, user_id="u2")

    for method, path in (
        ("GET", f"/notifications/{row.id}"),
        ("PATCH", f"/notifications/{row.id}/read"),
        ("PATCH", f"/notifications/{row.id}/dismiss"),
        ("DELETE", f"/notifications/{row.id}"),
        ("DELETE", "/notifications/does-not-exist"),
    ):
        response = await api_client.request(method, path, headers=HEADERS)
        assert response.status_code == 404, path
        assert response.json()["detail"] == "notification_not_found"
    assert await seeded.notifications.get("u2", row.id) is not None


@pytest.mark.asyncio
async def test_delete(api_client, seeded):
    [row] = await _create(seeded)

    response = await api_client.delete(f"/notifications/{row.id}", headers=HEADERS)

    assert response.status_code == 204
    assert await seeded.notifications.get("u1", row.id) is None


@pytest.mark.asyncio
async def test_get_preferences_fills_defaults(api_client, seeded):
    response = await api_client.get("/notifications/preferences", headers=HEADERS)

    prefs = response.json()["preferences"]
    assert prefs["new_message"] is False
    assert prefs["rating_received"] is True
    assert set(prefs) == {
        "new_message",
        "friend_request_received",
        "friend_request_accepted",
        "friend_request_rejected",
        "rating_received",
        "match_update",
    }


@pytest.mark.asyncio
async def test_update_preferences_merges(api_client, seeded):
    response = await api_client.put(
        "/notifications/preferences",
        json={"rating_received": False, "new_message": True},
        headers=HEADERS,
    )

    assert response.status_code == 200
    prefs = response.json()["preferences"]
    assert prefs["rating_received"] is False
    assert prefs["new_message"] is True
    assert await seeded.users.get_notification_preferences("u1") == {"new_message": True, "rating_received": False}


@pytest.mark.asyncio
async def test_update_preferences_rejects_unknown_type(api_client, seeded):
    response = await api_client.put("/notifications/preferences", json={"carrier_pigeon": True}, headers=HEADERS)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_preferences_for_unknown_user(api_client, container):
    response = await api_client.get("/notifications/preferences", headers={"X-User-Id": "ghost"})

    assert response.status_code == 404
    assert response.json()["detail"] == "user_not_found"


@pytest.mark.asyncio
async def test_disabled_type_creates_nothing_visible_over_rest(api_client, seeded):
    assert await seeded.notifier.notify("u1", "new_message", "New message from Ben: hi") is None
    created = await seeded.notifier.notify("u1", "rating_received", "You received a rating")

    response = await api_client.get(f"/notifications/{created.id}", headers=HEADERS)

    assert response.status_code == 200
    assert (await api_client.get("/notifications/unread-count", headers=HEADERS)).json() == {"unread": 1}


@pytest.mark.asyncio
async def test_dev_header_ignored_outside_dev(api_client, seeded, monkeypatch):
    monkeypatch.setattr(settings, "environment", "production")

    response = await api_client.get("/notifications", headers=HEADERS)

    assert response.status_code == 401
