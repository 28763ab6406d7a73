import pytest

from sportsmatch.settings import settings


@pytest.mark.asyncio
async def test_health_live(api_client):
    response = await api_client.get("/health/live")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Request-Id"]


@pytest.mark.asyncio
async def test_health_ready_with_memory_store(api_client, container):
    container.presence.register("u1", "sid-1")

    response = await api_client.get("/health/ready")

    assert response.json() == {"status": "ok", "online_users": 1}


@pytest.mark.asyncio
async def test_metrics_requires_admin_token(api_client, monkeypatch):
    monkeypatch.setattr(settings, "obs_metrics_public", False)
    monkeypatch.setattr(settings, "obs_admin_token", "ops-secret")

    denied = await api_client.get("/metrics")
    allowed = await api_client.get("/metrics", headers={"X-Admin-Token": "ops-secret"})

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert "sportsmatch_chat_messages_sent_total" in allowed.text


@pytest.mark.asyncio
async def test_request_id_is_echoed(api_client):
    response = await api_client.get("/health/live", headers={"X-Request-Id": "req-123"})

    assert response.headers["X-Request-Id"] == "req-123"
