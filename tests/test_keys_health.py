"""Credential store and health endpoint tests."""

import httpx

from conftest import admin_headers, tenant_headers
from voicedesk.main import app
from voicedesk.provider.client import BolnaClient
from voicedesk.storage.repositories import save_api_key


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "provider_configured": True}


async def test_key_presence_flag(client, super_admin):
    assert (await client.get("/api/keys/BOLNA_API_KEY")).json() == {"value": False}

    response = await client.post(
        "/api/keys",
        json={"key": "BOLNA_API_KEY", "value": "bn-live-key"},
        headers=admin_headers(super_admin),
    )
    assert response.status_code == 200
    assert response.json()["key"] == "BOLNA_API_KEY"
    assert "value" not in response.json()

    assert (await client.get("/api/keys/BOLNA_API_KEY")).json() == {"value": True}


async def test_saving_provider_key_requires_super_admin(client, tenant, tenant_admin):
    response = await client.post(
        "/api/keys",
        json={"key": "BOLNA_API_KEY", "value": "bn-live-key"},
        headers=tenant_headers(tenant_admin),
    )
    assert response.status_code == 401


async def test_unconfigured_provider_is_503(client, tenant, tenant_admin):
    """No stored key and no loaded key: provider routes answer 503."""
    unconfigured = BolnaClient()
    app.state.provider = unconfigured
    response = await client.get("/api/bolna/agents", headers=tenant_headers(tenant_admin))
    assert response.status_code == 503
    assert response.json()["message"] == "Provider API key not configured"


async def test_stored_key_is_loaded_on_demand(
    client, provider_api, tenant, tenant_admin, super_admin
):
    app.state.provider = BolnaClient()
    await client.post(
        "/api/keys",
        json={"key": "BOLNA_API_KEY", "value": "bn-stored-key"},
        headers=admin_headers(super_admin),
    )
    # fresh client with no key loaded, as after a restart
    app.state.provider = BolnaClient()
    route = provider_api.get("/v2/agent/all").mock(return_value=httpx.Response(200, json=[]))

    response = await client.get("/api/bolna/agents", headers=tenant_headers(tenant_admin))
    assert response.status_code == 200
    assert route.calls.last.request.headers["Authorization"] == "Bearer bn-stored-key"
    await app.state.provider.aclose()


async def test_rejected_key_is_reloaded_from_store(client, provider_api, db, tenant, tenant_admin):
    """After an upstream 401 the next request picks up the rotated stored key."""
    await save_api_key(db, "BOLNA_API_KEY", "rotated-key")
    route = provider_api.get("/v2/agent/all").mock(
        side_effect=[
            httpx.Response(401, json={"message": "Invalid API key"}),
            httpx.Response(200, json=[]),
        ]
    )
    headers = tenant_headers(tenant_admin)

    first = await client.get("/api/bolna/agents", headers=headers)
    assert first.status_code == 401
    assert route.calls[0].request.headers["Authorization"] == "Bearer test-key"

    second = await client.get("/api/bolna/agents", headers=headers)
    assert second.status_code == 200
    assert route.calls[1].request.headers["Authorization"] == "Bearer rotated-key"
