"""Provider webhook tests: payload shapes, upsert and signatures."""

import json

import pytest
from sqlalchemy import select

from conftest import make_agent
from voicedesk.config import settings
from voicedesk.models import Execution
from voicedesk.schemas.webhook import WebhookEvent
from voicedesk.services.webhooks import SIGNATURE_HEADER, compute_signature


@pytest.fixture
def no_webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "bolna_webhook_secret", None)


def test_event_from_flat_payload():
    event = WebhookEvent.from_payload(
        {"execution_id": "e1", "agent_id": "a1", "transcript": "hello", "duration": 12}
    )
    assert event.execution_id == "e1"
    assert event.agent_id == "a1"
    assert event.transcript == "hello"
    assert event.duration == "12"


def test_event_from_nested_payload():
    """Ids under ``execution`` and results under ``result``/``recording``."""
    event = WebhookEvent.from_payload(
        {
            "execution": {"id": "e2", "agent_id": "a2"},
            "result": {"transcript": "bye"},
            "recording": {"url": "https://cdn.example/e2.mp3"},
        }
    )
    assert event.execution_id == "e2"
    assert event.agent_id == "a2"
    assert event.transcript == "bye"
    assert event.recording_url == "https://cdn.example/e2.mp3"
    assert event.duration is None


def test_event_agent_object_id():
    event = WebhookEvent.from_payload({"id": "e3", "agent": {"id": "a3"}})
    assert event.agent_id == "a3"
    assert event.transcript == ""


async def test_webhook_inserts_then_updates(client, db, tenant, no_webhook_secret):
    agent = await make_agent(db, tenant, "agent-1")

    first = await client.post(
        "/api/webhooks/bolna",
        json={"execution_id": "exec-1", "agent_id": "agent-1", "transcript": "hi"},
    )
    assert first.status_code == 200
    inserted = first.json()["inserted"]
    assert inserted["bolna_execution_id"] == "exec-1"
    assert inserted["tenant_id"] == tenant.id
    assert inserted["agent_id"] == agent.id

    second = await client.post(
        "/api/webhooks/bolna",
        json={
            "execution_id": "exec-1",
            "agent_id": "agent-1",
            "transcript": "hi there",
            "recording_url": "https://cdn.example/exec-1.mp3",
            "duration": "31.5",
        },
    )
    assert second.status_code == 200
    assert second.json() == {"message": "ok", "updated": True}

    result = await db.execute(select(Execution).where(Execution.bolna_execution_id == "exec-1"))
    rows = result.scalars().all()
    assert len(rows) == 1
    await db.refresh(rows[0])
    assert rows[0].transcript == "hi there"
    assert rows[0].duration == "31.5"


async def test_webhook_missing_ids_is_400(client, no_webhook_secret):
    response = await client.post("/api/webhooks/bolna", json={"transcript": "orphan"})
    assert response.status_code == 400
    assert response.json()["message"] == "Missing execution or agent id"


async def test_webhook_unknown_agent_is_404(client, db, no_webhook_secret):
    response = await client.post(
        "/api/webhooks/bolna", json={"execution_id": "exec-9", "agent_id": "nobody"}
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Agent not found"
    result = await db.execute(select(Execution))
    assert result.scalars().all() == []


async def test_webhook_rejects_bad_signature(client, monkeypatch):
    monkeypatch.setattr(settings, "bolna_webhook_secret", "whsec")
    body = json.dumps({"execution_id": "exec-1", "agent_id": "agent-1"}).encode()

    missing = await client.post(
        "/api/webhooks/bolna", content=body, headers={"Content-Type": "application/json"}
    )
    assert missing.status_code == 401
    assert missing.json()["message"] == "Missing webhook signature"

    wrong = await client.post(
        "/api/webhooks/bolna",
        content=body,
        headers={"Content-Type": "application/json", SIGNATURE_HEADER: "deadbeef"},
    )
    assert wrong.status_code == 401
    assert wrong.json()["message"] == "Invalid webhook signature"


async def test_webhook_accepts_valid_signature(client, db, tenant, monkeypatch):
    monkeypatch.setattr(settings, "bolna_webhook_secret", "whsec")
    await make_agent(db, tenant, "agent-1")
    body = json.dumps({"execution_id": "exec-2", "agent_id": "agent-1"}).encode()

    response = await client.post(
        "/api/webhooks/bolna",
        content=body,
        headers={
            "Content-Type": "application/json",
            SIGNATURE_HEADER: compute_signature("whsec", body),
        },
    )
    assert response.status_code == 200
    assert response.json()["inserted"]["bolna_execution_id"] == "exec-2"
