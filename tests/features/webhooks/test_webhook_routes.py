import hashlib
import hmac
import json
import time

import httpx
import pytest
from sqlalchemy import select

from app.features.leads.models.lead_model import Lead, LeadPlatform, LeadStatus
from app.features.webhooks.models.webhook_log import WebhookLog
from app.features.webhooks.routes.webhooks import get_meta_graph_client
from app.features.webhooks.services.meta_graph import MetaGraphClient
from app.platform.config import settings

SNAPCHAT_LEAD = {
    "event_type": "lead_submitted",
    "lead": {
        "lead_id": "snap-1",
        "form_id": "form-9",
        "form_name": "Test drive",
        "ad_squad_id": "squad-1",
        "created_at": "2024-01-15T10:30:00Z",
        "form_responses": [
            {"question_type": "FIRST_NAME", "answer": "Jane"},
            {"question_type": "LAST_NAME", "answer": "Doe"},
            {"question_type": "EMAIL", "answer": "Jane@Example.com"},
            {"question_type": "CUSTOM", "question": "Budget", "answer": "5000"},
        ],
    },
}

TIKTOK_LEAD = {
    "event": "lead.submit",
    "ad_id": 7001,
    "campaign_name": "Autumn",
    "data": {
        "lead": {
            "lead_id": 998877,
            "form_fields": [
                {"field_name": "name", "value": "Sam Lee"},
                {"field_name": "phone_number", "value": "+447700900000"},
            ],
            "create_time": 1705314600,
        }
    },
}


def _meta_payload(*changes, page_id="page-1"):
    return {"object": "page", "entry": [{"id": page_id, "time": 1705314600, "changes": list(changes)}]}


def _leadgen(leadgen_id, form_id="form-1"):
    return {
        "field": "leadgen",
        "value": {"leadgen_id": leadgen_id, "form_id": form_id, "ad_id": "ad-1", "created_time": 1705314600},
    }


def _graph_handler(request: httpx.Request) -> httpx.Response:
    object_id = request.url.path.rsplit("/", 1)[-1]
    if object_id == "form-1":
        return httpx.Response(200, json={"id": "form-1", "name": "Spring promo"})
    if object_id.startswith("broken"):
        return httpx.Response(400, json={"error": {"message": "Unsupported get request"}})
    return httpx.Response(
        200,
        json={
            "id": object_id,
            "created_time": "2024-01-15T10:30:00+0000",
            "campaign_name": "Spring",
            "field_data": [
                {"name": "full_name", "values": ["Jane Doe"]},
                {"name": "email", "values": ["jane@example.com"]},
                {"name": "budget", "values": ["5000"]},
            ],
        },
    )


@pytest.fixture
def graph_api(test_app):
    test_app.dependency_overrides[get_meta_graph_client] = lambda: MetaGraphClient(
        access_token="token",
        retry_base_delay=0,
        transport=httpx.MockTransport(_graph_handler),
    )
    yield
    test_app.dependency_overrides.pop(get_meta_graph_client, None)


async def _leads(db):
    return (await db.execute(select(Lead))).scalars().all()


async def _logs(db):
    return (await db.execute(select(WebhookLog).order_by(WebhookLog.created_at))).scalars().all()


def _sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


# ─────────────────────────────────────────────────────────────
# Snapchat
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_snapchat_webhook_stores_lead(client, db):
    response = await client.post("/webhooks/snapchat", json=SNAPCHAT_LEAD)

    assert response.status_code == 200
    assert response.json() == {"received": True}

    (lead,) = await _leads(db)
    assert lead.platform == LeadPlatform.snapchat
    assert lead.platform_lead_id == "snap-1"
    assert lead.customer_name == "Jane Doe"
    assert lead.email == "jane@example.com"
    assert lead.adset_id == "squad-1"
    assert lead.custom_fields == {"Budget": "5000"}
    assert lead.status == LeadStatus.new

    (log,) = await _logs(db)
    assert log.processed is True
    assert log.error is None
    assert log.lead_id == lead.id
    assert log.event_type == "lead_submitted"
    assert log.raw_payload == SNAPCHAT_LEAD


@pytest.mark.asyncio
async def test_redelivery_updates_the_same_lead(client, db):
    await client.post("/webhooks/snapchat", json=SNAPCHAT_LEAD)
    await client.post("/webhooks/snapchat", json=SNAPCHAT_LEAD)

    leads = await _leads(db)
    logs = await _logs(db)
    assert len(leads) == 1
    assert len(logs) == 2
    assert all(log.processed and log.lead_id == leads[0].id for log in logs)


@pytest.mark.asyncio
async def test_redelivery_keeps_operator_status(client, db):
    await client.post("/webhooks/snapchat", json=SNAPCHAT_LEAD)
    (lead,) = await _leads(db)
    await client.patch(f"/api/leads/{lead.id}", json={"status": "qualified", "notes": "Hot"})

    await client.post("/webhooks/snapchat", json=SNAPCHAT_LEAD)

    body = (await client.get(f"/api/leads/{lead.id}")).json()
    assert body["status"] == "qualified"
    assert body["notes"] == "Hot"


@pytest.mark.asyncio
async def test_snapchat_bare_lead_body(client, db):
    body = dict(SNAPCHAT_LEAD["lead"])
    body.pop("lead_id")
    body["id"] = "snap-bare"

    await client.post("/webhooks/snapchat", json=body)

    (lead,) = await _leads(db)
    assert lead.platform_lead_id == "snap-bare"


@pytest.mark.asyncio
async def test_snapchat_non_lead_event_is_logged_without_lead(client, db):
    response = await client.post("/webhooks/snapchat", json={"event_type": "form_updated", "form_id": "f"})

    assert response.status_code == 200
    assert await _leads(db) == []
    (log,) = await _logs(db)
    assert log.processed is True
    assert log.event_type == "form_updated"
    assert log.lead_id is None


@pytest.mark.asyncio
async def test_missing_lead_id_is_logged_as_error(client, db):
    response = await client.post(
        "/webhooks/snapchat", json={"event_type": "lead_submitted", "lead": {"form_id": "f"}}
    )

    assert response.status_code == 200
    assert await _leads(db) == []
    (log,) = await _logs(db)
    assert log.processed is False
    assert log.error == "Missing lead id"


@pytest.mark.asyncio
async def test_invalid_json_is_acknowledged_and_logged(client, db):
    response = await client.post(
        "/webhooks/snapchat", content=b"not json at all", headers={"content-type": "application/json"}
    )

    assert response.status_code == 200
    assert response.json() == {"received": True}
    (log,) = await _logs(db)
    assert log.processed is False
    assert log.error == "Invalid JSON payload"
    assert log.raw_payload == {"raw": "not json at all"}


@pytest.mark.asyncio
async def test_client_ip_is_taken_from_forwarded_header(client, db):
    await client.post(
        "/webhooks/snapchat", json=SNAPCHAT_LEAD, headers={"x-forwarded-for": "198.51.100.4, 10.0.0.1"}
    )

    (log,) = await _logs(db)
    assert log.ip_address == "198.51.100.4"


# ─────────────────────────────────────────────────────────────
# Signatures in production
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_production_rejects_bad_signature(client, db, production_mode):
    response = await client.post(
        "/webhooks/snapchat",
        json=SNAPCHAT_LEAD,
        headers={"x-snap-signature": "deadbeef", "x-snap-timestamp": str(int(time.time()))},
    )

    # The platform still gets its acknowledgement
    assert response.status_code == 200
    assert await _leads(db) == []
    (log,) = await _logs(db)
    assert log.processed is False
    assert log.error == "Invalid signature"


@pytest.mark.asyncio
async def test_production_accepts_valid_snapchat_signature(client, db, production_mode):
    body = json.dumps(SNAPCHAT_LEAD).encode()
    timestamp = str(int(time.time()))
    signature = _sign(settings.SNAPCHAT_CLIENT_SECRET, timestamp.encode() + b"." + body)

    await client.post(
        "/webhooks/snapchat",
        content=body,
        headers={
            "content-type": "application/json",
            "x-snap-signature": signature,
            "x-snap-timestamp": timestamp,
        },
    )

    assert len(await _leads(db)) == 1


@pytest.mark.asyncio
async def test_production_accepts_valid_tiktok_signature(client, db, production_mode):
    body = json.dumps(TIKTOK_LEAD).encode()

    await client.post(
        "/webhooks/tiktok",
        content=body,
        headers={
            "content-type": "application/json",
            "x-tiktok-signature": _sign(settings.TIKTOK_APP_SECRET, body),
        },
    )

    assert len(await _leads(db)) == 1


@pytest.mark.asyncio
async def test_signatures_are_not_checked_outside_production(client, db):
    await client.post("/webhooks/tiktok", json=TIKTOK_LEAD, headers={"x-tiktok-signature": "wrong"})

    assert len(await _leads(db)) == 1


# ─────────────────────────────────────────────────────────────
# TikTok
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_tiktok_webhook_stores_nested_lead(client, db):
    response = await client.post("/webhooks/tiktok", json=TIKTOK_LEAD)

    assert response.status_code == 200
    assert response.json() == {"code": 0, "message": "success"}

    (lead,) = await _leads(db)
    assert lead.platform == LeadPlatform.tiktok
    assert lead.platform_lead_id == "998877"
    assert lead.customer_name == "Sam Lee"
    assert lead.phone == "+447700900000"
    # Event-level values fill in what the lead object leaves out
    assert lead.ad_id == "7001"
    assert lead.campaign_name == "Autumn"

    (log,) = await _logs(db)
    assert log.event_type == "lead.submit"
    assert log.lead_id == lead.id


# ─────────────────────────────────────────────────────────────
# Meta
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_meta_verification_handshake(client):
    response = await client.get(
        "/webhooks/meta",
        params={"hub.mode": "subscribe", "hub.verify_token": "test-verify-token", "hub.challenge": "1158201444"},
    )

    assert response.status_code == 200
    assert response.text == "1158201444"


@pytest.mark.asyncio
async def test_meta_verification_rejects_wrong_token(client):
    response = await client.get(
        "/webhooks/meta",
        params={"hub.mode": "subscribe", "hub.verify_token": "guess", "hub.challenge": "1158201444"},
    )

    assert response.status_code == 403
    assert response.json()["message"] == "Verification failed"


@pytest.mark.asyncio
async def test_meta_webhook_fetches_and_stores_lead(client, db, graph_api):
    response = await client.post("/webhooks/meta", json=_meta_payload(_leadgen("L-1")))

    assert response.status_code == 200
    assert response.json() == {"received": True}

    (lead,) = await _leads(db)
    assert lead.platform == LeadPlatform.meta
    assert lead.platform_lead_id == "L-1"
    assert lead.customer_name == "Jane Doe"
    assert lead.email == "jane@example.com"
    assert lead.custom_fields == {"budget": "5000"}
    assert lead.form_id == "form-1"
    assert lead.form_name == "Spring promo"
    assert lead.ad_id == "ad-1"
    assert lead.campaign_name == "Spring"
    assert lead.page_id == "page-1"

    (log,) = await _logs(db)
    assert log.processed is True
    assert log.event_type == "leadgen"
    assert log.lead_id == lead.id


@pytest.mark.asyncio
async def test_meta_changes_are_processed_independently(client, db, graph_api):
    payload = _meta_payload(_leadgen("L-1"), _leadgen("broken-1"), _leadgen("L-2"))

    await client.post("/webhooks/meta", json=payload)

    leads = await _leads(db)
    assert {lead.platform_lead_id for lead in leads} == {"L-1", "L-2"}
    (log,) = await _logs(db)
    assert log.processed is False
    assert "Unsupported get request" in log.error
    assert log.lead_id in {lead.id for lead in leads}


@pytest.mark.asyncio
async def test_meta_leadgen_without_id_is_logged(client, db, graph_api):
    change = {"field": "leadgen", "value": {"form_id": "form-1"}}

    await client.post("/webhooks/meta", json=_meta_payload(change))

    assert await _leads(db) == []
    (log,) = await _logs(db)
    assert log.processed is False
    assert log.error == "Missing lead id"


@pytest.mark.asyncio
async def test_meta_non_leadgen_change_is_ignored(client, db, graph_api):
    change = {"field": "feed", "value": {"item": "status"}}

    await client.post("/webhooks/meta", json=_meta_payload(change))

    assert await _leads(db) == []
    (log,) = await _logs(db)
    assert log.processed is True
    assert log.event_type == "feed"
