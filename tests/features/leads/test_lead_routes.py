import uuid
from datetime import timedelta

import pytest

from app.features.leads.models.lead_model import Lead, LeadPlatform, LeadStatus
from app.platform.db.base import utcnow


async def _create_lead(db, **values) -> Lead:
    lead = Lead(
        platform=values.pop("platform", LeadPlatform.meta),
        platform_lead_id=values.pop("platform_lead_id", uuid.uuid4().hex),
        customer_name=values.pop("customer_name", "Jane Doe"),
        email=values.pop("email", "jane@example.com"),
        **values,
    )
    db.add(lead)
    await db.commit()
    await db.refresh(lead)
    return lead


@pytest.mark.asyncio
async def test_list_leads_returns_camel_case_and_pagination(client, db):
    for i in range(25):
        await _create_lead(db, platform_lead_id=f"p-{i}", received_at=utcnow() - timedelta(minutes=i))

    response = await client.get("/api/leads", params={"page": 2, "limit": 10})

    assert response.status_code == 200
    body = response.json()
    assert len(body["leads"]) == 10
    assert body["pagination"] == {"page": 2, "limit": 10, "total": 25, "pages": 3}
    first = body["leads"][0]
    assert first["platformLeadId"] == "p-10"
    assert first["customerName"] == "Jane Doe"
    assert "receivedAt" in first


@pytest.mark.asyncio
async def test_list_leads_rejects_unknown_status(client):
    response = await client.get("/api/leads", params={"status": "archived"})

    assert response.status_code == 400
    assert response.json()["status"] == "error"


@pytest.mark.asyncio
async def test_list_leads_limit_is_capped(client):
    response = await client.get("/api/leads", params={"limit": 101})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_leads_rejects_unknown_sort(client):
    response = await client.get("/api/leads", params={"sortBy": "password"})

    assert response.status_code == 400
    assert "password" in response.json()["message"]


@pytest.mark.asyncio
async def test_list_leads_rejects_invalid_date(client):
    response = await client.get("/api/leads", params={"fromDate": "yesterday"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_date_only_to_date_includes_the_whole_day(client, db):
    day = (utcnow() - timedelta(days=3)).replace(hour=23, minute=30, second=0, microsecond=0)
    await _create_lead(db, platform_lead_id="late", received_at=day)
    await _create_lead(db, platform_lead_id="next", received_at=day + timedelta(hours=1))

    response = await client.get(
        "/api/leads",
        params={"fromDate": day.date().isoformat(), "toDate": day.date().isoformat()},
    )

    assert response.status_code == 200
    assert [lead["platformLeadId"] for lead in response.json()["leads"]] == ["late"]


@pytest.mark.asyncio
async def test_list_leads_search_and_sort(client, db):
    await _create_lead(db, platform_lead_id="b", customer_name="Bob Smith", email="bob@example.com")
    await _create_lead(db, platform_lead_id="a", customer_name="Alice Smith", email="alice@example.com")
    await _create_lead(db, platform_lead_id="c", customer_name="Carol Jones", email="carol@example.com")

    response = await client.get(
        "/api/leads", params={"search": "SMITH", "sortBy": "customerName", "sortOrder": "asc"}
    )

    assert response.status_code == 200
    assert [lead["customerName"] for lead in response.json()["leads"]] == ["Alice Smith", "Bob Smith"]


@pytest.mark.asyncio
async def test_get_lead(client, db):
    lead = await _create_lead(db, custom_fields={"budget": "5000"})

    response = await client.get(f"/api/leads/{lead.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == lead.id
    assert body["customFields"] == {"budget": "5000"}
    assert body["status"] == "new"


@pytest.mark.asyncio
async def test_get_lead_not_found(client):
    missing = await client.get(f"/api/leads/{uuid.uuid4()}")
    malformed = await client.get("/api/leads/not-a-uuid")

    assert missing.status_code == 404
    assert missing.json()["message"] == "Lead not found"
    assert malformed.status_code == 404


@pytest.mark.asyncio
async def test_patch_lead(client, db):
    lead = await _create_lead(db)

    response = await client.patch(
        f"/api/leads/{lead.id}",
        json={"status": "contacted", "notes": "Left a voicemail", "email": "JANE.DOE@Example.com"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "contacted"
    assert body["notes"] == "Left a voicemail"
    assert body["email"] == "jane.doe@example.com"


@pytest.mark.asyncio
async def test_patch_lead_with_invalid_status_leaves_lead_unchanged(client, db):
    lead = await _create_lead(db)

    response = await client.patch(
        f"/api/leads/{lead.id}", json={"status": "archived", "notes": "nope"}
    )

    assert response.status_code == 400
    stored = (await client.get(f"/api/leads/{lead.id}")).json()
    assert stored["status"] == LeadStatus.new.value
    assert stored["notes"] is None


@pytest.mark.asyncio
async def test_patch_lead_ignores_identity_fields(client, db):
    lead = await _create_lead(db, platform_lead_id="keep-me")

    response = await client.patch(
        f"/api/leads/{lead.id}",
        json={"platformLeadId": "changed", "platform": "tiktok", "customerName": "New Name"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["platformLeadId"] == "keep-me"
    assert body["platform"] == "meta"
    assert body["customerName"] == "New Name"


@pytest.mark.asyncio
async def test_delete_lead(client, db):
    lead = await _create_lead(db)

    response = await client.delete(f"/api/leads/{lead.id}")
    assert response.status_code == 204

    response = await client.get(f"/api/leads/{lead.id}")
    assert response.status_code == 404

    response = await client.delete(f"/api/leads/{lead.id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_stats_endpoint(client, db):
    await _create_lead(db, platform=LeadPlatform.snapchat)
    await _create_lead(db, platform=LeadPlatform.tiktok, status=LeadStatus.lost)

    response = await client.get("/api/leads/stats")

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["today"] == 2
    assert body["byPlatform"] == {"meta": 0, "snapchat": 1, "tiktok": 1}
    assert body["byStatus"]["lost"] == 1
    assert body["byStatus"]["new"] == 1


@pytest.mark.asyncio
async def test_chart_endpoint(client, db):
    day = (utcnow() - timedelta(days=1)).replace(hour=12, minute=0, second=0, microsecond=0)
    await _create_lead(db, platform=LeadPlatform.snapchat, received_at=day)
    await _create_lead(db, platform=LeadPlatform.snapchat, received_at=day)

    response = await client.get("/api/leads/chart")

    assert response.status_code == 200
    assert response.json() == [{"date": day.date().isoformat(), "platform": "snapchat", "count": 2}]
