import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from retirement_engine.api.retirement import MAX_PLANS_PER_USER
from retirement_engine.database import get_db, init_db
from retirement_engine.main import app
from retirement_engine.services.milestone_deriver import STANDARD_MILESTONES

PLANS = "/api/retirement-plans"
MILESTONES = "/api/milestones"


@pytest.fixture
def client(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    asyncio.run(init_db(engine))
    session_maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _plan_payload(user_id=None, **kwargs) -> dict:
    payload = {
        "userId": str(user_id or uuid4()),
        "planName": "My Plan",
        "startAge": 30,
        "retirementAge": 65,
        "endAge": 95,
        "portfolioGrowthRate": 7.0,
        "bondGrowthRate": 4.0,
        "inflationRate": 3.0,
        "estimatedSocialSecurityBenefit": 24000,
        "desiredAnnualRetirementSpending": 60000,
        "initialNetWorth": 250000,
    }
    payload.update(kwargs)
    return payload


def _create(client, **kwargs) -> dict:
    response = client.post(PLANS, json=_plan_payload(**kwargs))
    assert response.status_code == 201, response.text
    return response.json()


def _full(client, plan_id) -> dict:
    response = client.get(f"{PLANS}/{plan_id}/full")
    assert response.status_code == 200
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_create_plan_generates_data(client):
    plan = _create(client)

    assert Decimal(str(plan["totalLifetimeTax"])) > 0
    assert plan["isStale"] is False

    full = _full(client, plan["id"])
    assert len(full["snapshots"]) == 66
    assert len(full["snapshots"][0]["accounts"]) == 4
    assert len(full["milestones"]) == len(STANDARD_MILESTONES) + 1
    assert full["snapshots"][0]["year"] == int(plan["createdAt"][:4])


def test_create_invalid_plan_is_rejected(client):
    user_id = uuid4()

    response = client.post(PLANS, json=_plan_payload(user_id, startAge=40, retirementAge=40))

    assert response.status_code == 422
    assert any("retirementAge must be greater than startAge" in e for e in response.json()["detail"])
    assert client.get(PLANS, params={"userId": str(user_id)}).json() == []


def test_plan_limit_per_user(client):
    user_id = uuid4()
    for _ in range(MAX_PLANS_PER_USER):
        _create(client, user_id=user_id, startAge=60, endAge=70)

    response = client.post(PLANS, json=_plan_payload(user_id, startAge=60, endAge=70))

    assert response.status_code == 400
    assert len(client.get(PLANS, params={"userId": str(user_id)}).json()) == MAX_PLANS_PER_USER


def test_unknown_plan_is_404(client):
    assert client.get(f"{PLANS}/{uuid4()}").status_code == 404
    assert client.get(f"{PLANS}/{uuid4()}/full").status_code == 404


def test_snapshot_for_year(client):
    plan = _create(client)
    year = int(plan["createdAt"][:4])

    response = client.get(f"{PLANS}/{plan['id']}/year/{year + 35}")

    assert response.status_code == 200
    snapshot = response.json()
    assert snapshot["age"] == 65
    assert {a["accountType"] for a in snapshot["accounts"]} == {"401k", "roth_ira", "brokerage", "savings"}
    assert client.get(f"{PLANS}/{plan['id']}/year/1900").status_code == 404


def test_patch_critical_field_regenerates(client):
    plan = _create(client)

    response = client.patch(f"{PLANS}/{plan['id']}", json={"endAge": 80})

    assert response.status_code == 200
    assert response.json()["endAge"] == 80
    assert response.json()["isStale"] is False
    assert len(_full(client, plan["id"])["snapshots"]) == 51


def test_patch_other_field_keeps_data(client):
    plan = _create(client)

    response = client.patch(f"{PLANS}/{plan['id']}", json={"planName": "Renamed", "totalLifetimeTax": 0})

    assert response.status_code == 200
    assert response.json()["planName"] == "Renamed"
    assert response.json()["totalLifetimeTax"] == plan["totalLifetimeTax"]
    assert len(_full(client, plan["id"])["snapshots"]) == 66


def test_patch_invalid_timeline_is_rejected(client):
    plan = _create(client)

    response = client.patch(f"{PLANS}/{plan['id']}", json={"retirementAge": 99})

    assert response.status_code == 422
    assert client.get(f"{PLANS}/{plan['id']}").json()["retirementAge"] == 65
    assert len(_full(client, plan["id"])["snapshots"]) == 66


def test_regenerate(client):
    plan = _create(client)

    response = client.post(f"{PLANS}/{plan['id']}/regenerate")

    assert response.status_code == 200
    body = response.json()
    assert body["snapshotCount"] == 66
    assert body["planId"] == plan["id"]
    assert body["message"] == "Plan data regenerated successfully"


def test_delete_plan(client):
    plan = _create(client)

    assert client.delete(f"{PLANS}/{plan['id']}").status_code == 204
    assert client.get(f"{PLANS}/{plan['id']}").status_code == 404


def test_standard_milestones(client):
    body = client.get(f"{MILESTONES}/standard").json()

    assert [m["targetAge"] for m in body] == [m.targetAge for m in STANDARD_MILESTONES]
    assert all(m["color"].startswith("#") for m in body)


def test_personal_milestone_survives_regeneration(client):
    user_id = uuid4()
    plan = _create(client, user_id=user_id)

    response = client.post(f"{MILESTONES}/personal", json={
        "planId": plan["id"],
        "userId": str(user_id),
        "title": "Buy a boat",
        "targetAge": 45,
    })
    assert response.status_code == 201
    milestone_id = response.json()["id"]

    client.post(f"{PLANS}/{plan['id']}/regenerate")

    personal = [m for m in _full(client, plan["id"])["milestones"] if m["milestoneType"] == "personal"]
    assert [m["title"] for m in personal] == ["Buy a boat"]
    assert personal[0]["userId"] == str(user_id)
    # Regeneration re-creates the row
    assert personal[0]["id"] != milestone_id


def test_personal_milestone_checks(client):
    user_id = uuid4()
    plan = _create(client, user_id=user_id)
    payload = {"planId": plan["id"], "userId": str(user_id), "title": "Sabbatical", "targetAge": 50}

    assert client.post(f"{MILESTONES}/personal", json={**payload, "targetAge": None}).status_code == 422
    assert client.post(f"{MILESTONES}/personal", json={**payload, "userId": str(uuid4())}).status_code == 403
    assert client.post(f"{MILESTONES}/personal", json={**payload, "planId": str(uuid4())}).status_code == 404


def test_only_personal_milestones_can_be_deleted(client):
    user_id = uuid4()
    plan = _create(client, user_id=user_id)
    personal = client.post(f"{MILESTONES}/personal", json={
        "planId": plan["id"], "userId": str(user_id), "title": "Sabbatical", "targetYear": 2040,
    }).json()
    standard = next(m for m in _full(client, plan["id"])["milestones"] if m["milestoneType"] == "standard")

    assert client.delete(f"{MILESTONES}/{standard['id']}").status_code == 400
    assert client.delete(f"{MILESTONES}/{personal['id']}").status_code == 204
    assert client.delete(f"{MILESTONES}/{personal['id']}").status_code == 404
