"""Assessment service HTTP contract: creation, per-step upsert with weak
ETags, problem+json errors and the client error sink."""

from __future__ import annotations

import httpx
import pytest

from aria.http.problem import PROBLEM_MEDIA_TYPE
from aria.logic.events import ASSESSMENT_CREATED, STEP_SAVED, get_buffered_events
from aria.logic.remote_store import HttpStepStore, RemoteStoreError

API = "/api/v1"


def _create(client, **body):
    resp = client.post(f"{API}/assessments", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_normalizes_evaluation_type(client):
    record = _create(client, evaluation_type='"re-assessment"', owner_id="bcba-1")

    assert record["evaluation_type"] == "Reassessment"
    assert record["status"] == "draft"
    assert record["owner_id"] == "bcba-1"
    assert record["created_at"].endswith("Z")
    events = get_buffered_events()
    assert [e["type"] for e in events] == [ASSESSMENT_CREATED]


def test_create_without_body_defaults_to_initial(client):
    resp = client.post(f"{API}/assessments")

    assert resp.status_code == 201
    assert resp.json()["evaluation_type"] == "Initial Assessment"


def test_unsaved_step_reads_as_null(client):
    aid = _create(client)["id"]

    resp = client.get(f"{API}/assessments/{aid}/steps/goals")

    assert resp.status_code == 200
    assert resp.json()["data"] is None
    assert resp.headers["ETag"].startswith('W/"')


def test_put_overwrites_only_that_step(client):
    aid = _create(client)["id"]

    client.put(f"{API}/assessments/{aid}/steps/goals", json={"data": {"goals": ["a"]}})
    client.put(f"{API}/assessments/{aid}/steps/clientInfo", json={"data": {"firstName": "Sam"}})
    resp = client.put(f"{API}/assessments/{aid}/steps/goals", json={"data": {"goals": ["b"]}})
    assert resp.status_code == 200

    record = client.get(f"{API}/assessments/{aid}").json()
    assert record["data"] == {"goals": {"goals": ["b"]}, "clientInfo": {"firstName": "Sam"}}
    assert record["status"] == "in_progress"


def test_repeated_put_is_idempotent(client):
    aid = _create(client)["id"]
    body = {"data": {"goals": ["same"]}}

    first = client.put(f"{API}/assessments/{aid}/steps/goals", json=body)
    second = client.put(f"{API}/assessments/{aid}/steps/goals", json=body)

    assert first.headers["ETag"] == second.headers["ETag"]
    assert client.get(f"{API}/assessments/{aid}/steps/goals").json()["data"] == {"goals": ["same"]}


def test_if_match_mismatch_is_a_conflict(client):
    aid = _create(client)["id"]
    etag = client.put(f"{API}/assessments/{aid}/steps/goals", json={"data": {"goals": ["v1"]}}).headers["ETag"]
    client.put(f"{API}/assessments/{aid}/steps/goals", json={"data": {"goals": ["v2"]}})

    stale = client.put(
        f"{API}/assessments/{aid}/steps/goals",
        json={"data": {"goals": ["v3"]}},
        headers={"If-Match": etag},
    )

    assert stale.status_code == 409
    assert stale.headers["content-type"].startswith(PROBLEM_MEDIA_TYPE)
    current = client.get(f"{API}/assessments/{aid}/steps/goals")
    assert stale.headers["ETag"] == current.headers["ETag"]
    fresh = client.put(
        f"{API}/assessments/{aid}/steps/goals",
        json={"data": {"goals": ["v3"]}},
        headers={"If-Match": current.headers["ETag"]},
    )
    assert fresh.status_code == 200


def test_step_saved_event_is_published(client):
    aid = _create(client)["id"]
    get_buffered_events()

    client.put(f"{API}/assessments/{aid}/steps/goals", json={"data": {"goals": []}})

    events = get_buffered_events()
    assert [e["type"] for e in events] == [STEP_SAVED]
    assert events[0]["payload"]["step_key"] == "goals"


@pytest.mark.parametrize(
    "path",
    [
        "/assessments/does-not-exist",
        "/assessments/does-not-exist/steps/goals",
    ],
)
def test_unknown_assessment_is_404_problem(client, path):
    resp = client.get(f"{API}{path}")

    assert resp.status_code == 404
    assert resp.headers["content-type"].startswith(PROBLEM_MEDIA_TYPE)
    assert resp.json()["status"] == 404


def test_unknown_step_key_is_404(client):
    aid = _create(client)["id"]

    resp = client.put(f"{API}/assessments/{aid}/steps/notAStep", json={"data": {}})

    assert resp.status_code == 404


def test_payload_not_matching_step_schema_is_422(client):
    aid = _create(client)["id"]

    resp = client.put(f"{API}/assessments/{aid}/steps/goals", json={"data": {"goals": "not a list"}})

    assert resp.status_code == 422
    assert resp.headers["content-type"].startswith(PROBLEM_MEDIA_TYPE)
    assert resp.json()["errors"]


def test_array_payload_is_stored_as_sent(client):
    aid = _create(client)["id"]
    goals = [{"id": "g1", "title": "Mand for items"}]

    resp = client.put(f"{API}/assessments/{aid}/steps/goals", json={"data": goals})

    assert resp.status_code == 200, resp.text
    assert client.get(f"{API}/assessments/{aid}/steps/goals").json()["data"] == goals


@pytest.mark.parametrize(
    "alias, canonical",
    [
        ("risk", "riskAssessment"),
        ("abc-observation", "abcObservation"),
        ("cpt-authorization", "cptAuthorization"),
        ("service-plan", "servicePlan"),
        ("signatures", "signatures"),
    ],
)
def test_wizard_page_step_keys_are_accepted(client, alias, canonical):
    aid = _create(client)["id"]
    data = [{"name": "x"}] if alias in ("signatures", "cpt-authorization") else {"note": alias}

    put = client.put(f"{API}/assessments/{aid}/steps/{alias}", json={"data": data})

    assert put.status_code == 200, put.text
    assert put.json()["step_key"] == canonical
    via_alias = client.get(f"{API}/assessments/{aid}/steps/{alias}").json()
    via_canonical = client.get(f"{API}/assessments/{aid}/steps/{canonical}").json()
    assert via_alias["data"] == via_canonical["data"] == data
    assert via_alias["etag"] == via_canonical["etag"] == put.headers["ETag"]


def test_status_update(client):
    aid = _create(client)["id"]

    ok = client.patch(f"{API}/assessments/{aid}", json={"status": "complete"})
    bad = client.patch(f"{API}/assessments/{aid}", json={"status": "archived"})

    assert ok.status_code == 200 and ok.json()["status"] == "complete"
    assert bad.status_code == 422


def test_log_error_is_accepted(client):
    resp = client.post(
        f"{API}/log-error",
        json={"type": "ai_generation_failed", "details": {"attempts": 3}, "timestamp": "2026-01-01T00:00:00Z"},
    )

    assert resp.status_code == 202


def test_health_and_request_id(client):
    resp = client.get("/health", headers={"X-Request-Id": "req-123"})

    assert resp.json() == {"status": "ok", "db": True}
    assert resp.headers["X-Request-Id"] == "req-123"
    assert client.get("/health").headers["X-Request-Id"]


@pytest.mark.anyio
async def test_http_step_store_against_service():
    from aria.main import create_app

    transport = httpx.ASGITransport(app=create_app())
    async with httpx.AsyncClient(transport=transport, base_url=f"http://aria.test{API}") as http:
        store = HttpStepStore(f"http://aria.test{API}", client=http)
        record = await store.create_assessment("reassessment")
        aid = record["id"]

        assert await store.get_step_data(aid, "goals") is None
        await store.save_step(aid, "goals", {"goals": ["x"]})
        assert await store.get_step_data(aid, "goals") == {"goals": ["x"]}

        with pytest.raises(RemoteStoreError) as exc_info:
            await store.save_step("missing", "goals", {"goals": []})
        assert exc_info.value.status_code == 404
        await store.aclose()
