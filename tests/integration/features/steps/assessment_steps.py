"""Step definitions for assessment sync features.

HTTP steps go through `context.client` (TestClient in-process or an
httpx.Client for live runs). The client-side scenario drives the real
synchronizer against the same service through HttpStepStore.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict

import httpx
from behave import given, then, when

from aria.logic.assessment_id import Navigator
from aria.logic.client_context import ClientContext
from aria.logic.remote_store import HttpStepStore
from aria.logic.safe_storage import SafeStorage
from aria.logic.storage_backends import MemoryBackend

PROBLEM_MEDIA_TYPE = "application/problem+json"


def _api(context, path: str) -> str:
    return f"{context.api_prefix}{path}"


def _remember(context, resp) -> None:
    context.last_response = resp


def _body(context) -> Dict[str, Any]:
    assert context.last_response is not None, "No response captured"
    return context.last_response.json()


def _step_path(context, step_key: str) -> str:
    return _api(context, f"/assessments/{context.vars['assessment_id']}/steps/{step_key}")


def _async_http_client(context) -> httpx.AsyncClient:
    base = f"{context.base_url}{context.api_prefix}"
    if context.app is not None:
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=context.app), base_url=base)
    return httpx.AsyncClient(base_url=base, timeout=10.0)


# ------------------
# Given
# ------------------


@given("the assessment service is reset")
def step_reset(context):
    resp = context.client.post("/__test__/reset-state")
    assert resp.status_code == 204, f"reset failed: {resp.status_code} {resp.text}"
    context.device = SafeStorage(MemoryBackend(), name="device")


@given("an assessment exists")
def step_assessment_exists(context):
    resp = context.client.post(_api(context, "/assessments"), json={})
    assert resp.status_code == 201, resp.text
    context.vars["assessment_id"] = resp.json()["id"]


@given("I remember the step ETag")
def step_remember_etag(context):
    etag = context.last_response.headers.get("ETag")
    assert etag, "Last response carried no ETag"
    context.vars["etag"] = etag


@given('the device stores legacy "{key}" as {data}')
def step_device_legacy(context, key: str, data: str):
    assert context.device.safe_set_json(key, json.loads(data))


# ------------------
# When
# ------------------


@when('I create an assessment with evaluation type "{value}"')
def step_create(context, value: str):
    _remember(context, context.client.post(_api(context, "/assessments"), json={"evaluation_type": value}))


@when('I save step "{step_key}" with the remembered ETag and data {data}')
def step_save_with_etag(context, step_key: str, data: str):
    resp = context.client.put(
        _step_path(context, step_key),
        json={"data": json.loads(data)},
        headers={"If-Match": context.vars["etag"]},
    )
    _remember(context, resp)


@given('I save step "{step_key}" with data {data}')
@when('I save step "{step_key}" with data {data}')
def step_save(context, step_key: str, data: str):
    resp = context.client.put(_step_path(context, step_key), json={"data": json.loads(data)})
    assert resp.status_code == 200, resp.text
    _remember(context, resp)


@when('I read step "{step_key}"')
def step_read(context, step_key: str):
    _remember(context, context.client.get(_step_path(context, step_key)))


@when('the wizard opens step "{step_key}" at "{url}"')
def step_open_wizard(context, step_key: str, url: str):
    async def run() -> Any:
        async with _async_http_client(context) as http:
            ctx = ClientContext(
                storage=context.device,
                remote=HttpStepStore(str(http.base_url), client=http),
                navigator=Navigator(url),
                debounce_ms=10,
                saved_reset_ms=10,
            )
            async with ctx:
                sync = ctx.session.step_data(step_key, {})
                await sync.load()
                return ctx.assessment_id, sync.value

    assessment_id, value = asyncio.run(run())
    assert assessment_id, "The wizard did not resolve an assessment"
    context.vars["assessment_id"] = assessment_id
    context.vars["step_value"] = value


# ------------------
# Then
# ------------------


@then("the response status is {status:d}")
def step_status(context, status: int):
    actual = context.last_response.status_code
    assert actual == status, f"Expected {status}, got {actual}: {context.last_response.text}"


@then('the response field "{field}" equals "{value}"')
def step_field_equals(context, field: str, value: str):
    assert _body(context).get(field) == value, _body(context)


@then("the response is a problem document")
def step_problem(context):
    ctype = context.last_response.headers.get("content-type", "")
    assert ctype.startswith(PROBLEM_MEDIA_TYPE), ctype
    assert _body(context)["status"] == context.last_response.status_code


@then('an "{event_type}" event was published')
def step_event(context, event_type: str):
    events = context.client.get("/__test__/events").json()
    assert any(e.get("type") == event_type for e in events), events


@then('step "{step_key}" holds {data}')
def step_holds(context, step_key: str, data: str):
    resp = context.client.get(_step_path(context, step_key))
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"] == json.loads(data), resp.json()


@then('the assessment status is "{status}"')
def step_assessment_status(context, status: str):
    resp = context.client.get(_api(context, f"/assessments/{context.vars['assessment_id']}"))
    assert resp.json()["status"] == status, resp.json()


@then("the step value is {data}")
def step_value(context, data: str):
    assert context.vars["step_value"] == json.loads(data), context.vars["step_value"]


@then('the device no longer holds "{key}"')
def step_device_cleared(context, key: str):
    assert context.device.read_raw(key) is None


@then('the service holds {data} for step "{step_key}" of the opened assessment')
def step_service_holds(context, data: str, step_key: str):
    step_holds(context, step_key, data)
