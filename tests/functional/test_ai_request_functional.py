"""Text-generation wrapper: bounded retries, backoff on rate limiting,
immediate fallback on timeout and an error report when attempts run out."""

from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from aria.logic.ai_request import generate_content, generate_with_assistant, safe_ai_request


class FakeSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://ai.test")


@pytest.mark.anyio
async def test_success_returns_content():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"content": "Generated text"})

    async with _client(handler) as client:
        result = await generate_content(client, "goals", {"client": "Sam"}, sleep=FakeSleep())

    assert result.success and result.content == "Generated text"
    assert seen == [{"type": "goals", "data": {"client": "Sam"}}]


@pytest.mark.anyio
async def test_text_field_is_accepted_as_content():
    async with _client(lambda r: httpx.Response(200, json={"text": "alt"})) as client:
        result = await generate_with_assistant(client, "hello", sleep=FakeSleep())

    assert result.content == "alt"


@pytest.mark.anyio
async def test_rate_limit_backs_off_then_succeeds():
    responses = iter([httpx.Response(429), httpx.Response(429), httpx.Response(200, json={"content": "ok"})])
    sleep = FakeSleep()

    async with _client(lambda r: next(responses)) as client:
        result = await safe_ai_request("/api/generate-content", {}, client=client, sleep=sleep)

    assert result.success and result.content == "ok"
    assert sleep.calls == [2, 4]


@pytest.mark.anyio
async def test_timeout_returns_fallback_without_retrying():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        raise httpx.ReadTimeout("slow", request=request)

    async with _client(handler) as client:
        result = await safe_ai_request(
            "/api/generate-content", {}, client=client, fallback="Template text", sleep=FakeSleep()
        )

    assert calls == ["/api/generate-content"]
    assert not result.success
    assert result.content == "Template text" and result.used_fallback


@pytest.mark.anyio
async def test_timeout_without_fallback_is_an_explicit_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("slow", request=request)

    async with _client(handler) as client:
        result = await safe_ai_request("/api/generate-content", {}, client=client, sleep=FakeSleep())

    assert not result.success and result.content == ""
    assert "timed out" in (result.error or "")


@pytest.mark.anyio
async def test_exhausted_retries_report_error_and_use_fallback():
    paths = []
    sleep = FakeSleep()

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == "/api/v1/log-error":
            return httpx.Response(202, json={"status": "accepted"})
        return httpx.Response(500, text="boom")

    async with _client(handler) as client:
        result = await safe_ai_request(
            "/api/generate-content", {}, client=client, max_retries=3, fallback="Fallback", sleep=sleep
        )

    assert paths == ["/api/generate-content"] * 3 + ["/api/v1/log-error"]
    assert sleep.calls == [2, 4]
    assert result.used_fallback and result.content == "Fallback"
    assert "500" in (result.error or "")


@pytest.mark.anyio
async def test_non_json_body_counts_as_failed_attempt():
    async with _client(lambda r: httpx.Response(200, text="<html>")) as client:
        result = await safe_ai_request(
            "/api/generate-content", {}, client=client, max_retries=1, error_log_path=None, sleep=FakeSleep()
        )

    assert not result.success
    assert result.used_fallback is None


@pytest.mark.anyio
async def test_request_options_from_config():
    from aria.config import AIConfig
    from aria.logic.ai_request import request_options

    config = AIConfig(base_url="http://ai.test", max_retries=2, timeout_s=5, assistant_timeout_s=9)
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(503)

    async with _client(handler) as client:
        result = await generate_with_assistant(
            client, "hi", sleep=FakeSleep(), error_log_path=None, **request_options(config, assistant=True)
        )

    assert request_options(config)["timeout_s"] == 5
    assert request_options(config, assistant=True)["timeout_s"] == 9
    assert calls == ["/api/ai-assistant", "/api/ai-assistant"]
    assert not result.success


@pytest.mark.anyio
async def test_exhausted_retries_reach_the_service_error_sink():
    from aria.main import create_app
    from aria.routes.errors import RECENT_REPORTS

    RECENT_REPORTS.clear()
    transport = httpx.ASGITransport(app=create_app())
    async with httpx.AsyncClient(transport=transport, base_url="http://aria.test") as client:
        result = await safe_ai_request(
            "/api/generate-content", {"type": "goals"}, client=client, max_retries=2, sleep=FakeSleep()
        )

    assert not result.success
    assert [r.type for r in RECENT_REPORTS] == ["ai_generation_failed"]
    assert RECENT_REPORTS[0].details["attempts"] == 2
