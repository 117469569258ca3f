"""Best-effort wrapper around the text-generation endpoints.

`safe_ai_request` never raises for service failures. It retries up to
`max_retries` times, backing off `2**attempt` seconds after an HTTP 429 or
a failed attempt; a timeout ends the loop at once. When every attempt
fails the caller gets the fallback text (flagged `used_fallback`) or an
explicit error result, never an empty success.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from aria.config import AIConfig
from aria.models.ai import AIResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_S = 45.0
ASSISTANT_TIMEOUT_S = 60.0

GENERATE_CONTENT_PATH = "/api/generate-content"
ASSISTANT_PATH = "/api/ai-assistant"
LOG_ERROR_PATH = "/api/v1/log-error"

Sleep = Callable[[float], Awaitable[Any]]


def _extract_content(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    for field in ("content", "text", "result"):
        value = payload.get(field)
        if value:
            return str(value)
    return ""


async def log_error_to_server(
    client: httpx.AsyncClient,
    error_type: str,
    details: Dict[str, Any],
    *,
    path: str = LOG_ERROR_PATH,
) -> None:
    body = {
        "type": error_type,
        "details": details,
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
    }
    try:
        await client.post(path, json=body)
    except httpx.HTTPError:
        logger.error("ai.log_error_failed type=%s", error_type, exc_info=True)


def _failure(message: str, fallback: Optional[str]) -> AIResult:
    if fallback:
        return AIResult(success=False, content=fallback, error=message, used_fallback=True)
    return AIResult(success=False, content="", error=message)


async def safe_ai_request(
    endpoint: str,
    body: Dict[str, Any],
    *,
    client: Optional[httpx.AsyncClient] = None,
    base_url: str = "",
    max_retries: int = DEFAULT_MAX_RETRIES,
    timeout_s: float = DEFAULT_TIMEOUT_S,
    fallback: Optional[str] = None,
    sleep: Sleep = asyncio.sleep,
    error_log_path: Optional[str] = LOG_ERROR_PATH,
) -> AIResult:
    """POST `body` to `endpoint`; a short-lived client is opened when none is given."""
    if client is None:
        async with httpx.AsyncClient(base_url=base_url) as owned:
            return await _post_with_retries(
                owned, endpoint, body, max_retries, timeout_s, fallback, sleep, error_log_path
            )
    return await _post_with_retries(client, endpoint, body, max_retries, timeout_s, fallback, sleep, error_log_path)


async def _post_with_retries(
    client: httpx.AsyncClient,
    endpoint: str,
    body: Dict[str, Any],
    max_retries: int,
    timeout_s: float,
    fallback: Optional[str],
    sleep: Sleep,
    error_log_path: Optional[str],
) -> AIResult:
    for attempt in range(1, max_retries + 1):
        try:
            resp = await client.post(endpoint, json=body, timeout=timeout_s)

            if resp.status_code == 429:
                wait_s = 2 ** attempt
                logger.warning("ai.rate_limited endpoint=%s attempt=%d wait_s=%d", endpoint, attempt, wait_s)
                await sleep(wait_s)
                continue

            if resp.status_code >= 400:
                raise httpx.HTTPStatusError(
                    f"AI request failed ({resp.status_code}): {resp.text or 'Unknown error'}",
                    request=resp.request,
                    response=resp,
                )

            try:
                payload = resp.json()
            except json.JSONDecodeError as e:
                raise httpx.DecodingError(f"AI response was not JSON: {e}", request=resp.request) from e
            return AIResult(success=True, content=_extract_content(payload))

        except httpx.TimeoutException:
            logger.error("ai.timeout endpoint=%s attempt=%d timeout_s=%s", endpoint, attempt, timeout_s)
            if fallback:
                return _failure("Request timed out. Using fallback response.", fallback)
            return _failure("Request timed out. Please try again.", None)

        except httpx.HTTPError as e:
            logger.error("ai.attempt_failed endpoint=%s attempt=%d/%d error=%s", endpoint, attempt, max_retries, e)
            if attempt == max_retries:
                if error_log_path:
                    await log_error_to_server(
                        client,
                        "ai_generation_failed",
                        {"endpoint": endpoint, "error": str(e), "attempts": max_retries},
                        path=error_log_path,
                    )
                return _failure(str(e) or "AI generation failed after multiple attempts", fallback)
            await sleep(2 ** attempt)

    return _failure("Max retries exceeded", fallback)


async def generate_content(
    client: Optional[httpx.AsyncClient],
    content_type: str,
    data: Dict[str, Any],
    **options: Any,
) -> AIResult:
    options.setdefault("timeout_s", DEFAULT_TIMEOUT_S)
    return await safe_ai_request(GENERATE_CONTENT_PATH, {"type": content_type, "data": data}, client=client, **options)


async def generate_with_assistant(client: Optional[httpx.AsyncClient], prompt: str, **options: Any) -> AIResult:
    options.setdefault("timeout_s", ASSISTANT_TIMEOUT_S)
    return await safe_ai_request(ASSISTANT_PATH, {"prompt": prompt}, client=client, **options)


def request_options(config: AIConfig, *, assistant: bool = False) -> Dict[str, Any]:
    """Keyword options for `safe_ai_request` taken from configuration."""
    return {
        "base_url": config.base_url,
        "max_retries": config.max_retries,
        "timeout_s": config.assistant_timeout_s if assistant else config.timeout_s,
    }


__all__ = [
    "AIResult",
    "request_options",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_TIMEOUT_S",
    "ASSISTANT_TIMEOUT_S",
    "safe_ai_request",
    "generate_content",
    "generate_with_assistant",
    "log_error_to_server",
]
