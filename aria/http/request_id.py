"""Request ID middleware.

Echoes an incoming X-Request-Id or assigns a fresh one, exposes it on the
ASGI scope state and logs one line per completed request.
"""

from __future__ import annotations

import logging
import time
import uuid

logger = logging.getLogger(__name__)


class RequestIdMiddleware:
    def __init__(self, app, header_name: str = "X-Request-Id") -> None:  # type: ignore[no-untyped-def]
        self.app = app
        self.header_name = header_name
        self._header_bytes = header_name.lower().encode("latin-1")

    async def __call__(self, scope, receive, send):  # type: ignore[no-untyped-def]
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        incoming = None
        for key, value in scope.get("headers") or []:
            if key.lower() == self._header_bytes:
                incoming = value.decode("latin-1").strip()
                break
        request_id = incoming or str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id
        started = time.monotonic()
        status_holder = {"status": 0}

        async def send_wrapper(message):  # type: ignore[no-untyped-def]
            if message.get("type") == "http.response.start":
                status_holder["status"] = int(message.get("status", 0))
                headers = [
                    (k, v) for k, v in (message.get("headers") or []) if k.lower() != self._header_bytes
                ]
                headers.append((self.header_name.encode("latin-1"), request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            logger.info(
                "request_done id=%s method=%s path=%s status=%s ms=%d",
                request_id,
                scope.get("method"),
                scope.get("path"),
                status_holder["status"],
                int((time.monotonic() - started) * 1000),
            )


__all__ = ["RequestIdMiddleware"]
