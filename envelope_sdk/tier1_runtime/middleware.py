"""
envelope_sdk.tier1_runtime.middleware
───────────────────────────────────────
Framework-agnostic exception-mapping middleware. Any exception that escapes
the wrapped application before a response has started is converted with
codec.to_response and sent as a JSON error envelope.

Supports: FastAPI / Starlette (ASGI), Flask / Django (WSGI).
"""
from __future__ import annotations

import sys
import time
import uuid
from typing import Any, Callable

from envelope_sdk.tier0_core.http import status_line
from envelope_sdk.tier0_core.logging import bind_context, clear_context, get_logger
from envelope_sdk.tier1_runtime.codec import EnvelopeResponse, to_response

log = get_logger(__name__)


def _response_headers(response: EnvelopeResponse, body: bytes) -> list[tuple[str, str]]:
    return [
        ("content-type", response.media_type),
        ("content-length", str(len(body))),
    ]


# ── ASGI middleware ────────────────────────────────────────────────────────

class ErrorEnvelopeASGIMiddleware:
    """
    ASGI middleware that maps unhandled exceptions to JSON error envelopes.

    Usage (FastAPI / Starlette)::

        from envelope_sdk import ErrorEnvelopeASGIMiddleware
        app.add_middleware(ErrorEnvelopeASGIMiddleware)
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = (
            headers.get(b"x-request-id", b"").decode()
            or headers.get(b"x-correlation-id", b"").decode()
            or str(uuid.uuid4())
        )
        bind_context(request_id=request_id)

        response_started = False

        async def send_wrapper(message: dict) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        start = time.perf_counter()
        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                raise
            response = to_response(exc)
            log.warning(
                "request_failed",
                status_code=response.status_code,
                path=scope.get("path", ""),
                method=scope.get("method", ""),
                error=repr(exc),
            )
            body = response.content
            await send({
                "type": "http.response.start",
                "status": response.status_code,
                "headers": [
                    (name.encode(), value.encode())
                    for name, value in _response_headers(response, body)
                ],
            })
            await send({"type": "http.response.body", "body": body})
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            log.info(
                "request_completed",
                duration_ms=round(duration_ms, 2),
                path=scope.get("path", ""),
                method=scope.get("method", ""),
            )
            clear_context()


# ── WSGI middleware ────────────────────────────────────────────────────────

class ErrorEnvelopeWSGIMiddleware:
    """
    WSGI middleware that maps unhandled exceptions to JSON error envelopes.

    Usage (Flask)::

        from envelope_sdk import ErrorEnvelopeWSGIMiddleware
        app.wsgi_app = ErrorEnvelopeWSGIMiddleware(app.wsgi_app)
    """

    def __init__(self, app: Callable) -> None:
        self.app = app

    def __call__(self, environ: dict, start_response: Callable) -> Any:
        request_id = (
            environ.get("HTTP_X_REQUEST_ID")
            or environ.get("HTTP_X_CORRELATION_ID")
            or str(uuid.uuid4())
        )
        bind_context(request_id=request_id)

        start = time.perf_counter()
        try:
            return self.app(environ, start_response)
        except Exception as exc:
            response = to_response(exc)
            log.warning(
                "request_failed",
                status_code=response.status_code,
                path=environ.get("PATH_INFO", ""),
                method=environ.get("REQUEST_METHOD", ""),
                error=repr(exc),
            )
            body = response.content
            start_response(
                status_line(response.status_code),
                _response_headers(response, body),
                sys.exc_info(),
            )
            return [body]
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            log.info(
                "request_completed",
                duration_ms=round(duration_ms, 2),
                path=environ.get("PATH_INFO", ""),
                method=environ.get("REQUEST_METHOD", ""),
            )
            clear_context()


__all__ = ["ErrorEnvelopeASGIMiddleware", "ErrorEnvelopeWSGIMiddleware"]
