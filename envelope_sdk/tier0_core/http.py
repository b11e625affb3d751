"""
envelope_sdk.tier0_core.http
─────────────────────────────
HTTP primitives: standard status codes, reason phrases and status families.
All envelopes, codecs and middleware share these constants so error codes
are consistent across the platform.
"""
from __future__ import annotations

import httpx


# ── Status code constants ──────────────────────────────────────────────────

class HTTP:
    """Standard HTTP status codes used across the platform."""

    # 2xx
    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    # 4xx
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422
    TOO_MANY_REQUESTS = 429

    # 5xx
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503


# ── Helpers ────────────────────────────────────────────────────────────────

def reason_phrase(status_code: int) -> str:
    """
    Return the standard reason phrase for a status code, or "" when the code
    is not a registered HTTP status.

        reason_phrase(404)  # → "Not Found"
        reason_phrase(599)  # → ""
    """
    return httpx.codes.get_reason_phrase(status_code)


def status_family(status_code: int) -> int:
    """Base code of the hundred-series family, e.g. 409 → 400."""
    return (status_code // 100) * 100


def status_line(status_code: int) -> str:
    """WSGI-style status line, e.g. "404 Not Found"."""
    phrase = reason_phrase(status_code)
    return f"{status_code} {phrase}" if phrase else str(status_code)


__all__ = ["HTTP", "reason_phrase", "status_family", "status_line"]
