"""
envelope_sdk.tier0_core.classify
─────────────────────────────────
Map an arbitrary failure to a default HTTP status code.

The failure is first reduced to a FailureKind, once, at the boundary where
it is observed; the status code then follows from the kind alone:

    None                               → UNKNOWN           → 500
    ErrorEnvelope                      → EXPLICIT          → envelope.status_code
    httpx.HTTPStatusError              → CARRIED_RESPONSE  → response.status_code
    framework HTTP exception           → CARRIED_RESPONSE  → its 4xx/5xx status_code or code
    ValueError                         → INVALID_ARGUMENT  → 400
    IllegalStateError                  → ILLEGAL_STATE     → 409
    type name in conflict allow-list   → CONFLICT          → 409
    anything else                      → UNKNOWN           → 500

Classification is pure and never raises.
"""
from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

import httpx

from envelope_sdk.tier0_core.config import get_config
from envelope_sdk.tier0_core.conflicts import ConflictCategory, qualified_name
from envelope_sdk.tier0_core.errors import ErrorEnvelope, IllegalStateError
from envelope_sdk.tier0_core.http import HTTP


class FailureKind(str, Enum):
    EXPLICIT = "explicit"
    CARRIED_RESPONSE = "carried_response"
    INVALID_ARGUMENT = "invalid_argument"
    ILLEGAL_STATE = "illegal_state"
    CONFLICT = "conflict"
    UNKNOWN = "unknown"


_STATUS_BY_KIND: dict[FailureKind, int] = {
    FailureKind.INVALID_ARGUMENT: HTTP.BAD_REQUEST,
    FailureKind.ILLEGAL_STATE: HTTP.CONFLICT,
    FailureKind.CONFLICT: HTTP.CONFLICT,
    FailureKind.UNKNOWN: HTTP.INTERNAL_SERVER_ERROR,
}


def conflict_category(
    failure: BaseException | None,
    conflict_types: Mapping[str, ConflictCategory] | None = None,
) -> ConflictCategory | None:
    """
    Return the conflict category of the failure's type, or of the nearest
    base class listed in the allow-list, or None.
    """
    if failure is None:
        return None
    if conflict_types is None:
        conflict_types = get_config().conflict_error_types
    for cls in type(failure).__mro__:
        category = conflict_types.get(qualified_name(cls))
        if category is not None:
            return category
    return None


def _carried_status(failure: BaseException) -> int | None:
    """
    Error status carried by a server framework exception: Starlette and
    FastAPI use ``status_code``, Werkzeug and urllib use ``code``.
    """
    if not isinstance(failure, Exception):
        return None
    for attr in ("status_code", "code"):
        status = getattr(failure, attr, None)
        if isinstance(status, bool) or not isinstance(status, int):
            continue
        if 400 <= status <= 599:
            return status
    return None


def failure_kind(
    failure: BaseException | None,
    conflict_types: Mapping[str, ConflictCategory] | None = None,
) -> FailureKind:
    if failure is None:
        return FailureKind.UNKNOWN
    if isinstance(failure, ErrorEnvelope):
        return FailureKind.EXPLICIT
    if isinstance(failure, httpx.HTTPStatusError) or _carried_status(failure) is not None:
        return FailureKind.CARRIED_RESPONSE
    if isinstance(failure, ValueError):
        return FailureKind.INVALID_ARGUMENT
    if isinstance(failure, IllegalStateError):
        return FailureKind.ILLEGAL_STATE
    if conflict_category(failure, conflict_types) is not None:
        return FailureKind.CONFLICT
    return FailureKind.UNKNOWN


def classify(
    failure: BaseException | None,
    conflict_types: Mapping[str, ConflictCategory] | None = None,
) -> int:
    """
    Return an appropriate HTTP error status for the failure.

    Usage:
        classify(None)                        # → 500
        classify(ValueError("bad limit"))     # → 400
        classify(IllegalStateError("closed")) # → 409
    """
    kind = failure_kind(failure, conflict_types)
    if kind is FailureKind.EXPLICIT:
        return failure.status_code  # type: ignore[union-attr]
    if kind is FailureKind.CARRIED_RESPONSE:
        if isinstance(failure, httpx.HTTPStatusError):
            return failure.response.status_code
        return _carried_status(failure)  # type: ignore[return-value]
    return _STATUS_BY_KIND[kind]


__all__ = ["FailureKind", "ConflictCategory", "classify", "failure_kind", "conflict_category"]
