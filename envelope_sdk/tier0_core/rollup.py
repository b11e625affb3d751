"""
envelope_sdk.tier0_core.rollup
───────────────────────────────
Reduce the per-error status codes of an envelope to one overall status.

    []                      → 500
    [404]                   → 404
    [422, 422, 422]         → 422
    [404, 500]              → 500
    [400, 409]              → 400

With mixed codes the result is the base of the highest family present.
Callers that need the exact causes must inspect every ErrorMessage.
"""
from __future__ import annotations

from collections.abc import Iterable

from envelope_sdk.tier0_core.error_message import DEFAULT_CODE, ErrorMessage
from envelope_sdk.tier0_core.http import status_family


def rollup_status(errors: Iterable[ErrorMessage] | None) -> int:
    codes = [error.code for error in errors or ()]
    if not codes:
        return DEFAULT_CODE
    if len(codes) == 1:
        return codes[0]

    unique_codes = set(codes)
    if len(unique_codes) == 1:
        return codes[0]

    return status_family(max(unique_codes))


__all__ = ["rollup_status"]
