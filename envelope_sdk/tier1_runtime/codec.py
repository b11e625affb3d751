"""
envelope_sdk.tier1_runtime.codec
──────────────────────────────────
Wire codec for error envelopes.

Outbound, an envelope becomes a JSON entity whose ``errors`` array holds the
ErrorMessages and whose other top-level keys are the envelope's other data;
the HTTP status is the envelope's status code.

    {"errors": [{"code": 404, "message": "User 42 was not found.",
                 "fieldName": null, "itemId": "42"}],
     "requestId": "req-abc"}

Inbound, any (status, body) pair is turned back into an envelope. Decoding
never raises: missing, blank, unreadable or non-JSON bodies and malformed
error entries degrade to a simpler envelope and a log entry.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from envelope_sdk.tier0_core.error_message import ErrorMessage
from envelope_sdk.tier0_core.errors import ErrorEnvelope, capture
from envelope_sdk.tier0_core.http import reason_phrase
from envelope_sdk.tier0_core.logging import get_logger
from envelope_sdk.tier1_runtime.serialize import deserialize_map, serialize
from envelope_sdk.tier1_runtime.validate import validation_error_from

log = get_logger(__name__)

KEY_ERRORS = "errors"
JSON_MEDIA_TYPE = "application/json"


# ── Encode ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class EnvelopeResponse:
    """Status and JSON entity ready to hand to the host framework."""
    status_code: int
    entity: dict[str, Any]
    media_type: str = JSON_MEDIA_TYPE

    @property
    def content(self) -> bytes:
        return serialize(self.entity)


def build_entity(envelope: ErrorEnvelope) -> dict[str, Any]:
    """
    Build the wire entity: other data first, then the reserved ``errors``
    key, which always reflects the envelope's structured errors.
    """
    entity = {
        key: value
        for key, value in envelope.other_data.items()
        if key != KEY_ERRORS
    }
    errors = envelope.errors or (ErrorMessage(),)
    entity[KEY_ERRORS] = [error.to_map() for error in errors]
    return entity


def encode(envelope: ErrorEnvelope) -> EnvelopeResponse:
    return EnvelopeResponse(envelope.status_code, build_entity(envelope))


def envelope_for(failure: BaseException | None) -> ErrorEnvelope:
    """
    Normalize any failure into an envelope. Pydantic validation failures
    become a 422 ValidationError; everything else goes through
    ErrorEnvelope.from_exception.
    """
    if isinstance(failure, PydanticValidationError):
        envelope = validation_error_from(failure)
        envelope.__cause__ = failure
        return envelope
    return ErrorEnvelope.from_exception(failure)


def to_response(failure: BaseException | None) -> EnvelopeResponse:
    """
    Exception-mapping hook for the host framework.

    Usage (Starlette / FastAPI)::

        @app.exception_handler(Exception)
        async def handle(request, exc):
            response = to_response(exc)
            return Response(response.content, response.status_code,
                            media_type=response.media_type)
    """
    envelope = envelope_for(failure)
    capture(envelope)
    return encode(envelope)


# ── Decode ─────────────────────────────────────────────────────────────────

def decode(status_code: int, body: str | bytes | None) -> ErrorEnvelope:
    """
    Rebuild an envelope from a received status code and body.

    - no body, or a blank one: one error with the status's reason phrase
    - bytes that are not UTF-8: one default-message error
    - text that is not a JSON object: one error whose message is the text
    - a JSON object: see decode_entity
    """
    if body is None:
        return ErrorEnvelope(reason_phrase(status_code), status_code)

    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            log.warning(
                "envelope.decode.unreadable_body",
                status_code=status_code,
                error=repr(exc),
            )
            return ErrorEnvelope(None, status_code)

    return _decode_text(status_code, body, reason_phrase(status_code))


def from_response(response: httpx.Response | None) -> ErrorEnvelope | None:
    """
    Rebuild an envelope from an httpx response. Returns None for None.

    Usage:
        response = await client.get("/users/42")
        if response.is_error:
            raise from_response(response)
    """
    if response is None:
        return None

    status_code = response.status_code
    try:
        text = response.text
    except Exception as exc:
        log.warning(
            "envelope.decode.unreadable_body",
            status_code=status_code,
            error=repr(exc),
        )
        return ErrorEnvelope(None, status_code)

    phrase = response.reason_phrase or reason_phrase(status_code)
    return _decode_text(status_code, text, phrase)


def _decode_text(status_code: int, text: str, phrase: str) -> ErrorEnvelope:
    if not text.strip():
        return ErrorEnvelope(phrase, status_code)

    try:
        entity = deserialize_map(text)
    except Exception as exc:
        log.warning(
            "envelope.decode.unparseable_body",
            status_code=status_code,
            body=text,
            error=repr(exc),
        )
        return ErrorEnvelope(text, status_code)

    return decode_entity(status_code, entity)


def decode_entity(
    status_code: int, entity: Mapping[Any, Any] | None
) -> ErrorEnvelope:
    """
    Rebuild an envelope from an already-parsed entity.

    Without an ``errors`` key the whole entity becomes other data next to a
    single default-message error. With one, every map-shaped element becomes
    an ErrorMessage (anything else is dropped), the status is pinned to
    status_code, and the remaining keys become other data. An ``errors``
    value that is not a list degrades to a single default-message error.
    """
    if not entity or KEY_ERRORS not in entity:
        envelope = ErrorEnvelope(None, status_code)
        envelope.add_other_data(entity)
        return envelope

    try:
        errors = _extract_error_messages(entity[KEY_ERRORS])
        envelope = ErrorEnvelope.of_errors(errors, status_code)
        envelope.add_other_data({
            key: value
            for key, value in entity.items()
            if key != KEY_ERRORS and key is not None
        })
        return envelope
    except Exception as exc:
        log.warning(
            "envelope.decode.invalid_entity",
            status_code=status_code,
            entity=dict(entity),
            error=repr(exc),
        )
        return ErrorEnvelope(None, status_code)


def _extract_error_messages(raw_errors: Any) -> list[ErrorMessage]:
    if not isinstance(raw_errors, (list, tuple)):
        raise TypeError(
            f"'{KEY_ERRORS}' must be a list, got {type(raw_errors).__name__}"
        )
    return [
        error
        for error in (_to_error_message_or_none(obj) for obj in raw_errors)
        if error is not None
    ]


def _to_error_message_or_none(obj: Any) -> ErrorMessage | None:
    if isinstance(obj, ErrorMessage):
        return obj
    if isinstance(obj, Mapping):
        return ErrorMessage.from_map(obj)
    return None


__all__ = [
    "KEY_ERRORS",
    "JSON_MEDIA_TYPE",
    "EnvelopeResponse",
    "build_entity",
    "encode",
    "envelope_for",
    "to_response",
    "decode",
    "decode_entity",
    "from_response",
]
