"""
envelope_sdk.tier0_core.errors
───────────────────────────────
ErrorEnvelope: the exception applications raise and the unit that flows
through the codec: an ordered list of ErrorMessage objects, an optional
explicit status that overrides the rolled-up one, and "other data" merged
into the wire entity next to ``errors``.

Typed subclasses pin the status code for the common HTTP errors. Raising an
envelope from a handler and letting the middleware map it is the normal
path; ``capture`` optionally reports mapped errors to Sentry or OTel.

Error capture: PLATFORM_ERROR_BACKEND=sentry|otel|none
"""
from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from envelope_sdk.tier0_core.config import _reset_config, get_config
from envelope_sdk.tier0_core.error_message import (
    DEFAULT_MESSAGE,
    KEY_FIELD_NAME,
    KEY_MESSAGE,
    ErrorMessage,
)
from envelope_sdk.tier0_core.http import HTTP
from envelope_sdk.tier0_core.logging import get_logger
from envelope_sdk.tier0_core.rollup import rollup_status

log = get_logger(__name__)

_ROLLUP_MESSAGE = "Rollup of {} exceptions."


# ── Envelope ──────────────────────────────────────────────────────────────────

class ErrorEnvelope(Exception):
    """
    Aggregate of one or more ErrorMessages plus side-channel data.

    - errors: ordered ErrorMessages; replaced only by a non-empty sequence
    - explicit_status: overrides the rolled-up status when set
    - other_data: extra top-level keys for the wire entity ("errors" is reserved)
    - message: summary taken from the first error, or a rollup count

    Usage::

        raise ErrorEnvelope("Order is locked", 423)
        raise ErrorEnvelope.of_errors([ErrorMessage(404, "no user"), ErrorMessage(500)])
    """

    CODE: int | None = None

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        *,
        field_name: str | None = None,
        item_id: str | None = None,
    ) -> None:
        code = status_code if status_code is not None else self.CODE
        error = ErrorMessage(code, message, field_name, item_id)
        self._setup(error.message, [error])

    def _setup(
        self,
        message: str,
        errors: list[ErrorMessage],
        explicit_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self._errors = errors
        self._explicit_status = explicit_status
        self._other_data: dict[str, Any] = {}

    @classmethod
    def _build(
        cls,
        message: str,
        errors: list[ErrorMessage],
        explicit_status: int | None = None,
    ) -> ErrorEnvelope:
        envelope = cls.__new__(cls)
        envelope._setup(message, errors, explicit_status)
        return envelope

    # ── Alternate constructors ────────────────────────────────────────────────

    @staticmethod
    def of_error(error: ErrorMessage | None) -> ErrorEnvelope:
        """Wrap a single ErrorMessage; None becomes a default ErrorMessage."""
        error = error if error is not None else ErrorMessage()
        return ErrorEnvelope._build(error.message, [error])

    @staticmethod
    def of_errors(
        errors: Iterable[ErrorMessage] | None,
        status_code: int | None = None,
    ) -> ErrorEnvelope:
        """
        Aggregate several ErrorMessages. Pass status_code to fix the overall
        status, or None to have it rolled up from the errors. The message is
        taken from the first error.
        """
        error_list = list(errors or ())
        message = error_list[0].message if error_list else DEFAULT_MESSAGE
        return ErrorEnvelope._build(message, error_list, status_code)

    @staticmethod
    def combine(envelopes: Iterable[ErrorEnvelope] | None) -> ErrorEnvelope:
        """
        Roll several envelopes into one. Errors are concatenated in order and
        other data is merged in order (later keys win).
        """
        envelope_list = list(envelopes or ())
        if not envelope_list:
            return ErrorEnvelope._build(DEFAULT_MESSAGE, [ErrorMessage()])

        combined = ErrorEnvelope._build(
            _ROLLUP_MESSAGE.format(len(envelope_list)),
            [error for envelope in envelope_list for error in envelope.errors],
        )
        for envelope in envelope_list:
            combined.add_other_data(envelope.other_data)
        return combined

    @classmethod
    def from_exception(
        cls,
        failure: BaseException | None,
        status_code: int | None = None,
        message: str | None = None,
    ) -> ErrorEnvelope:
        """
        Normalize an arbitrary exception into an envelope.

        An envelope of this class passes through untouched when no override is
        given. Otherwise the status is, in order: the override, the class's
        fixed CODE, or the classifier's verdict on the failure.
        """
        if isinstance(failure, cls) and status_code is None and message is None:
            return failure

        from envelope_sdk.tier0_core.classify import classify

        code = status_code if status_code is not None else cls.CODE
        if code is None:
            code = classify(failure)
        if message is None and failure is not None:
            message = str(failure)

        error = ErrorMessage(code, message)
        envelope = cls._build(error.message, [error])
        envelope.__cause__ = failure
        return envelope

    # ── State ─────────────────────────────────────────────────────────────────

    @property
    def errors(self) -> tuple[ErrorMessage, ...]:
        return tuple(self._errors)

    def set_errors(self, errors: Iterable[ErrorMessage] | None) -> None:
        """Replace the errors. None or empty is ignored so detail is never lost."""
        error_list = list(errors or ())
        if error_list:
            self._errors = error_list

    @property
    def explicit_status(self) -> int | None:
        return self._explicit_status

    @property
    def status_code(self) -> int:
        if self._explicit_status is not None:
            return self._explicit_status
        return rollup_status(self._errors)

    @property
    def other_data(self) -> Mapping[str, Any]:
        return MappingProxyType(self._other_data)

    def add_other_data(self, data: Mapping[str, Any] | None) -> None:
        """
        Merge entries into other_data. An "errors" key is kept here but never
        reaches the wire; the encoder reserves it for the error list.
        """
        if data:
            self._other_data.update(data)

    def clear_other_data(self) -> None:
        self._other_data.clear()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(status_code={self.status_code}, "
            f"errors={list(self._errors)!r}, other_data={self._other_data!r})"
        )

    def __reduce__(self) -> tuple:
        # Exception.__reduce__ would call cls(*args), which subclass
        # constructors do not accept.
        return (
            _rebuild,
            (
                type(self),
                self.message,
                list(self._errors),
                self._explicit_status,
                dict(self._other_data),
            ),
        )


def _rebuild(
    cls: type[ErrorEnvelope],
    message: str,
    errors: list[ErrorMessage],
    explicit_status: int | None,
    other_data: dict[str, Any],
) -> ErrorEnvelope:
    envelope = cls._build(message, errors, explicit_status)
    envelope.add_other_data(other_data)
    return envelope


# ── Typed envelopes ───────────────────────────────────────────────────────────

class _FixedStatusEnvelope(ErrorEnvelope):
    CODE: int = HTTP.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str | None = None,
        *,
        field_name: str | None = None,
        item_id: str | None = None,
    ) -> None:
        super().__init__(message, self.CODE, field_name=field_name, item_id=item_id)


class BadRequestError(_FixedStatusEnvelope):
    """400 Bad Request."""
    CODE = HTTP.BAD_REQUEST


class NotAuthorizedError(_FixedStatusEnvelope):
    """401: the caller is not authenticated."""
    CODE = HTTP.UNAUTHORIZED


class ForbiddenError(_FixedStatusEnvelope):
    """403: authenticated but not allowed."""
    CODE = HTTP.FORBIDDEN


class NotFoundError(_FixedStatusEnvelope):
    """404 Not Found."""
    CODE = HTTP.NOT_FOUND

    @staticmethod
    def build_message(type_name: str, key: Any) -> str:
        """e.g. build_message("User", 42) → "User 42 was not found." """
        return f"{type_name} {key} was not found."

    @classmethod
    def for_item(cls, type_name: str, key: Any) -> NotFoundError:
        return cls(cls.build_message(type_name, key), item_id=str(key))


class ConflictError(_FixedStatusEnvelope):
    """409 Conflict."""
    CODE = HTTP.CONFLICT


class InternalServerError(_FixedStatusEnvelope):
    """500 Internal Server Error."""
    CODE = HTTP.INTERNAL_SERVER_ERROR


class ValidationError(ErrorEnvelope):
    """
    422 Unprocessable Entity carrying one ErrorMessage per failed field.

    Accepts ErrorMessages (kept as they are) and/or mappings with "fieldName"
    and "message" entries, which become 422 errors for item_id. With no
    errors at all, a single "Validation failed" error is kept.
    """

    CODE = HTTP.UNPROCESSABLE_ENTITY
    MESSAGE = "Validation failed"

    def __init__(
        self,
        errors: Iterable[ErrorMessage | Mapping[str, Any]] | None = None,
        *,
        item_id: str | None = None,
    ) -> None:
        super().__init__(self.MESSAGE, self.CODE)
        self.set_errors(self._to_error_message(error, item_id) for error in errors or ())

    @classmethod
    def _to_error_message(
        cls, error: ErrorMessage | Mapping[str, Any], item_id: str | None
    ) -> ErrorMessage:
        if isinstance(error, ErrorMessage):
            return error
        return ErrorMessage(
            cls.CODE,
            error.get(KEY_MESSAGE),
            error.get(KEY_FIELD_NAME),
            item_id,
        )


class IllegalStateError(RuntimeError):
    """The operation is not valid for the current state of the resource (409)."""


# ── Error capture backend ─────────────────────────────────────────────────────

def capture(envelope: ErrorEnvelope) -> None:
    """
    Report an envelope to the configured backend. Called by the codec's
    to_response hook; reporting problems are logged and never raised.
    """
    backend = get_config().error_backend
    if backend == "none":
        return
    try:
        if backend == "sentry":
            _capture_sentry(envelope)
        elif backend == "otel":
            _capture_otel(envelope)
    except Exception as exc:
        log.warning("envelope.capture_failed", backend=backend, error=repr(exc))


def _capture_sentry(envelope: ErrorEnvelope) -> None:
    import sentry_sdk

    if envelope.status_code >= HTTP.INTERNAL_SERVER_ERROR:
        sentry_sdk.capture_exception(envelope)
    else:
        sentry_sdk.capture_message(
            str(envelope),
            level="warning",
            extras={
                "status_code": envelope.status_code,
                "errors": [error.to_map() for error in envelope.errors],
            },
        )


def _capture_otel(envelope: ErrorEnvelope) -> None:
    from opentelemetry import trace

    span = trace.get_current_span()
    span.record_exception(envelope)
    span.set_status(trace.StatusCode.ERROR, str(envelope))


def configure_sentry(dsn: str, **kwargs: Any) -> None:
    """Initialize Sentry. Call once at application startup."""
    import sentry_sdk

    sentry_sdk.init(dsn=dsn, **kwargs)
    os.environ["PLATFORM_ERROR_BACKEND"] = "sentry"
    _reset_config()


__all__ = [
    "ErrorEnvelope",
    "BadRequestError",
    "NotAuthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "InternalServerError",
    "ValidationError",
    "IllegalStateError",
    "capture",
    "configure_sentry",
]
