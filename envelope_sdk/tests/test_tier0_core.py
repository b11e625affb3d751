"""Tests for tier0_core modules."""
from __future__ import annotations

import asyncio
import copy
import dataclasses
import pickle
from http import HTTPStatus

import httpx
import pytest
from pydantic import ValidationError as PydanticValidationError

from envelope_sdk.tier0_core.classify import (
    FailureKind,
    classify,
    conflict_category,
    failure_kind,
)
from envelope_sdk.tier0_core.config import EnvelopeConfig, _reset_config
from envelope_sdk.tier0_core.conflicts import (
    DEFAULT_CONFLICT_ERROR_TYPES,
    ConflictCategory,
)
from envelope_sdk.tier0_core.error_message import (
    DEFAULT_CODE,
    DEFAULT_MESSAGE,
    ErrorMessage,
)
from envelope_sdk.tier0_core.errors import (
    BadRequestError,
    ConflictError,
    ErrorEnvelope,
    ForbiddenError,
    IllegalStateError,
    InternalServerError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
    capture,
)
from envelope_sdk.tier0_core.http import HTTP, reason_phrase, status_family, status_line
from envelope_sdk.tier0_core.rollup import rollup_status


# Stand-in for a persistence-library type, matched by qualified name only.
StaleDataError = type("StaleDataError", (Exception,), {"__module__": "sqlalchemy.orm.exc"})


class VersionMismatch(StaleDataError):
    pass


class RouteHTTPException(Exception):
    """Shaped like starlette.exceptions.HTTPException."""

    def __init__(self, status_code, detail=None):
        super().__init__(detail)
        self.status_code = status_code


class TooManyRequests(Exception):
    """Shaped like werkzeug.exceptions.TooManyRequests."""

    code = 429


def _http_status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "http://orders/api/orders/1")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError("upstream said no", request=request, response=response)


# ── http ───────────────────────────────────────────────────────────────────

class TestHttp:
    def test_status_codes(self):
        assert HTTP.BAD_REQUEST == 400
        assert HTTP.CONFLICT == 409
        assert HTTP.UNPROCESSABLE_ENTITY == 422
        assert HTTP.INTERNAL_SERVER_ERROR == 500

    def test_reason_phrase(self):
        assert reason_phrase(404) == "Not Found"
        assert reason_phrase(599) == ""

    def test_status_family(self):
        assert status_family(409) == 400
        assert status_family(503) == 500
        assert status_family(400) == 400

    def test_status_line(self):
        assert status_line(404) == "404 Not Found"
        assert status_line(599) == "599"


# ── error message ──────────────────────────────────────────────────────────

class TestErrorMessage:
    def test_defaults(self):
        error = ErrorMessage()
        assert error.code == DEFAULT_CODE == 500
        assert error.message == DEFAULT_MESSAGE == "Unknown error"
        assert error.field_name is None
        assert error.item_id is None

    @pytest.mark.parametrize("code", [0, -1, -404, None])
    def test_non_positive_code_becomes_default(self, code):
        assert ErrorMessage(code, "boom").code == 500

    @pytest.mark.parametrize("message", [None, "", "   ", "\t\n"])
    def test_blank_message_becomes_default(self, message):
        assert ErrorMessage(400, message).message == "Unknown error"

    def test_accepts_http_status(self):
        error = ErrorMessage(HTTPStatus.NOT_FOUND, "gone")
        assert error.code == 404
        assert type(error.code) is int

    def test_structural_equality_and_hash(self):
        a = ErrorMessage(400, "bad", "email", "42")
        b = ErrorMessage(400, "bad", "email", "42")
        assert a == b
        assert hash(a) == hash(b)
        assert a != ErrorMessage(400, "bad", "email", "43")

    def test_is_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            ErrorMessage().code = 404  # type: ignore[misc]

    def test_to_map_always_has_all_keys(self):
        assert ErrorMessage(404, "gone").to_map() == {
            "code": 404,
            "message": "gone",
            "fieldName": None,
            "itemId": None,
        }

    def test_from_map_full(self):
        props = {"code": 409, "message": "taken", "fieldName": "username", "itemId": "u_1"}
        assert ErrorMessage.from_map(props) == ErrorMessage(409, "taken", "username", "u_1")

    def test_from_map_defaults_missing_values(self):
        assert ErrorMessage.from_map({}) == ErrorMessage(500, "Unknown error")

    def test_from_map_defaults_blank_message(self):
        assert ErrorMessage.from_map({"code": 400, "message": " "}).message == "Unknown error"

    @pytest.mark.parametrize("code", ["not a valid HTTP status code", "404", 404.0, True, None])
    def test_from_map_invalid_code_becomes_default(self, code):
        error = ErrorMessage.from_map({"code": code, "message": "oops"})
        assert error.code == 500
        assert error.message == "oops"

    def test_from_map_stringifies_scalar_ids(self):
        assert ErrorMessage.from_map({"code": 404, "itemId": 42}).item_id == "42"


# ── rollup ─────────────────────────────────────────────────────────────────

class TestRollup:
    def test_empty_is_default(self):
        assert rollup_status([]) == 500
        assert rollup_status(None) == 500

    @pytest.mark.parametrize("code", [400, 404, 418, 503])
    def test_single_error_keeps_its_code(self, code):
        assert rollup_status([ErrorMessage(code)]) == code

    def test_uniform_codes_keep_that_code(self):
        errors = [ErrorMessage(422, "a"), ErrorMessage(422, "b"), ErrorMessage(422, "c")]
        assert rollup_status(errors) == 422

    def test_mixed_families_use_highest_family_base(self):
        assert rollup_status([ErrorMessage(404), ErrorMessage(500)]) == 500
        assert rollup_status([ErrorMessage(404), ErrorMessage(503)]) == 500

    def test_mixed_codes_in_one_family_use_family_base(self):
        assert rollup_status([ErrorMessage(400), ErrorMessage(409)]) == 400
        assert rollup_status([ErrorMessage(401), ErrorMessage(403), ErrorMessage(401)]) == 400


# ── classify ───────────────────────────────────────────────────────────────

class TestClassify:
    def test_none_is_500(self):
        assert classify(None) == 500
        assert failure_kind(None) is FailureKind.UNKNOWN

    def test_invalid_argument_is_400(self):
        assert classify(ValueError("limit must be positive")) == 400

    def test_illegal_state_is_409(self):
        assert classify(IllegalStateError("order already shipped")) == 409

    def test_unknown_is_500(self):
        assert classify(KeyError("missing")) == 500
        assert classify(RuntimeError("boom")) == 500

    def test_envelope_uses_its_own_status(self):
        assert classify(NotFoundError("User 42 was not found.")) == 404
        assert classify(ErrorEnvelope.of_errors([ErrorMessage(400)], 418)) == 418

    def test_carried_response_uses_response_status(self):
        assert classify(_http_status_error(503)) == 503

    def test_framework_exception_status(self):
        assert classify(RouteHTTPException(404, "no route")) == 404
        assert classify(TooManyRequests()) == 429
        assert failure_kind(TooManyRequests()) is FailureKind.CARRIED_RESPONSE

    @pytest.mark.parametrize("status", [None, 200, 302, True, "404", 600])
    def test_non_error_status_attributes_are_ignored(self, status):
        assert classify(RouteHTTPException(status)) == 500

    def test_system_exit_code_is_not_a_status(self):
        assert classify(SystemExit(404)) == 500

    @pytest.mark.parametrize(
        "failure, kind",
        [
            (None, FailureKind.UNKNOWN),
            (ConflictError("dup"), FailureKind.EXPLICIT),
            (_http_status_error(404), FailureKind.CARRIED_RESPONSE),
            (ValueError("bad"), FailureKind.INVALID_ARGUMENT),
            (IllegalStateError("closed"), FailureKind.ILLEGAL_STATE),
            (asyncio.InvalidStateError(), FailureKind.CONFLICT),
            (StaleDataError(), FailureKind.CONFLICT),
            (OSError("disk"), FailureKind.UNKNOWN),
        ],
    )
    def test_failure_kind(self, failure, kind):
        assert failure_kind(failure) is kind

    def test_concurrency_state_type_is_409(self):
        failure = asyncio.InvalidStateError()
        assert classify(failure) == 409
        assert conflict_category(failure) is ConflictCategory.CONCURRENCY_STATE

    def test_conflict_match_walks_base_classes(self):
        assert classify(VersionMismatch()) == 409
        assert conflict_category(VersionMismatch()) is ConflictCategory.OPTIMISTIC_LOCK

    def test_explicit_conflict_types(self):
        conflict_types = {"builtins.KeyError": ConflictCategory.DATA_INTEGRITY}
        assert classify(KeyError("k"), conflict_types) == 409
        assert classify(StaleDataError(), conflict_types) == 500

    def test_conflict_types_from_environment(self, monkeypatch):
        monkeypatch.setenv(
            "PLATFORM_CONFLICT_ERROR_TYPES", '{"builtins.LookupError": "pessimistic_lock"}'
        )
        _reset_config()
        assert classify(KeyError("k")) == 409
        assert conflict_category(IndexError()) is ConflictCategory.PESSIMISTIC_LOCK
        assert classify(StaleDataError()) == 409
        assert classify(asyncio.InvalidStateError()) == 409

    def test_environment_entries_override_default_categories(self, monkeypatch):
        monkeypatch.setenv(
            "PLATFORM_CONFLICT_ERROR_TYPES",
            '{"sqlalchemy.orm.exc.StaleDataError": "data_integrity"}',
        )
        _reset_config()
        assert conflict_category(StaleDataError()) is ConflictCategory.DATA_INTEGRITY
        assert conflict_category(asyncio.InvalidStateError()) is ConflictCategory.CONCURRENCY_STATE

    def test_default_table_covers_every_category(self):
        assert set(DEFAULT_CONFLICT_ERROR_TYPES.values()) == set(ConflictCategory)

    def test_no_conflict_category_for_plain_errors(self):
        assert conflict_category(None) is None
        assert conflict_category(RuntimeError()) is None


# ── envelope ───────────────────────────────────────────────────────────────

class TestErrorEnvelope:
    def test_single_error(self):
        envelope = ErrorEnvelope("Order is locked", 423)
        assert envelope.errors == (ErrorMessage(423, "Order is locked"),)
        assert envelope.status_code == 423
        assert envelope.explicit_status is None
        assert envelope.message == "Order is locked"
        assert str(envelope) == "Order is locked"

    def test_minimal_envelope_uses_defaults(self):
        envelope = ErrorEnvelope()
        assert envelope.errors == (ErrorMessage(),)
        assert envelope.status_code == 500
        assert envelope.message == "Unknown error"

    def test_field_and_item(self):
        envelope = ErrorEnvelope("taken", 409, field_name="username", item_id="u_1")
        assert envelope.errors == (ErrorMessage(409, "taken", "username", "u_1"),)

    def test_of_error(self):
        error = ErrorMessage(404, "gone")
        assert ErrorEnvelope.of_error(error).errors == (error,)
        assert ErrorEnvelope.of_error(None).errors == (ErrorMessage(),)

    def test_of_errors_rolls_up_status(self):
        envelope = ErrorEnvelope.of_errors([ErrorMessage(404, "first"), ErrorMessage(500, "second")])
        assert envelope.status_code == 500
        assert envelope.explicit_status is None
        assert envelope.message == "first"

    def test_of_errors_explicit_status_wins(self):
        envelope = ErrorEnvelope.of_errors([ErrorMessage(404), ErrorMessage(500)], 503)
        assert envelope.status_code == 503
        assert envelope.explicit_status == 503

    def test_of_errors_empty_defaults_lazily(self):
        envelope = ErrorEnvelope.of_errors([])
        assert envelope.errors == ()
        assert envelope.status_code == 500
        assert envelope.message == "Unknown error"
        assert ErrorEnvelope.of_errors(None, 404).status_code == 404

    def test_errors_preserve_insertion_order(self, field_errors):
        envelope = ErrorEnvelope.of_errors(field_errors)
        assert [e.field_name for e in envelope.errors] == ["firstName", "lastName"]

    def test_set_errors_ignores_none_and_empty(self, field_errors):
        envelope = ErrorEnvelope.of_errors(field_errors)
        envelope.set_errors(None)
        envelope.set_errors([])
        assert envelope.errors == tuple(field_errors)

    def test_set_errors_replaces(self, field_errors):
        envelope = ErrorEnvelope("original", 400)
        envelope.set_errors(field_errors)
        assert envelope.errors == tuple(field_errors)
        assert envelope.status_code == 422

    def test_other_data(self):
        envelope = ErrorEnvelope("nope", 400)
        envelope.add_other_data({"requestId": "req-1"})
        envelope.add_other_data({"retryable": False})
        envelope.add_other_data(None)
        assert dict(envelope.other_data) == {"requestId": "req-1", "retryable": False}

        envelope.clear_other_data()
        assert dict(envelope.other_data) == {}

    def test_other_data_is_read_only(self):
        envelope = ErrorEnvelope()
        with pytest.raises(TypeError):
            envelope.other_data["key"] = "value"  # type: ignore[index]

    def test_combine(self, field_errors):
        first = ValidationError(field_errors)
        first.add_other_data({"requestId": "req-1", "attempt": 1})
        second = NotFoundError("Team 7 was not found.")
        second.add_other_data({"attempt": 2})

        combined = ErrorEnvelope.combine([first, second])

        assert combined.errors == (*field_errors, ErrorMessage(404, "Team 7 was not found."))
        assert dict(combined.other_data) == {"requestId": "req-1", "attempt": 2}
        assert combined.message == "Rollup of 2 exceptions."
        assert combined.status_code == 400

    def test_combine_nothing_materializes_default_error(self):
        combined = ErrorEnvelope.combine([])
        assert combined.errors == (ErrorMessage(),)
        assert combined.status_code == 500
        assert combined.message == "Unknown error"

    def test_from_exception_passes_envelopes_through(self):
        envelope = ConflictError("dup")
        assert ErrorEnvelope.from_exception(envelope) is envelope

    def test_from_exception_classifies(self):
        cause = ValueError("limit must be positive")
        envelope = ErrorEnvelope.from_exception(cause)
        assert envelope.errors == (ErrorMessage(400, "limit must be positive"),)
        assert envelope.__cause__ is cause

    def test_from_exception_overrides(self):
        envelope = ErrorEnvelope.from_exception(RuntimeError("boom"), 503, "try later")
        assert envelope.errors == (ErrorMessage(503, "try later"),)

    def test_from_exception_none(self):
        envelope = ErrorEnvelope.from_exception(None)
        assert envelope.errors == (ErrorMessage(),)

    def test_typed_from_exception_uses_fixed_code(self):
        envelope = NotFoundError.from_exception(KeyError("user"))
        assert isinstance(envelope, NotFoundError)
        assert envelope.status_code == 404

    def test_repr_mentions_status(self):
        assert "status_code=404" in repr(NotFoundError("gone"))


class TestTypedEnvelopes:
    @pytest.mark.parametrize(
        "cls, code",
        [
            (BadRequestError, 400),
            (NotAuthorizedError, 401),
            (ForbiddenError, 403),
            (NotFoundError, 404),
            (ConflictError, 409),
            (InternalServerError, 500),
        ],
    )
    def test_fixed_status(self, cls, code):
        envelope = cls("bad thing", field_name="email", item_id="42")
        assert isinstance(envelope, ErrorEnvelope)
        assert envelope.status_code == code
        assert envelope.errors == (ErrorMessage(code, "bad thing", "email", "42"),)

    def test_not_found_for_item(self):
        envelope = NotFoundError.for_item("User", 42)
        assert envelope.message == "User 42 was not found."
        assert envelope.errors[0].item_id == "42"

    def test_validation_from_field_maps(self):
        envelope = ValidationError(
            [
                {"fieldName": "email", "message": "must be a valid address"},
                {"fieldName": "age", "message": "must be at least 18", "ignored": True},
            ],
            item_id="u_1",
        )
        assert envelope.status_code == 422
        assert envelope.message == "Validation failed"
        assert envelope.errors == (
            ErrorMessage(422, "must be a valid address", "email", "u_1"),
            ErrorMessage(422, "must be at least 18", "age", "u_1"),
        )

    def test_validation_keeps_error_messages(self, field_errors):
        assert ValidationError(field_errors).errors == tuple(field_errors)

    def test_validation_without_errors(self):
        assert ValidationError().errors == (ErrorMessage(422, "Validation failed"),)


# ── copy and pickle ────────────────────────────────────────────────────────

def _pickled(envelope):
    return pickle.loads(pickle.dumps(envelope))


_CLONES = [copy.copy, copy.deepcopy, _pickled]


class TestEnvelopeCopying:
    @pytest.mark.parametrize("clone", _CLONES)
    def test_validation_envelope(self, clone):
        envelope = ValidationError([ErrorMessage(422, "bad", "email")], item_id="u_1")
        envelope.add_other_data({"requestId": "req-1"})

        cloned = clone(envelope)

        assert type(cloned) is ValidationError
        assert cloned.errors == envelope.errors
        assert cloned.message == "Validation failed"
        assert dict(cloned.other_data) == {"requestId": "req-1"}

    @pytest.mark.parametrize("clone", _CLONES)
    def test_rolled_up_envelope(self, clone):
        envelope = ErrorEnvelope.of_errors([ErrorMessage(404, "gone"), ErrorMessage(500)])

        cloned = clone(envelope)

        assert cloned.errors == envelope.errors
        assert cloned.explicit_status is None
        assert cloned.status_code == 500
        assert cloned.message == "gone"

    def test_explicit_status_and_typed_class_survive(self):
        cloned = _pickled(NotFoundError.for_item("User", 42))
        assert isinstance(cloned, NotFoundError)
        assert cloned.errors == (ErrorMessage(404, "User 42 was not found.", None, "42"),)

        pinned = _pickled(ErrorEnvelope.of_errors([ErrorMessage(400)], 503))
        assert pinned.explicit_status == 503


# ── capture ────────────────────────────────────────────────────────────────

class TestCapture:
    def test_disabled_by_default(self):
        capture(ErrorEnvelope("boom"))

    def test_backend_problems_never_raise(self, monkeypatch):
        monkeypatch.setenv("PLATFORM_ERROR_BACKEND", "otel")
        _reset_config()
        capture(ErrorEnvelope("boom"))


# ── config ─────────────────────────────────────────────────────────────────

class TestConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PLATFORM_ERROR_BACKEND", raising=False)
        monkeypatch.delenv("PLATFORM_CONFLICT_ERROR_TYPES", raising=False)
        config = EnvelopeConfig(_env_file=None)
        assert config.error_backend == "none"
        assert config.conflict_error_types == DEFAULT_CONFLICT_ERROR_TYPES

    def test_rejects_unknown_log_format(self, monkeypatch):
        monkeypatch.setenv("PLATFORM_LOG_FORMAT", "xml")
        with pytest.raises(PydanticValidationError):
            EnvelopeConfig(_env_file=None)

    def test_rejects_unknown_error_backend(self, monkeypatch):
        monkeypatch.setenv("PLATFORM_ERROR_BACKEND", "rollbar")
        with pytest.raises(PydanticValidationError):
            EnvelopeConfig(_env_file=None)
