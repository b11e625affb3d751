"""
envelope_sdk.tier1_runtime.validate
──────────────────────────────────────
Translate Pydantic v2 validation failures into a 422 ValidationError envelope
so API responses are always consistent. No validation happens here; the
failures are only carried as data.
"""
from __future__ import annotations

from collections.abc import Mapping

from pydantic import ValidationError as PydanticValidationError

from envelope_sdk.tier0_core.error_message import ErrorMessage
from envelope_sdk.tier0_core.errors import ValidationError


def validation_error_from(
    exc: PydanticValidationError,
    item_id: str | None = None,
    field_names: Mapping[str, str] | None = None,
) -> ValidationError:
    """
    Build a ValidationError with one ErrorMessage per Pydantic error.

    The field name is the dotted ``loc`` path unless field_names maps that
    path to a display name.

    Usage:
        try:
            CreateUser.model_validate(payload)
        except pydantic.ValidationError as exc:
            raise validation_error_from(exc, item_id=user_id,
                                        field_names={"email": "Email Address"}) from exc
    """
    field_names = field_names or {}
    errors = []
    for err in exc.errors():
        path = ".".join(str(loc) for loc in err["loc"])
        errors.append(
            ErrorMessage(
                ValidationError.CODE,
                err["msg"],
                field_names.get(path, path) or None,
                item_id,
            )
        )
    return ValidationError(errors, item_id=item_id)


__all__ = ["validation_error_from"]
