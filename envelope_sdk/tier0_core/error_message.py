"""
envelope_sdk.tier0_core.error_message
──────────────────────────────────────
A single normalized error fact: HTTP status code, human message, and the
optional field name and item identifier the error concerns.

ErrorMessage is immutable and freely shareable. Its map form uses the wire
keys (``code``, ``message``, ``fieldName``, ``itemId``) and always carries
all four keys, with None for absent optional fields.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from envelope_sdk.tier0_core.logging import get_logger

log = get_logger(__name__)

DEFAULT_CODE = 500
DEFAULT_MESSAGE = "Unknown error"

KEY_CODE = "code"
KEY_MESSAGE = "message"
KEY_FIELD_NAME = "fieldName"
KEY_ITEM_ID = "itemId"


@dataclass(frozen=True)
class ErrorMessage:
    """
    One error in an envelope.

    - code: HTTP status for this error; zero, negative or None becomes 500
    - message: human-readable description; None or blank becomes "Unknown error"
    - field_name: offending input field/property, if any
    - item_id: identifier of the entity the error concerns, if any
    """

    code: int = DEFAULT_CODE
    message: str | None = None
    field_name: str | None = None
    item_id: str | None = None

    def __post_init__(self) -> None:
        code = int(self.code) if self.code is not None else DEFAULT_CODE
        object.__setattr__(self, "code", code if code > 0 else DEFAULT_CODE)
        if _is_blank(self.message):
            object.__setattr__(self, "message", DEFAULT_MESSAGE)

    def to_map(self) -> dict[str, Any]:
        return {
            KEY_CODE: self.code,
            KEY_MESSAGE: self.message,
            KEY_FIELD_NAME: self.field_name,
            KEY_ITEM_ID: self.item_id,
        }

    @classmethod
    def from_map(cls, props: Mapping[str, Any]) -> ErrorMessage:
        """
        Build an ErrorMessage from a wire-shaped mapping.

        Missing or blank messages get the default message. A missing code, or
        one that is not an integer, gets the default code; the bad value is
        logged rather than raised.
        """
        code = DEFAULT_CODE
        if KEY_CODE in props:
            raw_code = props[KEY_CODE]
            if isinstance(raw_code, int) and not isinstance(raw_code, bool):
                code = raw_code
            else:
                log.error("error_message.invalid_code", code=repr(raw_code), props=dict(props))

        return cls(
            code=code,
            message=_optional_str(props.get(KEY_MESSAGE)),
            field_name=_optional_str(props.get(KEY_FIELD_NAME)),
            item_id=_optional_str(props.get(KEY_ITEM_ID)),
        )


def _is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _optional_str(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return str(value)


__all__ = [
    "ErrorMessage",
    "DEFAULT_CODE",
    "DEFAULT_MESSAGE",
    "KEY_CODE",
    "KEY_MESSAGE",
    "KEY_FIELD_NAME",
    "KEY_ITEM_ID",
]
