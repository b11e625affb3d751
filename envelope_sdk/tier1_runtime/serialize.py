"""
envelope_sdk.tier1_runtime.serialize
───────────────────────────────────────
JSON encoding of wire entities and decoding of inbound bodies into generic
mappings. The codec is the only caller; nothing here knows about envelopes
beyond how to render an ErrorMessage.
"""
from __future__ import annotations

import json
from typing import Any

from envelope_sdk.tier0_core.error_message import ErrorMessage


def _default(obj: Any) -> Any:
    if isinstance(obj, ErrorMessage):
        return obj.to_map()
    return str(obj)


def serialize(obj: Any) -> bytes:
    """
    Serialize a mapping (or any JSON-compatible value) to UTF-8 JSON bytes.
    Values JSON cannot represent are rendered with str().

    Usage:
        data = serialize({"errors": [ErrorMessage(404, "gone").to_map()]})
    """
    return json.dumps(obj, default=_default).encode()


def deserialize_map(data: bytes | str) -> dict[str, Any]:
    """
    Parse a JSON document that must be an object.
    Raises ValueError for malformed JSON or a non-object document.
    """
    if isinstance(data, bytes):
        data = data.decode()
    parsed = json.loads(data)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


__all__ = ["serialize", "deserialize_map"]
