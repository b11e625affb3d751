"""
envelope_sdk
────────────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from envelope_sdk.tier0_core.logging import get_logger, bind_context, clear_context
from envelope_sdk.tier0_core.config import get_config, EnvelopeConfig
from envelope_sdk.tier0_core.http import HTTP, reason_phrase
from envelope_sdk.tier0_core.error_message import (
    ErrorMessage,
    DEFAULT_CODE,
    DEFAULT_MESSAGE,
)
from envelope_sdk.tier0_core.rollup import rollup_status
from envelope_sdk.tier0_core.errors import (
    ErrorEnvelope,
    BadRequestError,
    NotAuthorizedError,
    ForbiddenError,
    NotFoundError,
    ConflictError,
    InternalServerError,
    ValidationError,
    IllegalStateError,
    configure_sentry,
)
from envelope_sdk.tier0_core.conflicts import ConflictCategory
from envelope_sdk.tier0_core.classify import (
    FailureKind,
    classify,
    failure_kind,
    conflict_category,
)

from envelope_sdk.tier1_runtime.codec import (
    EnvelopeResponse,
    encode,
    decode,
    decode_entity,
    from_response,
    to_response,
)
from envelope_sdk.tier1_runtime.validate import validation_error_from
from envelope_sdk.tier1_runtime.middleware import (
    ErrorEnvelopeASGIMiddleware,
    ErrorEnvelopeWSGIMiddleware,
)

from envelope_sdk.tier3_platform.api_client import ApiClient

__version__ = "0.1.0"
__all__ = [
    # logging
    "get_logger", "bind_context", "clear_context",
    # config
    "get_config", "EnvelopeConfig",
    # http
    "HTTP", "reason_phrase",
    # error message
    "ErrorMessage", "DEFAULT_CODE", "DEFAULT_MESSAGE",
    # rollup
    "rollup_status",
    # envelopes
    "ErrorEnvelope", "BadRequestError", "NotAuthorizedError", "ForbiddenError",
    "NotFoundError", "ConflictError", "InternalServerError", "ValidationError",
    "IllegalStateError", "configure_sentry",
    # classification
    "FailureKind", "ConflictCategory", "classify", "failure_kind", "conflict_category",
    # codec
    "EnvelopeResponse", "encode", "decode", "decode_entity", "from_response",
    "to_response",
    # validate
    "validation_error_from",
    # middleware
    "ErrorEnvelopeASGIMiddleware", "ErrorEnvelopeWSGIMiddleware",
    # api client
    "ApiClient",
]
