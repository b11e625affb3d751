"""
envelope_sdk test configuration.

All tests run without external services: error capture is disabled and logs
go to stdout at WARNING so decode degradations stay visible.
Override by setting environment variables before running pytest.
"""
from __future__ import annotations

import os

import pytest

# ── Defaults ───────────────────────────────────────────────────────────────
# These must be set before any envelope_sdk modules are imported.

os.environ.setdefault("PLATFORM_ERROR_BACKEND", "none")
os.environ.setdefault("PLATFORM_LOG_LEVEL", "WARNING")
os.environ.setdefault("PLATFORM_LOG_FORMAT", "console")


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def reset_config():
    """
    Clear the cached config after each test so env changes made with
    monkeypatch never bleed into the next test.
    """
    from envelope_sdk.tier0_core.config import _reset_config

    yield
    _reset_config()


@pytest.fixture
def field_errors():
    """Two 422 field errors for the same item, as a validator would report them."""
    from envelope_sdk.tier0_core.error_message import ErrorMessage

    return [
        ErrorMessage(422, "must not be blank", "firstName", "42"),
        ErrorMessage(422, "must not be blank", "lastName", "42"),
    ]
