"""
envelope_sdk.tier0_core.conflicts
──────────────────────────────────
Known conflict categories and the default allow-list of persistence-layer
exception types that mean "the resource changed under you" (HTTP 409).

The allow-list is data, not logic: it is keyed by fully-qualified type name
(``module.QualName``) so the SDK never imports the persistence libraries, and
it can be replaced through PLATFORM_CONFLICT_ERROR_TYPES without touching the
classifier.
"""
from __future__ import annotations

from enum import Enum


class ConflictCategory(str, Enum):
    OPTIMISTIC_LOCK = "optimistic_lock"
    PESSIMISTIC_LOCK = "pessimistic_lock"
    DATA_INTEGRITY = "data_integrity"
    CONCURRENCY_STATE = "concurrency_state"


DEFAULT_CONFLICT_ERROR_TYPES: dict[str, ConflictCategory] = {
    # SQLAlchemy
    "sqlalchemy.orm.exc.StaleDataError": ConflictCategory.OPTIMISTIC_LOCK,
    "sqlalchemy.exc.IntegrityError": ConflictCategory.DATA_INTEGRITY,
    # Django
    "django.db.utils.IntegrityError": ConflictCategory.DATA_INTEGRITY,
    # psycopg 3
    "psycopg.errors.SerializationFailure": ConflictCategory.OPTIMISTIC_LOCK,
    "psycopg.errors.LockNotAvailable": ConflictCategory.PESSIMISTIC_LOCK,
    "psycopg.errors.IntegrityError": ConflictCategory.DATA_INTEGRITY,
    # psycopg2
    "psycopg2.errors.SerializationFailure": ConflictCategory.OPTIMISTIC_LOCK,
    "psycopg2.errors.LockNotAvailable": ConflictCategory.PESSIMISTIC_LOCK,
    "psycopg2.IntegrityError": ConflictCategory.DATA_INTEGRITY,
    # asyncio future or task used in the wrong state
    "asyncio.exceptions.InvalidStateError": ConflictCategory.CONCURRENCY_STATE,
}


def qualified_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


__all__ = ["ConflictCategory", "DEFAULT_CONFLICT_ERROR_TYPES", "qualified_name"]
