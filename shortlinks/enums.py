"""Shared enums for the short-link engine.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = [
    "HealthStatus",
    "RequestStatus",
    "CacheStatus",
    "CacheBackend",
    "ErrorKind",
    "LinkEventType",
    "TrackingFailurePolicy",
    "TrackOutcome",
]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    ERROR = "error"
    NOT_FOUND = "not_found"


class CacheStatus(StrEnum):
    """Cache status values for metrics."""

    HIT = "true"
    MISS = "false"


class CacheBackend(StrEnum):
    """Available cache adapters."""

    REDIS = "redis"
    MEMORY = "memory"


class ErrorKind(StrEnum):
    """Failure kinds raised by the engine and mapped at the HTTP boundary."""

    INVALID_INPUT = "invalid_input"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    UPGRADE_REQUIRED = "upgrade_required"
    CONFLICT = "conflict"
    ALLOCATION_EXHAUSTED = "allocation_exhausted"
    PERSISTENCE = "persistence"


class LinkEventType(StrEnum):
    """Notifications emitted after a committed write."""

    LINK_CREATED = "link_created"
    CLICK_RECORDED = "click_recorded"
    LINK_DELETED = "link_deleted"
    SUBSCRIPTION_CHANGED = "subscription_changed"


class TrackingFailurePolicy(StrEnum):
    """What a resolve does when the click cannot be persisted."""

    FAIL = "fail"
    BEST_EFFORT = "best_effort"


class TrackOutcome(StrEnum):
    RECORDED = "recorded"
    NOT_LIVE = "not_live"
    SKIPPED = "skipped"
