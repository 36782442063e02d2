"""Shared enums for the Shortly application.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "ResolutionOutcome"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    GONE = "gone"
    ERROR = "error"


class ResolutionOutcome(StrEnum):
    """Result of a single redirect resolution strategy."""

    MATCH = "match"
    NO_MATCH = "no_match"
    DENIED = "denied"
