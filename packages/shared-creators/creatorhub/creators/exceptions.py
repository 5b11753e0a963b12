"""Custom exceptions for creator sync and enrichment."""

from __future__ import annotations


class CreatorSyncError(Exception):
    """Base exception for creator sync errors."""

    pass


class AuthenticationError(CreatorSyncError):
    """Raised when the shop API credentials are missing or rejected."""

    pass


class ExternalApiError(CreatorSyncError):
    """Raised when the shop API returns a non-retryable error envelope."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class TransientExternalError(ExternalApiError):
    """Raised on network failures, 5xx responses and rate limiting.

    Recorded per item; the next scheduled run retries it.
    """

    pass


class RateLimitedError(TransientExternalError):
    """Raised when the shop API answers 429 Too Many Requests."""

    pass


class QuotaExceededError(CreatorSyncError):
    """Raised when the daily request quota is used up.

    Callers must stop issuing external calls for the remainder of the run.
    """

    pass


class ValidationError(CreatorSyncError):
    """Raised when a store write violates a constraint."""

    pass
