"""Application error taxonomy.

Only ConfigurationError and QuotaExceeded are ever visible to callers of the
generation service. ProviderError subclasses describe a single failed attempt
and are absorbed by the dispatcher.
"""

from __future__ import annotations

from app.gateway.types import OutcomeKind, ProviderCandidate


class AppError(Exception):
    """Base class for all application errors."""


class ConfigurationError(AppError):
    """No usable provider candidate, or otherwise unusable configuration. Fatal at startup."""


class QuotaExceeded(AppError):
    """Daily usage ceiling reached for a user's plan."""

    def __init__(self, plan: str, feature: str, used: int, limit: int, remaining: int = 0):
        super().__init__(
            f"Plan '{plan}' allows {limit} '{feature}' generations per day. "
            f"Used today: {used}. Upgrade your plan or try again tomorrow."
        )
        self.plan = plan
        self.feature = feature
        self.used = used
        self.limit = limit
        self.remaining = remaining


class ProviderError(AppError):
    """A single provider attempt failed. Never propagated to callers."""

    kind: OutcomeKind = OutcomeKind.HTTP_ERROR

    def __init__(self, message: str, candidate: ProviderCandidate | None = None):
        super().__init__(message)
        self.candidate = candidate


class ProviderHTTPError(ProviderError):
    """Non-2xx status, or a transport failure (status_code 0)."""

    kind = OutcomeKind.HTTP_ERROR

    def __init__(self, message: str, status_code: int = 0, candidate: ProviderCandidate | None = None):
        super().__init__(message, candidate)
        self.status_code = status_code


class ProviderTimeout(ProviderError):
    """No response within the candidate's timeout."""

    kind = OutcomeKind.TIMEOUT


class ProviderParseError(ProviderError):
    """2xx response without usable content."""

    kind = OutcomeKind.PARSE_ERROR
