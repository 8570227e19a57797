from typing import Optional


class EnhancementError(Exception):
    """Base class for errors raised by the enhancement subsystem."""


class ContentValidationError(EnhancementError):
    """Submitted content is empty or too long."""


class RateLimitExceeded(EnhancementError):
    """The user has no quota left in the current window."""

    def __init__(self, message: str, remaining: int, limit: int, resets_at):
        super().__init__(message)
        self.remaining = remaining
        self.limit = limit
        self.resets_at = resets_at


class QuotaStoreUnavailable(EnhancementError):
    """The rate limit store could not be read or written."""


class SessionStateError(EnhancementError):
    """A session update was attempted on a missing or already settled session."""


class CompletionError(EnhancementError):
    """Base class for failures of the external completion call."""


class ConfigurationError(CompletionError):
    """The completion service is not set up (e.g. missing API key). Not retryable."""


class TransportError(CompletionError):
    """The completion service could not be reached or did not answer in time."""


class ServiceError(CompletionError):
    """The completion service answered with an error status or an unusable response."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            base = f"{base} (status {self.status_code})"
        if self.body:
            base = f"{base}: {self.body}"
        return base
