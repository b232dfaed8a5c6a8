"""
Beacon exception hierarchy.

Inference failures are split so the retry policy can tell transient provider
trouble (rate limits, 5xx) from errors that should abort a cycle at once.
"""
from typing import Optional


class BeaconError(Exception):
    """Base class for all Beacon errors."""


# =============================================================================
# Inference
# =============================================================================

class InferenceError(BeaconError):
    """Failure while talking to the inference provider."""

    retryable: bool = False


class TransportError(InferenceError):
    """
    HTTP or connection failure.

    Args:
        message: Human readable description
        status_code: HTTP status, None for connection-level failures
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code is not None and 500 <= self.status_code < 600


class RateLimited(TransportError):
    """Provider returned HTTP 429."""

    def __init__(self, message: str = "Rate limited by provider", retry_after: Optional[float] = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return True


class InsufficientQuota(TransportError):
    """Provider account has no credit left (HTTP 402)."""

    def __init__(self, message: str = "Insufficient credits on provider account"):
        super().__init__(message, status_code=402)

    @property
    def retryable(self) -> bool:
        return False


class SchemaViolation(InferenceError):
    """Model output could not be decoded into the expected shape."""

    def __init__(self, message: str, raw_content: Optional[str] = None):
        super().__init__(message)
        self.raw_content = raw_content
        # Set by the gateway: the call succeeded, so its tokens were spent
        self.model: Optional[str] = None
        self.total_tokens: Optional[int] = None


# =============================================================================
# Pipeline / harness
# =============================================================================

class QuotaExceeded(BeaconError):
    """Daily token budget for a domain is used up."""

    def __init__(self, domain: str, used: int, limit: int):
        super().__init__(f"Daily token limit reached for {domain}: {used}/{limit}")
        self.domain = domain
        self.used = used
        self.limit = limit


class PersistenceError(BeaconError):
    """Store read or write failed."""


class BatchTooLarge(BeaconError):
    """A classification batch exceeded the per-request item cap."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Batch of {size} items exceeds the limit of {limit}")
        self.size = size
        self.limit = limit


def is_retryable(error: BaseException) -> bool:
    """True for rate-limited and 5xx transport failures."""
    return isinstance(error, InferenceError) and bool(error.retryable)
