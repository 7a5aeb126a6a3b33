from __future__ import annotations
from typing import Optional


class ProviderError(Exception):
    """
    Base class for provider-level failures.
    Carries the HTTP status (or numeric SDK code) when the transport supplied one.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class ProviderPermanentError(ProviderError):
    """
    Non-retryable: caller/config issue (4xx invalid request, auth, unknown model,
    unsupported feature, etc.). The fix is change input/config, not retry.
    """


class ProviderTransientError(ProviderError):
    """
    Retryable: rate limits, timeouts, network hiccups, 5xx, etc.
    Retrying with backoff is appropriate.
    """


class ConfigurationError(ValueError):
    """Missing credential/project fields or an invalid config file. Never retried."""


class SerializationError(ValueError):
    """A message or tool call could not be mapped to the canonical shape."""
