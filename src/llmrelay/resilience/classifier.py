from __future__ import annotations
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})

RETRYABLE_MESSAGE_PATTERNS = (
    "rate limit",
    "quota exceeded",
    "too many requests",
    "429",
    "server error",
    "service unavailable",
    "timeout",
)


def error_status(error: Any) -> Optional[int]:
    """
    First integer found among status / status_code / code.
    String codes (e.g. 'RESOURCE_EXHAUSTED', 'ECONNRESET') are ignored.
    """
    for attr in ("status", "status_code", "code"):
        if isinstance(error, Mapping):
            value = error.get(attr)
        else:
            value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def error_message(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(error)
    if isinstance(error, Mapping):
        msg = error.get("message")
    else:
        msg = getattr(error, "message", None)
    return "" if msg is None else str(msg)


class ErrorClassifier:
    """
    Decides whether a failure is transient. Never raises.
    Status code wins when present; otherwise the lower-cased message is matched.
    """

    def __init__(self, patterns: Optional[Iterable[str]] = None):
        self._patterns: List[str] = []
        if patterns:
            self.add_patterns(patterns)

    @property
    def patterns(self) -> List[str]:
        return list(self._patterns)

    def add_patterns(self, patterns: Iterable[str]) -> None:
        """Append provider-specific substrings consulted by is_retryable_extended."""
        self._patterns.extend(str(p).lower() for p in patterns)

    def is_retryable(self, error: Any) -> bool:
        status = error_status(error)
        if status is not None:
            return status in RETRYABLE_STATUSES
        lower = error_message(error).lower()
        return any(p in lower for p in RETRYABLE_MESSAGE_PATTERNS)

    def is_retryable_extended(self, error: Any) -> bool:
        if self.is_retryable(error):
            return True
        lower = error_message(error).lower()
        return any(p in lower for p in self._patterns)
