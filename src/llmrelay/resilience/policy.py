from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from llmrelay.core.errors import ConfigurationError


@dataclass(frozen=True)
class RetryPolicy:
    """
    max_retries: extra attempts after the first (total attempts = max_retries + 1).
    initial_delay_ms / max_delay_ms: backoff start and hard ceiling.
    backoff_multiplier: growth factor per attempt.
    enabled: when False, failures propagate raw with no retry and no degraded response.
    """
    max_retries: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 30000
    backoff_multiplier: float = 2.0
    enabled: bool = True

    def __post_init__(self) -> None:
        errors = []
        if not isinstance(self.max_retries, int) or self.max_retries < 0:
            errors.append("'max_retries' must be an integer >= 0")
        if not isinstance(self.initial_delay_ms, int) or self.initial_delay_ms <= 0:
            errors.append("'initial_delay_ms' must be an integer > 0")
        if not isinstance(self.max_delay_ms, int) or self.max_delay_ms < self.initial_delay_ms:
            errors.append("'max_delay_ms' must be an integer >= initial_delay_ms")
        if self.backoff_multiplier <= 1:
            errors.append("'backoff_multiplier' must be > 1")
        if not isinstance(self.enabled, bool):
            errors.append("'enabled' must be a boolean")
        if errors:
            raise ConfigurationError("Invalid retry policy:\n  " + "\n  ".join(errors))

    @classmethod
    def from_config(cls, section: Optional[Dict[str, Any]]) -> "RetryPolicy":
        """Build from the YAML 'retry' section; absent keys keep the defaults."""
        section = section or {}
        unknown = sorted(set(section) - {
            "max_retries", "initial_delay_ms", "max_delay_ms", "backoff_multiplier", "enabled",
        })
        if unknown:
            raise ConfigurationError(f"Unknown retry keys: {unknown}")
        kwargs = dict(section)
        if "backoff_multiplier" in kwargs:
            try:
                kwargs["backoff_multiplier"] = float(kwargs["backoff_multiplier"])
            except (TypeError, ValueError):
                raise ConfigurationError("'backoff_multiplier' must be a number")
        return cls(**kwargs)
