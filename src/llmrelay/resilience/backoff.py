from __future__ import annotations
import math
import random
from typing import Any, Optional

from .policy import RetryPolicy


class BackoffScheduler:
    """
    Exponential backoff with jitter, in milliseconds.
    The jitter term is base * 0.2 * (u - 0.5) with u in [0, 1): a +/-10% swing.
    """

    def __init__(self, policy: RetryPolicy, rng: Optional[Any] = None):
        self.policy = policy
        self.rng = rng if rng is not None else random.Random()

    def delay_for(self, attempt: int) -> int:
        p = self.policy
        base = min(p.initial_delay_ms * (p.backoff_multiplier ** attempt), p.max_delay_ms)
        jitter = base * 0.2 * (self.rng.random() - 0.5)
        value = math.floor(base + jitter)
        return max(0, min(value, p.max_delay_ms))
