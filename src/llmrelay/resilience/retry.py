from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .backoff import BackoffScheduler
from .classifier import ErrorClassifier
from .policy import RetryPolicy
from llmrelay.core.ports import Logger

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryExecutor:
    """
    Pure behavioural wrapper: runs an operation closure under a RetryPolicy.
    Attempts are strictly sequential. Returns the result or re-raises the last error;
    turning an exhausted failure into a degraded response is the caller's job.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        classifier: Optional[ErrorClassifier] = None,
        scheduler: Optional[BackoffScheduler] = None,
        *,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        log: Optional[Logger] = None,
    ):
        self.policy = policy
        self.classifier = classifier or ErrorClassifier()
        self.scheduler = scheduler or BackoffScheduler(policy)
        self._sleep = sleep or asyncio.sleep
        self.log = log or logger

    async def execute(self, operation: Callable[[], Awaitable[T]], label: str = "operation") -> T:
        if not self.policy.enabled:
            return await operation()

        total = self.policy.max_retries + 1
        for attempt in range(total):
            try:
                return await operation()
            except Exception as e:
                if attempt == self.policy.max_retries or not self.classifier.is_retryable_extended(e):
                    raise
                delay = self.scheduler.delay_for(attempt)
                self.log.warning(
                    f"{label} failed (attempt {attempt + 1}/{total}): {e}. Retrying in {delay}ms..."
                )
                await self._sleep(delay / 1000)
        # Unreachable: the final attempt either returns or raises
        raise RuntimeError(f"{label}: retry loop exited without a result")
