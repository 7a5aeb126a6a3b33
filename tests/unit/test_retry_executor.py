# tests/unit/test_retry_executor.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from llmrelay.core.errors import ProviderTransientError, ProviderPermanentError
from llmrelay.resilience.backoff import BackoffScheduler
from llmrelay.resilience.classifier import ErrorClassifier
from llmrelay.resilience.policy import RetryPolicy
from llmrelay.resilience.retry import RetryExecutor


# -------- helpers --------

class RecordingLog:
    def __init__(self):
        self.records = []

    def debug(self, msg, *a, **k): self.records.append(("debug", msg))
    def info(self, msg, *a, **k): self.records.append(("info", msg))
    def warning(self, msg, *a, **k): self.records.append(("warning", msg))
    def error(self, msg, *a, **k): self.records.append(("error", msg))


class Sleeps:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class FlakyOp:
    def __init__(self, fail_times, error=None):
        self.calls = 0
        self.fail_times = fail_times
        self.error = error or ProviderTransientError("rate limit", 429)

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.fail_times:
            raise self.error
        return "ok"


class Midpoint:
    def random(self):
        return 0.5


def _executor(policy, sleeps=None, log=None, classifier=None):
    return RetryExecutor(
        policy,
        classifier,
        BackoffScheduler(policy, rng=Midpoint()),
        sleep=sleeps or Sleeps(),
        log=log or RecordingLog(),
    )


# -------- tests --------

async def test_succeeds_first_try_without_sleeping():
    sleeps = Sleeps()
    op = FlakyOp(0)
    assert await _executor(RetryPolicy(), sleeps).execute(op, "t") == "ok"
    assert op.calls == 1
    assert sleeps.calls == []


async def test_retries_then_succeeds():
    sleeps, log = Sleeps(), RecordingLog()
    op = FlakyOp(2)
    result = await _executor(RetryPolicy(max_retries=3), sleeps, log).execute(op, "openai send")
    assert result == "ok"
    assert op.calls == 3
    # backoff delays in seconds, midpoint jitter
    assert sleeps.calls == [1.0, 2.0]
    warnings = [m for lvl, m in log.records if lvl == "warning"]
    assert len(warnings) == 2
    assert "openai send failed (attempt 1/4)" in warnings[0]
    assert "Retrying in 1000ms" in warnings[0]


async def test_exhaustion_reraises_last_error_after_max_retries_plus_one():
    op = FlakyOp(100)
    with pytest.raises(ProviderTransientError):
        await _executor(RetryPolicy(max_retries=3)).execute(op, "t")
    assert op.calls == 4


async def test_non_retryable_stops_immediately():
    sleeps = Sleeps()
    op = FlakyOp(5, ProviderPermanentError("authentication failed", 401))
    with pytest.raises(ProviderPermanentError):
        await _executor(RetryPolicy(max_retries=3), sleeps).execute(op, "t")
    assert op.calls == 1
    assert sleeps.calls == []


async def test_disabled_policy_runs_once_and_propagates_raw():
    op = FlakyOp(5, ValueError("rate limit but raw"))
    with pytest.raises(ValueError, match="rate limit but raw"):
        await _executor(RetryPolicy(enabled=False)).execute(op, "t")
    assert op.calls == 1


async def test_zero_retries_means_single_attempt():
    op = FlakyOp(1)
    with pytest.raises(ProviderTransientError):
        await _executor(RetryPolicy(max_retries=0)).execute(op, "t")
    assert op.calls == 1


async def test_extended_patterns_drive_retries():
    classifier = ErrorClassifier(patterns=["resource exhausted"])
    op = FlakyOp(1, Exception("RESOURCE EXHAUSTED for model"))
    assert await _executor(RetryPolicy(), classifier=classifier).execute(op, "t") == "ok"
    assert op.calls == 2

