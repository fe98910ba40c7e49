"""Tests for the shared retry policy."""
import random

import pytest

from perizia_extractor.errors import CompletionTimeout, RateLimited
from perizia_extractor.retry import RetryPolicy


class Flaky:
    def __init__(self, failures, error=RateLimited):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error("flaky")
        return value


def test_retries_rate_limits_with_backoff(no_wait_policy):
    fn = Flaky(failures=2)
    assert no_wait_policy.call(fn, "ok") == "ok"
    assert fn.calls == 3
    assert no_wait_policy.sleeps == [2.0, 4.0]


def test_gives_up_after_max_retries(no_wait_policy):
    fn = Flaky(failures=10)
    with pytest.raises(RateLimited):
        no_wait_policy.call(fn, "ok")
    assert fn.calls == 4
    assert no_wait_policy.sleeps == [2.0, 4.0, 8.0]


def test_non_retryable_errors_propagate_immediately(no_wait_policy):
    fn = Flaky(failures=1, error=CompletionTimeout)
    with pytest.raises(CompletionTimeout):
        no_wait_policy.call(fn, "ok")
    assert fn.calls == 1
    assert no_wait_policy.sleeps == []


def test_custom_retryable_predicate():
    sleeps = []
    policy = RetryPolicy(max_retries=1, base_delay=0.5, jitter=0, sleep=sleeps.append,
                         is_retryable=lambda e: isinstance(e, CompletionTimeout))
    fn = Flaky(failures=1, error=CompletionTimeout)
    assert policy.call(fn, 42) == 42
    assert sleeps == [0.5]


def test_delays_are_capped_and_jittered():
    policy = RetryPolicy(base_delay=2.0, max_delay=32.0, jitter=0.2, rng=random.Random(7))
    assert policy.delay_for(1) == 2.0
    assert policy.delay_for(3) == 8.0
    assert policy.delay_for(10) == 32.0
    for n in range(1, 5):
        assert 0.8 * policy.delay_for(n) <= policy.jittered_delay(n) <= 1.2 * policy.delay_for(n)
