"""Shared retry policy for outbound completion calls"""
import logging
import random
import time
from typing import Any, Callable, Optional

from tenacity import Retrying, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from .config import OCR_BASE_DELAY_SECONDS, OCR_MAX_RETRIES
from .errors import RateLimited

logger = logging.getLogger(__name__)


def is_rate_limited(error: BaseException) -> bool:
    return isinstance(error, RateLimited)


class _JitteredBackoff(wait_base):
    """base_delay * 2^(n-1), scaled by a random factor in [1 - jitter, 1 + jitter]"""

    def __init__(self, policy: "RetryPolicy"):
        self.policy = policy

    def __call__(self, retry_state) -> float:
        return self.policy.jittered_delay(retry_state.attempt_number)


def _log_retry(retry_state) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning("Retry %d in %.1fs after: %s", retry_state.attempt_number,
                   retry_state.next_action.sleep if retry_state.next_action else 0.0, error)


class RetryPolicy:
    """
    Bounded exponential backoff with jitter.

    With the defaults a call is attempted at most 4 times, sleeping roughly
    2s, 4s and 8s between attempts. Only errors accepted by ``is_retryable``
    are retried; anything else propagates immediately.
    """

    def __init__(self,
                 max_retries: int = OCR_MAX_RETRIES,
                 base_delay: float = OCR_BASE_DELAY_SECONDS,
                 is_retryable: Callable[[BaseException], bool] = is_rate_limited,
                 jitter: float = 0.2,
                 max_delay: float = 32.0,
                 sleep: Callable[[float], None] = time.sleep,
                 rng: Optional[random.Random] = None):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.is_retryable = is_retryable
        self.jitter = jitter
        self.max_delay = max_delay
        self.sleep = sleep
        self.rng = rng or random.Random()

    def delay_for(self, retry_number: int) -> float:
        """Delay before the given retry (1-based), without jitter"""
        return min(self.base_delay * (2 ** (retry_number - 1)), self.max_delay)

    def jittered_delay(self, retry_number: int) -> float:
        factor = self.rng.uniform(1 - self.jitter, 1 + self.jitter) if self.jitter else 1.0
        return self.delay_for(retry_number) * factor

    def call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Run fn, retrying per the policy; the last error is re-raised"""
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=_JitteredBackoff(self),
            retry=retry_if_exception(self.is_retryable),
            sleep=self.sleep,
            before_sleep=_log_retry,
            reraise=True,
        )
        return retrying(fn, *args, **kwargs)
