"""
Retry with exponential backoff for gh CLI calls.

Errors whose kind says retrying cannot help (missing CLI, missing auth,
rate limit, unknown repository) are raised straight away. Everything
else is retried up to the policy's attempt limit.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from loguru import logger

from .errors import ErrorKind, NetworkError

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_WAIT = 1.0  # seconds
DEFAULT_MAX_WAIT = 10.0  # seconds

TERMINAL_KINDS = frozenset({
    ErrorKind.AUTH_REQUIRED,
    ErrorKind.RATE_LIMITED,
    ErrorKind.REPOSITORY_NOT_FOUND,
    ErrorKind.CLI_MISSING,
})


@dataclass(frozen=True)
class RetryPolicy:
    """Retry limits. Non-positive values fall back to the defaults."""
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_wait: float = DEFAULT_INITIAL_WAIT
    max_wait: float = DEFAULT_MAX_WAIT

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            object.__setattr__(self, "max_attempts", DEFAULT_MAX_ATTEMPTS)
        if self.initial_wait <= 0:
            object.__setattr__(self, "initial_wait", DEFAULT_INITIAL_WAIT)
        if self.max_wait <= 0:
            object.__setattr__(self, "max_wait", DEFAULT_MAX_WAIT)


DEFAULT_RETRY_POLICY = RetryPolicy()


def is_retriable_error(err: BaseException | None) -> bool:
    """Whether another attempt might succeed after this error."""
    if err is None:
        return False
    kind = getattr(err, "kind", None)
    return kind not in TERMINAL_KINDS


class Retryer:
    """Runs a unit of work with bounded retries and exponential backoff."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.policy = policy or DEFAULT_RETRY_POLICY
        self._sleep = sleep

    def calculate_backoff(self, attempt: int) -> float:
        """initial_wait * 2^(attempt-1) seconds, capped at max_wait."""
        wait = self.policy.initial_wait * (2 ** (attempt - 1))
        return min(wait, self.policy.max_wait)

    def do(self, fn: Callable[[], object]) -> None:
        """
        Call fn until it succeeds.

        Raises:
            The original error if it is not retriable.
            NetworkError wrapping the last error once attempts run out.
        """
        self.do_with_result(fn)

    def do_with_result(self, fn: Callable[[], T]) -> T:
        """Like do(), but returns fn's result. Failed attempts yield nothing."""
        last_error: Exception | None = None
        attempts = 0

        for attempt in range(1, self.policy.max_attempts + 1):
            attempts = attempt
            try:
                return fn()
            except Exception as e:
                if not is_retriable_error(e):
                    raise
                last_error = e

            if attempt < self.policy.max_attempts:
                wait = self.calculate_backoff(attempt)
                logger.debug(
                    f"Attempt {attempt}/{self.policy.max_attempts} failed: {last_error}; "
                    f"retrying in {wait:.1f}s"
                )
                self._sleep(wait)

        cause: BaseException | None = last_error
        if isinstance(last_error, NetworkError) and last_error.cause is not None:
            cause = last_error.cause
        raise NetworkError(cause, retries=attempts) from last_error
