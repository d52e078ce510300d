"""
Bounded retry for controller calls made from process handlers.

The dispatcher never retries. A handler that talks to a flaky backend wraps
the call:

    server = retry_call(process.controller_get, "server", server_id,
                        policy=RetryPolicy(max_attempts=5, delay=1.0))

Only failures the policy classifies as transient are retried; anything else
is re-raised at once. After the last attempt RetryExhaustedError is raised
from the final error.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import functools as _functools
import logging as _logging
import time as _time
import typing as _typing

import stratum.errors as errors

_logger = _logging.getLogger(__name__)

T = _typing.TypeVar("T")


class Backoff(str, _enum.Enum):
    """How the delay grows between attempts."""

    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


def is_transient(exc: BaseException) -> bool:
    """Default classifier: only TransientBackendError is worth retrying."""
    return isinstance(exc, errors.TransientBackendError)


@_dataclasses.dataclass(frozen=True)
class RetryPolicy:
    """Attempt ceiling, delay schedule and transient-error classifier."""

    max_attempts: int = 3
    delay: float = 0.0
    backoff: Backoff | str = Backoff.FIXED
    backoff_coefficient: float = 2.0
    max_delay: float = 60.0
    is_transient: _typing.Callable[[BaseException], bool] = is_transient

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay < 0:
            raise ValueError(f"delay must be >= 0, got {self.delay}")
        object.__setattr__(self, "backoff", Backoff(self.backoff))

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (0-based)."""
        if self.backoff == Backoff.FIXED:
            delay = self.delay
        elif self.backoff == Backoff.LINEAR:
            delay = self.delay * (attempt + 1)
        else:
            delay = self.delay * (self.backoff_coefficient**attempt)
        return min(delay, self.max_delay)


DEFAULT_POLICY = RetryPolicy()


def retry_call(
    fn: _typing.Callable[..., T],
    *args: _typing.Any,
    policy: RetryPolicy = DEFAULT_POLICY,
    sleep: _typing.Callable[[float], None] = _time.sleep,
    **kwargs: _typing.Any,
) -> T:
    """
    Call fn, retrying transient failures up to policy.max_attempts times.

    Args:
        fn: The callable to run.
        *args: Positional arguments for fn.
        policy: Attempt ceiling, delays and classifier.
        sleep: Sleep function (injectable for tests).
        **kwargs: Keyword arguments for fn.

    Returns:
        Whatever fn returns on its first successful attempt.

    Raises:
        RetryExhaustedError: If every attempt failed with a transient error.
        Exception: Any non-transient error, unchanged, on the attempt it occurs.
    """
    name = getattr(fn, "__name__", repr(fn))
    for attempt in range(policy.max_attempts):
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            if not policy.is_transient(e):
                raise
            if attempt + 1 >= policy.max_attempts:
                raise errors.RetryExhaustedError(
                    f"{name} failed after {policy.max_attempts} attempts: {e}",
                    attempts=policy.max_attempts,
                    type_name=getattr(e, "type_name", None),
                    operation=getattr(e, "operation", None),
                ) from e
            delay = policy.delay_for(attempt)
            _logger.warning(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                name,
                attempt + 1,
                policy.max_attempts,
                delay,
                e,
            )
            if delay > 0:
                sleep(delay)
    # Unreachable: max_attempts >= 1 and the last attempt returns or raises.
    raise AssertionError("retry loop exited without a result")


def with_retry(
    policy: RetryPolicy = DEFAULT_POLICY,
    sleep: _typing.Callable[[float], None] = _time.sleep,
) -> _typing.Callable[[_typing.Callable[..., T]], _typing.Callable[..., T]]:
    """Decorator form of retry_call()."""

    def decorator(fn: _typing.Callable[..., T]) -> _typing.Callable[..., T]:
        @_functools.wraps(fn)
        def wrapper(*args: _typing.Any, **kwargs: _typing.Any) -> T:
            return retry_call(fn, *args, policy=policy, sleep=sleep, **kwargs)

        return wrapper

    return decorator
