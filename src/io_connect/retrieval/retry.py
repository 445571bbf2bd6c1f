"""Bounded retry with tiered backoff for transport calls."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from io_connect.config.loader import RetryPolicy
from io_connect.errors import (
    ApplicationError,
    MalformedResponseError,
    RetryExhaustedError,
    TransportError,
)
from io_connect.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (
    TransportError,
    ApplicationError,
    MalformedResponseError,
)


@dataclass
class RetryState:
    """Attempt bookkeeping for one retried operation."""

    max_attempts: int
    delays_ms: Tuple[int, int]
    long_delay_threshold_attempts: int
    attempt: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def next_delay_ms(self) -> int:
        short, long = self.delays_ms
        return short if self.attempt <= self.long_delay_threshold_attempts else long


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Sleep = asyncio.sleep,
    description: str = "request",
) -> T:
    """
    Run ``operation`` until it succeeds or the policy's attempt budget is spent.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        policy: Attempt limit and delay tiers
        sleep: Awaitable sleep (seconds); injectable for tests
        description: Used in log lines and the exhaustion message

    Returns:
        The operation's result

    Raises:
        RetryExhaustedError: After ``policy.max_attempts`` retryable failures
        Exception: Any non-retryable error, on first occurrence
    """
    state = RetryState(
        max_attempts=policy.max_attempts,
        delays_ms=(policy.short_delay_ms, policy.long_delay_ms),
        long_delay_threshold_attempts=policy.long_delay_threshold_attempts,
    )
    while True:
        try:
            return await operation()
        except RETRYABLE_ERRORS as e:
            state.attempt += 1
            logger.warning(
                f"[{type(e).__name__}] Retry {state.attempt}/{state.max_attempts} "
                f"for {description}: {e}"
            )
            if state.exhausted:
                raise RetryExhaustedError(state.attempt, e, description) from e
            await sleep(state.next_delay_ms() / 1000.0)
