"""Bounded timeout and retry for store calls.

Store calls are the only suspension points in the core. Each one gets a
per-call timeout; timeouts and transient failures are retried with a fixed
backoff schedule before being surfaced as TransientStoreError. Every other
error (conflict, not-found, auth, ...) propagates on the first attempt.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

from ctrlw.config import DEFAULT_RETRY_DELAYS, StoreConfig
from ctrlw.errors import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

StoreCall = Callable[[Callable[[], Awaitable[T]]], Awaitable[T]]

DEFAULT_OP_TIMEOUT = 5.0  # seconds


async def call_store(
    op: Callable[[], Awaitable[T]],
    timeout: float = DEFAULT_OP_TIMEOUT,
    retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
) -> T:
    """Run a store operation with a timeout and bounded transient retry.

    Args:
        op: Zero-argument callable producing a fresh awaitable per attempt.
        timeout: Per-attempt timeout in seconds.
        retry_delays: Delay before each retry; len(retry_delays) + 1 attempts.

    Returns:
        The operation's result.

    Raises:
        TransientStoreError: If every attempt timed out or failed transiently.
    """
    attempts = len(retry_delays) + 1
    last_error: Exception | None = None

    for attempt in range(attempts):
        try:
            return await asyncio.wait_for(op(), timeout)
        except asyncio.TimeoutError as e:
            last_error = e
            logger.warning(f"Store call timed out after {timeout}s (attempt {attempt + 1})")
        except TransientStoreError as e:
            last_error = e
            logger.warning(f"Store call failed (attempt {attempt + 1}): {e}")

        if attempt < attempts - 1:
            await asyncio.sleep(retry_delays[attempt])

    logger.error(f"Store call failed after {attempts} attempts")
    raise TransientStoreError(f"Store unavailable after {attempts} attempts") from last_error


def store_caller(config: StoreConfig) -> StoreCall:
    """Bind call_store to a configured timeout and retry schedule."""

    async def call(op):
        return await call_store(
            op, timeout=config.op_timeout, retry_delays=config.retry_delays
        )

    return call
