"""Bounded retry with a fixed delay between attempts."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Retrier:
    """Run an async operation up to ``max_attempts`` times.

    The delay between attempts is constant: the wrapped operations are short
    network calls that either recover quickly or not at all.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        delay: float = 1.0,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if delay < 0:
            raise ValueError(f"delay must not be negative, got {delay}")
        self.max_attempts = max_attempts
        self.delay = delay
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str = "operation",
    ) -> T:
        """Await ``operation()`` until it succeeds or attempts run out.

        Args:
            operation: Zero-argument callable returning an awaitable. Called
                afresh for every attempt.
            label: Name used in log messages.

        Returns:
            Whatever the operation returns, including None.

        Raises:
            Exception: The last failure once every attempt has failed.
        """
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as e:
                logger.warning(
                    "%s failed (attempt %d/%d): %s: %s",
                    label,
                    attempt,
                    self.max_attempts,
                    type(e).__name__,
                    e,
                )
                if attempt >= self.max_attempts:
                    raise
                await self._sleep(self.delay)
                attempt += 1
