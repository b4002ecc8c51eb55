"""Unlock throttling: exponential backoff, then a hard stop."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from hostvault.config import Config
from hostvault.errors import TooManyAttempts

logger = logging.getLogger("hostvault.rate_limit")


class RateLimiter:
    """Counts password attempts against one vault.

    :meth:`check` is called once per attempt, right before the key is derived,
    so a missing or malformed file never uses up an attempt. Attempt *n* waits
    until ``delay_base ** (n - 1)`` seconds have passed since attempt *n - 1*.
    """

    def __init__(
        self,
        max_attempts: int = Config.MAX_UNLOCK_ATTEMPTS,
        delay_base: float = Config.UNLOCK_DELAY_BASE,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay_base = delay_base
        self._clock = clock
        self._sleep = sleep
        self.attempts = 0
        self._last: Optional[float] = None

    @property
    def remaining(self) -> int:
        return max(0, self.max_attempts - self.attempts)

    def delay(self) -> float:
        """Seconds the next attempt still has to wait."""
        if self.attempts == 0 or self._last is None:
            return 0.0
        required = self.delay_base**self.attempts
        return max(0.0, required - (self._clock() - self._last))

    def check(self) -> None:
        if not self.remaining:
            logger.error("Maximum of %d unlock attempts exceeded", self.max_attempts)
            raise TooManyAttempts(
                f"Exceeded the limit of {self.max_attempts} unlock attempts. "
                "Wait before trying again."
            )

        wait = self.delay()
        if wait > 0:
            logger.warning("Rate limiting: waiting %.1fs", wait)
            self._sleep(wait)

        self.attempts += 1
        self._last = self._clock()

    def reset(self) -> None:
        self.attempts = 0
        self._last = None
