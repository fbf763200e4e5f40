"""Adaptive request pacing for the Jira REST API.

Jira Cloud answers bursts with HTTP 429. The limiter keeps a minimum
interval between requests, doubles it every time the server throttles us and
shrinks it by 10% on every success, never going below the starting value.
Backoff waits grow exponentially with the number of consecutive 429s.
"""

import logging
import random
import time

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 10


class RateLimiter:
    """Minimum-interval throttle with exponential backoff on throttling.

    All timing goes through the injected ``clock``, ``sleep`` and ``jitter``
    callables, so tests can simulate a run without real delays.
    """

    def __init__(
        self,
        min_interval=1.0,
        max_interval=5.0,
        base_wait=30.0,
        max_wait=300.0,
        max_exponent=5,
        max_jitter=5.0,
        decay=0.9,
        clock=time.monotonic,
        sleep=time.sleep,
        jitter=random.uniform,
    ):
        self.floor_interval = min_interval
        self.min_interval = min_interval
        self.max_interval = max_interval
        self.base_wait = base_wait
        self.max_wait = max_wait
        self.max_exponent = max_exponent
        self.max_jitter = max_jitter
        self.decay = decay
        self.clock = clock
        self.sleep = sleep
        self.jitter = jitter

        self.consecutive_429 = 0
        self._last_request = None

    def throttle(self):
        """Block until the minimum interval since the previous request has passed."""
        if self._last_request is not None:
            elapsed = self.clock() - self._last_request
            if elapsed < self.min_interval:
                delay = self.min_interval - elapsed
                logger.debug(
                    "Throttling for %.3fs (interval=%.3fs)", delay, self.min_interval
                )
                self.sleep(delay)
        self._last_request = self.clock()

    def backoff_delay(self, retry_after=None):
        """Register a 429 response and return the seconds to wait before retrying.

        The server's ``Retry-After`` is honoured but never below ``base_wait``;
        the wait doubles per consecutive 429 (up to ``2 ** max_exponent``),
        gets up to ``max_jitter`` seconds of jitter and is capped at ``max_wait``.
        """
        self.consecutive_429 += 1

        if retry_after is None:
            retry_after = DEFAULT_RETRY_AFTER
        base = max(retry_after, self.base_wait)
        exponent = min(self.consecutive_429 - 1, self.max_exponent)
        wait = base * 2**exponent + self.jitter(0, self.max_jitter)

        return min(wait, self.max_wait)

    def widen(self):
        """Double the minimum interval after sitting out a 429."""
        self.min_interval = min(self.min_interval * 2, self.max_interval)
        logger.debug("Request interval widened to %.3fs", self.min_interval)

    def record_success(self):
        """Reset the 429 streak and relax the interval towards its floor."""
        self.consecutive_429 = 0
        self.min_interval = max(self.min_interval * self.decay, self.floor_interval)
