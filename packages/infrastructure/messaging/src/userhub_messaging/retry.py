"""BackoffPolicy: capped exponential backoff with jitter, keyed by attempt count."""

from __future__ import annotations

import random


class BackoffPolicy:
    """Delay schedule for retrying a message that failed transiently.

    There is no attempt limit: transient failures are retried until they
    succeed or the consumer stops. Errors the transport flags as fatal start
    from a longer base delay.
    """

    def __init__(
        self,
        *,
        base_delay: float = 2.0,
        fatal_base_delay: float = 15.0,
        max_delay: float = 60.0,
        jitter: bool = True,
    ) -> None:
        """Configure the schedule.

        Args:
            base_delay: Delay in seconds before the first retry.
            fatal_base_delay: First-retry delay after a fatal transport error.
            max_delay: Cap on any delay in seconds, jitter included.
            jitter: If True, multiply delays by a random factor in [0.5, 1.5].
        """
        if base_delay < 0 or fatal_base_delay < 0 or max_delay < 0:
            raise ValueError("delays must be >= 0")
        if base_delay > max_delay or fatal_base_delay > max_delay:
            raise ValueError("base delays must be <= max_delay")
        self.base_delay = base_delay
        self.fatal_base_delay = fatal_base_delay
        self.max_delay = max_delay
        self.jitter = jitter

    def delay_for_attempt(self, attempt: int, *, fatal: bool = False) -> float:
        """Return delay in seconds for the given 1-based attempt.

        base * 2^(attempt-1), capped by max_delay. Attempt < 1 means no delay.
        """
        if attempt < 1:
            return 0.0
        base = self.fatal_base_delay if fatal else self.base_delay
        # Attempt counts are unbounded; cap the exponent.
        delay = min(base * (2 ** min(attempt - 1, 32)), self.max_delay)
        if self.jitter:
            delay = min(delay * (0.5 + random.random()), self.max_delay)  # noqa: S311
        return float(max(0.0, delay))
