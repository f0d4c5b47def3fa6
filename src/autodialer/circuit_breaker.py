"""Circuit breaker for the outbound call initiator.

After repeated failures to reach the telephony provider, place() fails fast
for a cooldown period instead of waiting on a dead API for every queued
number. The sequencer still advances, since each fast failure is an
InitiationError.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class CircuitBreaker:
    """closed -> open (after N failures) -> half-open (after cooldown)."""

    failure_threshold: int = 3
    cooldown_seconds: float = 60.0
    label: str = "call initiator"
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    _consecutive_failures: int = field(default=0, init=False, repr=False)
    _opened_at: Optional[float] = field(default=None, init=False, repr=False)

    @property
    def state(self) -> str:
        if self._opened_at is None:
            return "closed"
        if (self.clock() - self._opened_at) >= self.cooldown_seconds:
            return "half-open"
        return "open"

    def should_try(self) -> bool:
        return self.state != "open"

    def record_success(self) -> None:
        if self._opened_at is not None:
            logger.info("Circuit breaker closed for %s", self.label)
        self._consecutive_failures = 0
        self._opened_at = None

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        if self._consecutive_failures < self.failure_threshold:
            return
        if self._opened_at is None:
            logger.warning(
                "Circuit breaker OPENED for %s after %d consecutive failures, "
                "skipping for %.0fs",
                self.label,
                self._consecutive_failures,
                self.cooldown_seconds,
            )
        # A failed half-open trial call restarts the cooldown
        self._opened_at = self.clock()
