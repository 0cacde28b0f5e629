"""Retry policies replacing ad hoc sleeps in the search and fetch loops."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from random import SystemRandom

SleepFn = Callable[[float], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with a fixed (factor=1) or exponential backoff schedule."""

    max_attempts: int = 3
    base_delay: float = 1.0
    factor: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.factor < 1:
            raise ValueError("factor must be >= 1")
        if self.max_delay < 0:
            raise ValueError("max_delay must be >= 0")
        if self.jitter < 0:
            raise ValueError("jitter must be >= 0")

    @classmethod
    def fixed(cls, *, max_attempts: int, delay: float) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, base_delay=delay, factor=1.0, max_delay=max(delay, 0.0))

    def attempts(self) -> Iterator[tuple[int, float]]:
        """Yield (attempt, delay_seconds) pairs; the delay applies after a failed attempt."""
        rng = SystemRandom()
        delay = self.base_delay
        for attempt in range(1, self.max_attempts + 1):
            jitter_offset = rng.uniform(0, delay * self.jitter) if self.jitter > 0 and delay > 0 else 0.0
            yield attempt, min(delay + jitter_offset, self.max_delay)
            delay = min(delay * self.factor, self.max_delay)
