"""Delay curves shared by every retrying call site (forge requests and AI calls)."""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

SleepFn = Callable[[float], None]

TRANSIENT = "transient"
RATE_LIMITED = "rate_limited"
OVERLOADED = "overloaded"
BLOCKED = "blocked"


@dataclass(slots=True, frozen=True)
class BackoffPolicy:
    """One delay curve.

    ``exponential``: ``first`` on attempt 1 when set, else ``base * factor ** attempt``.
    ``linear``: ``base * attempt``.
    ``schedule``: fixed delays indexed by attempt (last value repeats).

    ``cap`` bounds the deterministic part; ``jitter`` adds ``U(0, jitter)`` on top.
    """

    kind: str = "linear"
    base: float = 1.0
    factor: float = 2.0
    first: float | None = None
    cap: float | None = None
    jitter: float = 0.0
    schedule: Sequence[float] = field(default_factory=tuple)

    def delay(self, attempt: int, rng: random.Random | None = None) -> float:
        attempt = max(1, int(attempt))
        if self.kind == "schedule":
            if not self.schedule:
                value = 0.0
            else:
                value = float(self.schedule[min(attempt, len(self.schedule)) - 1])
        elif self.kind == "exponential":
            if self.first is not None and attempt == 1:
                value = self.first
            else:
                value = self.base * (self.factor**attempt)
        elif self.kind == "linear":
            value = self.base * attempt
        else:
            raise ValueError(f"Unknown backoff kind: {self.kind!r}")
        if self.cap is not None:
            value = min(value, self.cap)
        if self.jitter > 0:
            value += (rng or random).uniform(0.0, self.jitter)
        return value


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Attempt budget plus one curve per failure class.

    Missing curves fall back to ``transient``.
    """

    attempts: int
    transient: BackoffPolicy
    rate_limited: BackoffPolicy | None = None
    overloaded: BackoffPolicy | None = None
    blocked: BackoffPolicy | None = None

    def curve_for(self, failure: str) -> BackoffPolicy:
        if failure == RATE_LIMITED and self.rate_limited is not None:
            return self.rate_limited
        if failure == OVERLOADED and self.overloaded is not None:
            return self.overloaded
        if failure == BLOCKED and self.blocked is not None:
            return self.blocked
        return self.transient

    def delay(self, failure: str, attempt: int, rng: random.Random | None = None) -> float:
        return self.curve_for(failure).delay(attempt, rng)


def pause(sleep: SleepFn, bounds: tuple[float, float], rng: random.Random | None = None) -> float:
    """Sleep for a uniformly random duration within ``bounds`` and return it."""
    low, high = bounds
    seconds = (rng or random).uniform(low, high)
    sleep(seconds)
    return seconds
