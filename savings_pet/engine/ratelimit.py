"""
Caller-side interaction policies.

The engine itself has no notion of "too fast": it stays correct at any call
frequency. These helpers are what the calling layer uses to keep users from
spamming pats and claims.
"""

import math
import time
from collections import deque
from typing import Callable, Optional

from savings_pet.config.settings import RateLimitSettings
from savings_pet.engine.exceptions import ClaimCooldownError


Clock = Callable[[], float]


class InteractionRateLimiter:
    """
    Sliding-window limiter with a minimum spacing between calls.

    With the defaults: at most 5 calls in any 10 second window, and at
    least 1 second between two consecutive calls.
    """

    def __init__(
        self,
        window_seconds: float = 10.0,
        max_calls: int = 5,
        cooldown_seconds: float = 1.0,
        clock: Clock = time.monotonic,
    ):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        self._window = window_seconds
        self._max_calls = max_calls
        self._cooldown = cooldown_seconds
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._last_call: Optional[float] = None

    @classmethod
    def from_settings(cls, settings: RateLimitSettings, clock: Clock = time.monotonic) -> "InteractionRateLimiter":
        return cls(
            window_seconds=settings.window_seconds,
            max_calls=settings.max_calls,
            cooldown_seconds=settings.cooldown_seconds,
            clock=clock,
        )

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] > self._window:
            self._timestamps.popleft()

    def try_call(self) -> bool:
        """Record a call if allowed. Returns False when rate-limited."""
        now = self._clock()

        if self._last_call is not None and now - self._last_call < self._cooldown:
            return False

        self._prune(now)
        if len(self._timestamps) >= self._max_calls:
            return False

        self._timestamps.append(now)
        self._last_call = now
        return True

    def remaining_calls(self) -> int:
        self._prune(self._clock())
        return max(0, self._max_calls - len(self._timestamps))

    def in_cooldown(self) -> bool:
        if self._last_call is None:
            return False
        return self._clock() - self._last_call < self._cooldown

    def reset(self) -> None:
        self._timestamps.clear()
        self._last_call = None


class ClaimCooldown:
    """Per-user cooldown for the timed XP claim."""

    def __init__(self, cooldown_seconds: float, clock: Clock = time.time):
        self._cooldown = cooldown_seconds
        self._clock = clock
        self._ends_at: dict[str, float] = {}

    def remaining_seconds(self, user_id: str) -> int:
        """Whole seconds left before `user_id` may claim again (0 = ready)."""
        ends_at = self._ends_at.get(user_id)
        if ends_at is None:
            return 0
        remaining = ends_at - self._clock()
        if remaining <= 0:
            del self._ends_at[user_id]
            return 0
        return math.ceil(remaining)

    def __len__(self) -> int:
        """Users currently tracked."""
        return len(self._ends_at)

    def check(self, user_id: str) -> None:
        remaining = self.remaining_seconds(user_id)
        if remaining:
            raise ClaimCooldownError(remaining)

    def start(self, user_id: str) -> None:
        now = self._clock()
        # Expired entries are dropped here so the map only holds cooling users
        for expired in [uid for uid, ends_at in self._ends_at.items() if ends_at <= now]:
            del self._ends_at[expired]
        self._ends_at[user_id] = now + self._cooldown

    def clear(self, user_id: str) -> None:
        self._ends_at.pop(user_id, None)
