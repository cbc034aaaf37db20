"""
Rate Limiter Module - Per-session utterance rate limiting
=========================================================

A rolling window counts utterances over a fixed interval and resets
wholesale once the interval has elapsed; it does not slide continuously.
The window carries no lock of its own: it lives inside a session and is
guarded by that session's lock.
"""

from dataclasses import dataclass


@dataclass
class RateLimitResult:
    """
    Result of a rate limit check.

    Attributes:
        allowed (bool): Whether the utterance is allowed
        remaining (int): Utterances left in the current window
        reset_at (float): Clock reading at which the window rolls over
        retry_after (float): Seconds to wait before retry (if blocked)
    """
    allowed: bool
    remaining: int
    reset_at: float
    retry_after: float = 0.0


@dataclass
class RollingWindow:
    """
    Fixed-interval utterance counter.

    Attributes:
        limit (int): Utterances allowed per window
        window_seconds (float): Window duration
        start (float): Clock reading at which the current window began
        count (int): Utterances recorded in the current window
    """
    limit: int
    window_seconds: float
    start: float
    count: int = 0

    def expired(self, now: float) -> bool:
        """True once the current window has fully elapsed."""
        return now - self.start >= self.window_seconds

    def effective_count(self, now: float) -> int:
        """Count as it stands at ``now``; an elapsed window counts as empty."""
        return 0 if self.expired(now) else self.count

    def check(self, now: float) -> RateLimitResult:
        """
        Check whether one more utterance fits, without recording it.

        Args:
            now: Current clock reading

        Returns:
            RateLimitResult with check outcome
        """
        count = self.effective_count(now)
        reset_at = now + self.window_seconds if self.expired(now) else self.start + self.window_seconds

        if count >= self.limit:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_at=reset_at,
                retry_after=max(0.0, reset_at - now),
            )

        return RateLimitResult(
            allowed=True,
            remaining=self.limit - count - 1,
            reset_at=reset_at,
        )

    def record(self, now: float) -> int:
        """
        Record one utterance, resetting the window first if it elapsed.

        Args:
            now: Current clock reading

        Returns:
            Count in the current window after recording
        """
        if self.expired(now):
            self.start = now
            self.count = 0
        self.count += 1
        return self.count
