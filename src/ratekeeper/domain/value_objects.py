"""
Rate Limiting Value Objects

Immutable value objects representing the core concepts of the limiter factory.

Value Objects:
- Strategy: Enumeration of supported admission strategies
- Rate: Token refill rate of a token bucket
- LimiterConfig: Fully resolved, strategy-specific limiter configuration
- RateLimit: The outcome of a single admission decision

Design Principles:
- Immutability: All value objects are frozen after creation
- Validation: Invariants enforced at construction time
- Equality: Value-based equality for comparison in tests and caches
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from ratekeeper.core.exceptions import RateLimitExceededError
from ratekeeper.domain.interval import parse_interval


class Strategy(str, Enum):
    """
    Enumeration of supported admission strategies.

    - TOKEN_BUCKET: Allows bursts up to the bucket size, refills at a fixed rate
    - FIXED_WINDOW: Caps hits per aligned window, resets at window boundaries
    """
    TOKEN_BUCKET = "token_bucket"
    FIXED_WINDOW = "fixed_window"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


@dataclass(frozen=True, slots=True)
class Rate:
    """
    Immutable value object describing how many tokens refill per interval.

    Business Rules:
    - Interval must be positive
    - Amount must be positive
    """
    interval: timedelta
    amount: int = 1

    def __post_init__(self):
        if self.interval <= timedelta(0):
            raise ValueError("Rate interval must be positive")
        if self.amount <= 0:
            raise ValueError("Rate amount must be positive")

    @classmethod
    def per_second(cls, amount: int = 1) -> Rate:
        return cls(timedelta(seconds=1), amount)

    @classmethod
    def per_minute(cls, amount: int = 1) -> Rate:
        return cls(timedelta(minutes=1), amount)

    @classmethod
    def per_hour(cls, amount: int = 1) -> Rate:
        return cls(timedelta(hours=1), amount)

    @classmethod
    def per_day(cls, amount: int = 1) -> Rate:
        return cls(timedelta(days=1), amount)

    @classmethod
    def from_string(cls, rate: str) -> Rate:
        """
        Create a rate from ``"<interval>-<amount>"`` (e.g. ``"10 seconds-5"``).

        The amount is optional and defaults to 1.
        """
        interval, _, amount = rate.rpartition("-")
        if not interval:
            interval, amount = amount, "1"
        if not amount.strip().isdigit():
            raise ValueError(f"Invalid rate string format: {rate}")
        return cls(parse_interval(interval), int(amount))

    @property
    def refill_interval_seconds(self) -> float:
        return self.interval.total_seconds()

    def calculate_time_for_tokens(self, tokens: int) -> timedelta:
        """Time needed until ``tokens`` more tokens have been refilled."""
        cycles_required = math.ceil(tokens / self.amount)
        return self.interval * cycles_required

    def calculate_new_tokens_during(self, elapsed_seconds: float) -> int:
        """Whole tokens refilled over ``elapsed_seconds``."""
        if elapsed_seconds <= 0:
            return 0
        cycles = math.floor(elapsed_seconds / self.refill_interval_seconds)
        return cycles * self.amount

    def __str__(self) -> str:
        return f"{self.amount} per {self.interval}"


@dataclass(frozen=True, slots=True)
class LimiterConfig:
    """
    Immutable, fully validated configuration shared by every limiter a factory creates.

    Produced by `ConfigResolver.resolve`. ``interval`` is the window length of a
    fixed window; ``rate`` is the refill rate of a token bucket and may be
    ``None`` (no time-based refill configured).
    """
    id: str
    strategy: Strategy
    limit: int
    interval: Optional[timedelta] = None
    rate: Optional[Rate] = None


@dataclass(frozen=True, slots=True)
class RateLimit:
    """
    Immutable value object describing one admission decision.

    ``retry_after`` is the delay after which the rejected amount could be
    accepted, or ``None`` when that cannot be known (accepted decisions, or a
    token bucket without refill).
    """
    accepted: bool
    remaining: int
    limit: int
    retry_after: Optional[timedelta] = None

    @property
    def is_rejected(self) -> bool:
        return not self.accepted

    def retry_at(self, now: Optional[float] = None) -> Optional[datetime]:
        """Absolute UTC instant at which a retry could succeed."""
        if self.retry_after is None:
            return None
        reference = time.time() if now is None else now
        return datetime.fromtimestamp(reference, tz=timezone.utc) + self.retry_after

    def ensure_accepted(self) -> RateLimit:
        """
        Return self when accepted.

        Raises:
            RateLimitExceededError: When the decision was a rejection.
        """
        if not self.accepted:
            raise RateLimitExceededError(self)
        return self
