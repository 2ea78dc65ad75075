"""
Rate Limiters

Admission strategies produced by `LimiterFactory`. Both share one contract,
`LimiterInterface.consume`, and differ only in how they account for hits:

- TokenBucketLimiter: a bucket of ``limit`` tokens refilled at a `Rate`
- FixedWindowLimiter: at most ``limit`` hits per window aligned to the epoch

Every decision is a single read-modify-write of the identity's state in
`Storage`, performed while holding the limiter's lock. Limiter objects hold no
admission state themselves, so any number of them may exist for the same
identity.
"""

from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Callable, Optional

import structlog

from .entities import TokenBucketState, WindowState
from .locking import Lock, NoLock
from .repositories import Storage
from .value_objects import Rate, RateLimit, Strategy

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]


class LimiterInterface(ABC):
    """
    Contract shared by every admission strategy.

    Attributes:
        id: The identity under which this limiter's state is stored.
        limit: Bucket size or hits per window.
    """

    strategy: Strategy

    def __init__(
        self,
        id: str,
        limit: int,
        storage: Storage,
        lock: Optional[Lock] = None,
        clock: Clock = time.time,
    ):
        if limit <= 0:
            raise ValueError("limit must be positive")
        self.id = id
        self.limit = limit
        self.storage = storage
        self.lock = lock if lock is not None else NoLock(id)
        self._clock = clock

    @property
    def identity(self) -> str:
        return self.id

    @abstractmethod
    def consume(self, tokens: int = 1) -> RateLimit:
        """
        Try to use ``tokens`` units of capacity.

        Args:
            tokens: Units to consume, between 1 and ``limit``.

        Returns:
            RateLimit: whether the tokens were accepted, what is left and,
            when rejected, how long to wait.

        Raises:
            ValueError: If ``tokens`` is outside 1..limit.
            LockAcquisitionError: If the lock could not be acquired in time.
            StorageError: If the state backend fails.
        """
        pass

    def reset(self) -> None:
        """Forget all recorded hits for this identity."""
        with self.lock:
            self.storage.delete(self.id)
        logger.debug("limiter_reset", limiter_id=self.id, strategy=self.strategy.value)

    def _validate_tokens(self, tokens: int) -> None:
        if tokens < 1:
            raise ValueError(f"Cannot consume {tokens} tokens, at least 1 is required")
        if tokens > self.limit:
            raise ValueError(
                f"Cannot consume {tokens} tokens, the limiter only allows {self.limit}"
            )

    def _log_decision(self, tokens: int, result: RateLimit) -> None:
        logger.debug(
            "limiter_accepted" if result.accepted else "limiter_rejected",
            limiter_id=self.id,
            strategy=self.strategy.value,
            tokens=tokens,
            remaining=result.remaining,
            retry_after=result.retry_after.total_seconds() if result.retry_after else None,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, limit={self.limit})"


class TokenBucketLimiter(LimiterInterface):
    """
    Token bucket: bursts up to ``limit``, refilled by ``rate.amount`` tokens
    every ``rate.interval``.

    A bucket starts full. Without a rate there is no time-based refill: the
    bucket only fills up again through `reset`.
    """

    strategy = Strategy.TOKEN_BUCKET

    def __init__(
        self,
        id: str,
        limit: int,
        rate: Optional[Rate],
        storage: Storage,
        lock: Optional[Lock] = None,
        clock: Clock = time.time,
    ):
        super().__init__(id, limit, storage, lock, clock)
        self.rate = rate

    def consume(self, tokens: int = 1) -> RateLimit:
        self._validate_tokens(tokens)

        with self.lock:
            now = self._clock()
            bucket = self._load_bucket(now)
            self._refill(bucket, now)

            if bucket.tokens >= tokens:
                bucket.tokens -= tokens
                result = RateLimit(accepted=True, remaining=bucket.tokens, limit=self.limit)
            else:
                result = RateLimit(
                    accepted=False,
                    remaining=bucket.tokens,
                    limit=self.limit,
                    retry_after=self._retry_after(bucket, tokens - bucket.tokens, now),
                )
            self.storage.save(bucket)

        self._log_decision(tokens, result)
        return result

    def _load_bucket(self, now: float) -> TokenBucketState:
        state = self.storage.fetch(self.id)
        refill_interval = self.rate.refill_interval_seconds if self.rate else None
        refill_amount = self.rate.amount if self.rate else 1
        if not isinstance(state, TokenBucketState):
            return TokenBucketState(
                id=self.id,
                tokens=self.limit,
                timer=now,
                bucket_size=self.limit,
                refill_interval=refill_interval,
                refill_amount=refill_amount,
            )
        state.tokens = min(state.tokens, self.limit)
        state.bucket_size = self.limit
        state.refill_interval = refill_interval
        state.refill_amount = refill_amount
        return state

    def _refill(self, bucket: TokenBucketState, now: float) -> None:
        if self.rate is None:
            return
        if bucket.tokens >= self.limit:
            bucket.timer = now
            return

        new_tokens = self.rate.calculate_new_tokens_during(now - bucket.timer)
        if new_tokens <= 0:
            return

        cycles = new_tokens // self.rate.amount
        bucket.timer += cycles * self.rate.refill_interval_seconds
        bucket.tokens = min(self.limit, bucket.tokens + new_tokens)
        if bucket.tokens >= self.limit:
            bucket.timer = now

    def _retry_after(self, bucket: TokenBucketState, missing: int, now: float) -> Optional[timedelta]:
        if self.rate is None:
            return None
        wait = self.rate.calculate_time_for_tokens(missing) - timedelta(seconds=now - bucket.timer)
        return max(wait, timedelta(0))


class FixedWindowLimiter(LimiterInterface):
    """
    Fixed window: at most ``limit`` hits per ``interval``.

    Windows are aligned to multiples of ``interval`` since the epoch, so all
    limiters sharing an identity agree on the window boundaries.
    """

    strategy = Strategy.FIXED_WINDOW

    def __init__(
        self,
        id: str,
        limit: int,
        interval: timedelta,
        storage: Storage,
        lock: Optional[Lock] = None,
        clock: Clock = time.time,
    ):
        super().__init__(id, limit, storage, lock, clock)
        if interval is None or interval <= timedelta(0):
            raise ValueError("Window interval must be positive")
        self.interval = interval

    def consume(self, tokens: int = 1) -> RateLimit:
        self._validate_tokens(tokens)

        with self.lock:
            now = self._clock()
            window = self._load_window(now)
            available = self.limit - window.hit_count

            if tokens <= available:
                window.hit_count += tokens
                self.storage.save(window)
                result = RateLimit(
                    accepted=True, remaining=self.limit - window.hit_count, limit=self.limit
                )
            else:
                result = RateLimit(
                    accepted=False,
                    remaining=available,
                    limit=self.limit,
                    retry_after=timedelta(seconds=window.window_end - now),
                )

        self._log_decision(tokens, result)
        return result

    def _load_window(self, now: float) -> WindowState:
        interval_seconds = self.interval.total_seconds()
        window_start = math.floor(now / interval_seconds) * interval_seconds

        state = self.storage.fetch(self.id)
        if (
            isinstance(state, WindowState)
            and state.window_start == window_start
            and state.interval_seconds == interval_seconds
        ):
            return state
        return WindowState(
            id=self.id,
            hit_count=0,
            window_start=window_start,
            interval_seconds=interval_seconds,
        )
