"""Limiter State Entities

Mutable per-identity state persisted through a `Storage` backend. A limiter
loads its state, updates it for one decision, and saves it back while holding
its lock.

Entities:
- TokenBucketState: Available tokens and the refill timer of a token bucket
- WindowState: Hit count of the current window of a fixed window

Each state knows how long it stays relevant (`expiration_seconds`) so that
backends can drop it once it no longer affects any decision.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Union


@dataclass
class TokenBucketState:
    """State of a token bucket.

    ``timer`` is the epoch timestamp up to which refills have been accounted
    for; time that has not yet produced a whole token stays in the bucket's
    future instead of being lost.
    """

    id: str
    tokens: int
    timer: float
    bucket_size: int
    refill_interval: float | None = None
    refill_amount: int = 1

    kind = "token_bucket"

    @property
    def expiration_seconds(self) -> int | None:
        """Seconds until an untouched bucket is full again (``None`` = never).

        Counted in whole refill cycles of ``refill_amount`` tokens from the
        time of saving, which is never earlier than ``timer``.
        """
        if self.refill_interval is None:
            return None
        missing = max(0, self.bucket_size - self.tokens)
        cycles = math.ceil(missing / self.refill_amount)
        return max(1, math.ceil(cycles * self.refill_interval))

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, **asdict(self)}


@dataclass
class WindowState:
    """State of the current window of a fixed window limiter."""

    id: str
    hit_count: int
    window_start: float
    interval_seconds: float

    kind = "fixed_window"

    @property
    def window_end(self) -> float:
        return self.window_start + self.interval_seconds

    @property
    def expiration_seconds(self) -> int:
        return max(1, math.ceil(self.interval_seconds))

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, **asdict(self)}


LimiterState = Union[TokenBucketState, WindowState]

_STATE_TYPES = {
    TokenBucketState.kind: TokenBucketState,
    WindowState.kind: WindowState,
}


def state_from_dict(data: Dict[str, Any]) -> LimiterState:
    """Rebuild a state from `to_dict` output.

    Raises:
        ValueError: If the payload does not describe a known state type.
    """
    payload = dict(data)
    state_type = _STATE_TYPES.get(payload.pop("kind", None))
    if state_type is None:
        raise ValueError(f"Unknown limiter state payload: {data!r}")
    try:
        return state_type(**payload)
    except TypeError as e:
        raise ValueError(f"Malformed limiter state payload: {data!r}") from e
