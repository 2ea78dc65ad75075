"""Limiter Domain Module

Value objects, state entities, storage and lock contracts, and the admission
strategies. Nothing in this package performs I/O on its own; storage and lock
backends are injected.
"""

from .entities import TokenBucketState, WindowState
from .limiters import FixedWindowLimiter, LimiterInterface, TokenBucketLimiter
from .locking import InProcessLockProvider, Lock, LockProvider, NoLock
from .repositories import Storage
from .value_objects import LimiterConfig, Rate, RateLimit, Strategy

__all__ = [
    "Strategy",
    "Rate",
    "LimiterConfig",
    "RateLimit",
    "TokenBucketState",
    "WindowState",
    "Storage",
    "Lock",
    "LockProvider",
    "NoLock",
    "InProcessLockProvider",
    "LimiterInterface",
    "TokenBucketLimiter",
    "FixedWindowLimiter",
]
