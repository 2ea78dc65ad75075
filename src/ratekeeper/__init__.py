"""ratekeeper: key-scoped rate limiters built from a validated configuration.

    >>> from ratekeeper import LimiterFactory, InMemoryStorage
    >>> factory = LimiterFactory(
    ...     {"id": "api", "strategy": "fixed_window", "limit": 10, "interval": "1 minute"},
    ...     InMemoryStorage(),
    ... )
    >>> factory.create("ip:1.2.3.4").consume().accepted
    True
"""

from .config.resolver import ConfigResolver, resolve_config
from .core.exceptions import (
    ConfigurationError,
    IntervalParseError,
    LockAcquisitionError,
    RateLimitExceededError,
    RatekeeperError,
    StorageError,
    ValidationError,
    ValidationErrorKind,
)
from .core.logging import configure_logging
from .domain.interval import IntervalParser, parse_interval
from .domain.limiters import FixedWindowLimiter, LimiterInterface, TokenBucketLimiter
from .domain.locking import InProcessLockProvider, Lock, LockProvider, NoLock
from .domain.repositories import Storage
from .domain.value_objects import LimiterConfig, Rate, RateLimit, Strategy
from .factory import LimiterFactory
from .infrastructure.memory import InMemoryStorage

__all__ = [
    "LimiterFactory",
    "ConfigResolver",
    "resolve_config",
    "IntervalParser",
    "parse_interval",
    "LimiterConfig",
    "Rate",
    "RateLimit",
    "Strategy",
    "LimiterInterface",
    "TokenBucketLimiter",
    "FixedWindowLimiter",
    "Lock",
    "LockProvider",
    "NoLock",
    "InProcessLockProvider",
    "Storage",
    "InMemoryStorage",
    "configure_logging",
    "RatekeeperError",
    "ValidationError",
    "ValidationErrorKind",
    "IntervalParseError",
    "ConfigurationError",
    "LockAcquisitionError",
    "StorageError",
    "RateLimitExceededError",
]
