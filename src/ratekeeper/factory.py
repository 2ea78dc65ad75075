"""
Limiter Factory

Builds key-scoped limiters from one resolved configuration.

A single `LimiterFactory` serves many independent subjects: the limiter
identity is the configuration id followed by the caller's key, so
``create("user:1")`` and ``create("user:2")`` share strategy parameters but
keep separate state. Limiters are not cached; each call returns a new object
over the same identity-keyed storage record.
"""

from __future__ import annotations

import time
from typing import Any, Mapping, Optional, Union

import structlog

from ratekeeper.config.resolver import ConfigResolver
from ratekeeper.core.exceptions import ConfigurationError
from ratekeeper.domain.limiters import Clock, FixedWindowLimiter, LimiterInterface, TokenBucketLimiter
from ratekeeper.domain.locking import Lock, LockProvider, NoLock
from ratekeeper.domain.repositories import Storage
from ratekeeper.domain.value_objects import LimiterConfig, Strategy

logger = structlog.get_logger(__name__)


class LimiterFactory:
    """
    Creates limiters for one configuration.

    Args:
        config: A raw configuration mapping, resolved here through
            `ConfigResolver`, or an already resolved `LimiterConfig`.
        storage: Backend shared by every limiter this factory creates.
        lock_provider: Source of per-identity locks. Without one, limiters
            get a `NoLock` and rely on the storage for consistency.
        clock: Time source handed to limiters, seconds since the epoch.

    Raises:
        ValidationError: If a raw configuration does not resolve.
    """

    def __init__(
        self,
        config: Union[LimiterConfig, Mapping[str, Any]],
        storage: Storage,
        lock_provider: Optional[LockProvider] = None,
        clock: Clock = time.time,
    ):
        if not isinstance(config, LimiterConfig):
            config = ConfigResolver().resolve(config)
        self.config = config
        self.storage = storage
        self.lock_provider = lock_provider
        self._clock = clock

    def create(self, key: Optional[str] = None) -> LimiterInterface:
        """
        Create a limiter for ``key``.

        Args:
            key: Subject of the limiter (user id, client address, ...);
                appended to the configuration id to form the identity.

        Returns:
            A `TokenBucketLimiter` or `FixedWindowLimiter` depending on the
            configured strategy.

        Raises:
            ConfigurationError: If the configuration names a strategy this
                factory cannot build.
        """
        identity = f"{self.config.id}{key or ''}"
        lock = self._create_lock(identity)
        strategy = self.config.strategy

        if strategy == Strategy.TOKEN_BUCKET:
            limiter: LimiterInterface = TokenBucketLimiter(
                identity, self.config.limit, self.config.rate, self.storage, lock, clock=self._clock
            )
        elif strategy == Strategy.FIXED_WINDOW:
            limiter = FixedWindowLimiter(
                identity, self.config.limit, self.config.interval, self.storage, lock, clock=self._clock
            )
        else:
            value = getattr(strategy, "value", strategy)
            raise ConfigurationError(
                f'Limiter strategy "{value}" does not exist, it must be either '
                f'"{Strategy.TOKEN_BUCKET.value}" or "{Strategy.FIXED_WINDOW.value}".'
            )

        logger.debug(
            "limiter_created",
            limiter_id=identity,
            strategy=limiter.strategy.value,
            limit=self.config.limit,
            locked=self.lock_provider is not None,
        )
        return limiter

    def _create_lock(self, identity: str) -> Lock:
        if self.lock_provider is None:
            return NoLock(identity)
        return self.lock_provider.create_lock(identity)
