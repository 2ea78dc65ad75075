"""
Redis Storage and Locks

Redis-backed implementations of the limiter collaborators, for limiters that
share state across processes or hosts:

- RedisStorage: JSON-serialized limiter state under ``<prefix><identity>``,
  expired by Redis itself through ``EX``
- RedisLockProvider / RedisLock: distributed locks built on redis-py's `Lock`

**Security Note**: Use a ``rediss://`` URL with TLS when Redis is reached over
an untrusted network. Connection URLs may carry passwords and are never logged.

Functions:
    create_redis_client: Builds a synchronous client from `RatekeeperSettings`.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional, TypeVar

import structlog
from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError, RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ratekeeper.core.config import RatekeeperSettings, get_settings
from ratekeeper.core.exceptions import LockAcquisitionError, StorageError
from ratekeeper.domain.entities import LimiterState, state_from_dict
from ratekeeper.domain.locking import Lock, LockProvider
from ratekeeper.domain.repositories import Storage

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def create_redis_client(settings: Optional[RatekeeperSettings] = None) -> Redis:
    """
    Creates a synchronous Redis client from settings.

    Args:
        settings: Settings to use; defaults to `get_settings()`.

    Returns:
        Redis: A client for ``settings.REDIS_URL``.
    """
    settings = settings or get_settings()
    client = Redis.from_url(settings.REDIS_URL)
    logger.debug("redis_client_created")
    return client


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "storage_retry",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
    )


class RedisStorage(Storage):
    """
    `Storage` implementation keeping limiter state in Redis.

    Transient connection errors are retried with exponential backoff; any
    Redis failure that remains is raised as `StorageError`.

    Args:
        client: A synchronous redis-py client.
        key_prefix: Prefix of every state key.
        retry_attempts: Total attempts per operation on connection errors.
    """

    def __init__(self, client: Redis, key_prefix: str = "ratekeeper:", retry_attempts: int = 3):
        self.redis = client
        self.key_prefix = key_prefix
        self.retry_attempts = retry_attempts

    @classmethod
    def from_settings(cls, settings: Optional[RatekeeperSettings] = None, client: Optional[Redis] = None) -> RedisStorage:
        settings = settings or get_settings()
        return cls(
            client or create_redis_client(settings),
            key_prefix=settings.STORAGE_KEY_PREFIX,
            retry_attempts=settings.STORAGE_RETRY_ATTEMPTS,
        )

    def _key(self, limiter_id: str) -> str:
        return f"{self.key_prefix}{limiter_id}"

    def _execute(self, operation: str, call: Callable[[], T]) -> T:
        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=0.05, max=1),
            retry=retry_if_exception_type((RedisConnectionError, RedisTimeoutError)),
            before_sleep=_log_retry,
            reraise=True,
        )
        try:
            return retrying(call)
        except RedisError as e:
            logger.error("storage_operation_failed", operation=operation, error=str(e))
            raise StorageError(f"Redis {operation} failed: {e}") from e

    def fetch(self, limiter_id: str) -> Optional[LimiterState]:
        key = self._key(limiter_id)
        data = self._execute("fetch", lambda: self.redis.get(key))
        if data is None:
            return None
        try:
            payload: Any = json.loads(data)
            return state_from_dict(payload)
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            logger.warning("storage_state_corrupted", limiter_id=limiter_id, error=str(e))
            return None

    def save(self, state: LimiterState) -> None:
        key = self._key(state.id)
        payload = json.dumps(state.to_dict())
        self._execute("save", lambda: self.redis.set(key, payload, ex=state.expiration_seconds))

    def delete(self, limiter_id: str) -> None:
        key = self._key(limiter_id)
        self._execute("delete", lambda: self.redis.delete(key))


class RedisLock(Lock):
    """`Lock` wrapping a redis-py lock; blocking acquisition is bounded by its blocking timeout."""

    def __init__(self, name: str, lock: Any):
        super().__init__(name)
        self._lock = lock

    def acquire(self, blocking: bool = True) -> bool:
        try:
            return bool(self._lock.acquire(blocking=blocking))
        except RedisError as e:
            logger.error("lock_acquire_failed", lock=self.name, error=str(e))
            raise LockAcquisitionError(self.name, f'Could not acquire lock "{self.name}": {e}') from e

    def release(self) -> None:
        try:
            self._lock.release()
        except LockError as e:
            # The lease ran out while the lock was held.
            logger.error("lock_release_failed", lock=self.name, error=str(e))
            raise LockAcquisitionError(
                self.name, f'Lock "{self.name}" expired before it was released: {e}'
            ) from e


class RedisLockProvider(LockProvider):
    """
    Creates distributed locks named ``<prefix><identity>``.

    Args:
        client: A synchronous redis-py client.
        timeout: Lease in seconds after which Redis frees an abandoned lock.
        blocking_timeout: Maximum seconds a blocking acquire waits.
        key_prefix: Prefix of every lock key.
    """

    def __init__(
        self,
        client: Redis,
        timeout: float = 10.0,
        blocking_timeout: float = 5.0,
        key_prefix: str = "ratekeeper:lock:",
    ):
        self.redis = client
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self.key_prefix = key_prefix

    @classmethod
    def from_settings(
        cls, settings: Optional[RatekeeperSettings] = None, client: Optional[Redis] = None
    ) -> RedisLockProvider:
        settings = settings or get_settings()
        return cls(
            client or create_redis_client(settings),
            timeout=settings.LOCK_TIMEOUT_SECONDS,
            blocking_timeout=settings.LOCK_BLOCKING_TIMEOUT_SECONDS,
            key_prefix=settings.LOCK_KEY_PREFIX,
        )

    def create_lock(self, name: str) -> Lock:
        redis_lock = self.redis.lock(
            f"{self.key_prefix}{name}",
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        return RedisLock(name, redis_lock)
