"""
Limiter Locks

A limiter performs one read-modify-write of its persisted state per admission
decision. The lock handed to it by the factory makes that sequence exclusive
per limiter identity.

Locks:
- Lock: Contract for a named, scoped mutual-exclusion handle
- NoLock: Always-available lock used when no coordination is configured
- InProcessLockProvider: Threading locks shared by name within one process

Distributed locks live in `ratekeeper.infrastructure.redis`.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from ratekeeper.core.exceptions import LockAcquisitionError


class Lock(ABC):
    """
    Named mutual-exclusion handle.

    Used as a context manager, the lock is acquired (blocking) on entry and
    released on every exit path, including exceptions.
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def acquire(self, blocking: bool = True) -> bool:
        """
        Acquire the lock.

        Args:
            blocking: Wait for the lock (bounded by the implementation's own
                timeout) instead of returning immediately.

        Returns:
            True if the lock is now held, False otherwise.
        """
        pass

    @abstractmethod
    def release(self) -> None:
        """Release a held lock."""
        pass

    def __enter__(self) -> Lock:
        if not self.acquire(blocking=True):
            raise LockAcquisitionError(self.name)
        return self

    def __exit__(self, exc_type, exc_val, traceback) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class NoLock(Lock):
    """Lock that is always immediately acquired and never contends."""

    def __init__(self, name: str = ""):
        super().__init__(name)

    def acquire(self, blocking: bool = True) -> bool:
        return True

    def release(self) -> None:
        return None


class LockProvider(ABC):
    """Creates locks scoped to a limiter identity."""

    @abstractmethod
    def create_lock(self, name: str) -> Lock:
        """Return a (not yet acquired) lock for ``name``."""
        pass


class _SharedLock:
    """A `threading.Lock` with the number of handles holding or waiting for it."""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class ThreadLock(Lock):
    """Lock backed by the `threading.Lock` its provider shares by name."""

    def __init__(self, name: str, provider: InProcessLockProvider, timeout: Optional[float] = None):
        super().__init__(name)
        self._provider = provider
        self._timeout = timeout
        self._held: Optional[threading.Lock] = None

    def acquire(self, blocking: bool = True) -> bool:
        lock = self._provider._checkout(self.name)
        if not blocking:
            acquired = lock.acquire(blocking=False)
        elif self._timeout is None:
            acquired = lock.acquire()
        else:
            acquired = lock.acquire(timeout=self._timeout)

        if acquired:
            self._held = lock
        else:
            self._provider._checkin(self.name)
        return acquired

    def release(self) -> None:
        if self._held is None:
            raise RuntimeError(f'Lock "{self.name}" is not held')
        lock, self._held = self._held, None
        lock.release()
        self._provider._checkin(self.name)


class InProcessLockProvider(LockProvider):
    """
    Provides per-name locks for limiters sharing storage inside one process.

    A name stays registered only while some handle holds or waits for its
    lock, so the registry does not grow with the number of identities seen.

    Args:
        timeout: Maximum seconds a blocking acquire waits; ``None`` waits forever.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self._locks: Dict[str, _SharedLock] = {}
        self._registry_lock = threading.Lock()

    def create_lock(self, name: str) -> Lock:
        return ThreadLock(name, self, timeout=self.timeout)

    def _checkout(self, name: str) -> threading.Lock:
        with self._registry_lock:
            shared = self._locks.get(name)
            if shared is None:
                shared = self._locks[name] = _SharedLock()
            shared.users += 1
            return shared.lock

    def _checkin(self, name: str) -> None:
        with self._registry_lock:
            shared = self._locks[name]
            shared.users -= 1
            if shared.users == 0:
                del self._locks[name]

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)
