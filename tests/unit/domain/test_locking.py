"""Unit tests for limiter locks."""

import threading

import pytest

from ratekeeper.core.exceptions import LockAcquisitionError
from ratekeeper.domain.locking import InProcessLockProvider, NoLock


class TestNoLock:
    """Test suite for NoLock."""

    def test_always_acquired(self):
        lock = NoLock("api")

        assert lock.acquire() is True
        assert lock.acquire(blocking=False) is True
        lock.release()

    def test_never_contends(self):
        lock = NoLock("api")

        with lock:
            with NoLock("api"):
                assert lock.acquire(blocking=False) is True


class TestInProcessLockProvider:
    """Test suite for InProcessLockProvider."""

    def test_locks_with_same_name_exclude_each_other(self):
        # Arrange
        provider = InProcessLockProvider()
        first = provider.create_lock("api:user-1")
        second = provider.create_lock("api:user-1")

        # Act
        assert first.acquire() is True
        contended = second.acquire(blocking=False)
        first.release()
        free = second.acquire(blocking=False)
        second.release()

        # Assert
        assert contended is False
        assert free is True

    def test_locks_with_different_names_are_independent(self):
        provider = InProcessLockProvider()

        with provider.create_lock("api:user-1"):
            assert provider.create_lock("api:user-2").acquire(blocking=False) is True

    def test_blocking_acquire_times_out(self):
        # Arrange
        provider = InProcessLockProvider(timeout=0.01)
        holder = provider.create_lock("api")
        holder.acquire()

        # Act & Assert
        try:
            with pytest.raises(LockAcquisitionError) as exc_info:
                with provider.create_lock("api"):
                    pass
            assert exc_info.value.name == "api"
            assert exc_info.value.code == "lock_acquisition_failed"
        finally:
            holder.release()

    def test_released_when_block_raises(self):
        provider = InProcessLockProvider()
        lock = provider.create_lock("api")

        with pytest.raises(RuntimeError):
            with lock:
                raise RuntimeError("boom")

        assert provider.create_lock("api").acquire(blocking=False) is True

    def test_serializes_threads(self):
        # Arrange
        provider = InProcessLockProvider()
        counter = {"value": 0}

        def increment():
            for _ in range(200):
                with provider.create_lock("counter"):
                    current = counter["value"]
                    counter["value"] = current + 1

        threads = [threading.Thread(target=increment) for _ in range(4)]

        # Act
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # Assert
        assert counter["value"] == 800

    def test_registry_forgets_released_names(self):
        # Arrange
        provider = InProcessLockProvider()

        # Act
        for i in range(1000):
            with provider.create_lock(f"api:user-{i}"):
                pass

        # Assert
        assert len(provider) == 0

    def test_registry_keeps_held_names(self):
        provider = InProcessLockProvider()
        held = provider.create_lock("api:user-1")
        held.acquire()

        assert provider.create_lock("api:user-1").acquire(blocking=False) is False
        assert len(provider) == 1

        held.release()
        assert len(provider) == 0

    def test_registry_shrinks_after_concurrent_use(self):
        provider = InProcessLockProvider()

        def use(index):
            for _ in range(50):
                with provider.create_lock(f"api:user-{index % 3}"):
                    pass

        threads = [threading.Thread(target=use, args=(i,)) for i in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(provider) == 0

    def test_release_without_acquire_raises(self):
        lock = InProcessLockProvider().create_lock("api")

        with pytest.raises(RuntimeError):
            lock.release()
