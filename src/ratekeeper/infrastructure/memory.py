"""
In-Memory Storage

Process-local `Storage` implementation, suitable for tests and single-process
deployments. States are stored as serialized copies, so a limiter mutating
the state it loaded never changes what another limiter sees until it saves.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from ratekeeper.domain.entities import LimiterState, state_from_dict
from ratekeeper.domain.repositories import Storage


class InMemoryStorage(Storage):
    """
    Thread-safe dictionary-backed storage honouring state expiration.

    Args:
        clock: Time source used to expire states, seconds since the epoch.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._buckets: Dict[str, Tuple[Optional[float], Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def fetch(self, limiter_id: str) -> Optional[LimiterState]:
        with self._lock:
            entry = self._buckets.get(limiter_id)
            if entry is None:
                return None
            expires_at, payload = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._buckets[limiter_id]
                return None
        return state_from_dict(payload)

    def save(self, state: LimiterState) -> None:
        expiration = state.expiration_seconds
        expires_at = self._clock() + expiration if expiration is not None else None
        with self._lock:
            self._buckets[state.id] = (expires_at, state.to_dict())

    def delete(self, limiter_id: str) -> None:
        with self._lock:
            self._buckets.pop(limiter_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)
