"""
Limiter State Repositories

Storage contract for per-identity limiter state. The factory never touches
storage itself; it hands the storage to every limiter it creates, and limiters
with the same identity agree on their state because they read and write the
same record.

Design Principles:
- Dependency Inversion: Limiters depend on this abstraction, not on Redis
- Testability: The contract is small enough to fake in a few lines
- Atomicity: Implementations make a single `save` atomic; the sequence
  fetch-then-save is made exclusive by the limiter's lock
"""

from abc import ABC, abstractmethod
from typing import Optional

from .entities import LimiterState


class Storage(ABC):
    """
    Repository interface for limiter state.

    Implementations must store each state so that it can be found again by
    ``state.id`` and may drop it after ``state.expiration_seconds``.
    """

    @abstractmethod
    def fetch(self, limiter_id: str) -> Optional[LimiterState]:
        """
        Load the state stored for a limiter identity.

        Args:
            limiter_id: The limiter identity (config id plus key).

        Returns:
            The stored state, or None if there is none or it expired.

        Raises:
            StorageError: When the backend cannot be reached.
        """
        pass

    @abstractmethod
    def save(self, state: LimiterState) -> None:
        """
        Store a state under ``state.id``, replacing any previous one.

        Raises:
            StorageError: When the backend cannot be reached.
        """
        pass

    @abstractmethod
    def delete(self, limiter_id: str) -> None:
        """
        Remove the state of a limiter identity. Missing states are ignored.

        Raises:
            StorageError: When the backend cannot be reached.
        """
        pass
