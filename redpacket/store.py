"""
Keyed storage for distributions.

All mutation of a distribution happens while holding the lock returned by
``DistributionStore.lock(distribution_id)``, which serializes create, claim
and refund the way transaction ordering does on-chain.
"""
import threading
from typing import Dict, Iterator

from redpacket.errors import DistributionExistsError, DistributionNotFoundError
from redpacket.models import Distribution


class DistributionStore:
    def __init__(self):
        self._distributions: Dict[bytes, Distribution] = {}
        self._locks: Dict[bytes, threading.RLock] = {}
        self._mutex = threading.Lock()

    def lock(self, distribution_id: bytes) -> threading.RLock:
        with self._mutex:
            lock = self._locks.get(distribution_id)
            if lock is None:
                lock = self._locks[distribution_id] = threading.RLock()
            return lock

    def add(self, distribution: Distribution) -> Distribution:
        with self._mutex:
            if distribution.id in self._distributions:
                raise DistributionExistsError()
            self._distributions[distribution.id] = distribution
        return distribution

    def remove(self, distribution_id: bytes) -> None:
        with self._mutex:
            self._distributions.pop(distribution_id, None)

    def get(self, distribution_id: bytes) -> Distribution:
        try:
            return self._distributions[distribution_id]
        except KeyError:
            raise DistributionNotFoundError(f'Distribution not found: 0x{bytes(distribution_id).hex()}') from None

    def __contains__(self, distribution_id) -> bool:
        return distribution_id in self._distributions

    def __len__(self) -> int:
        return len(self._distributions)

    def __iter__(self) -> Iterator[Distribution]:
        with self._mutex:
            return iter(list(self._distributions.values()))
