"""
Identity Map - one live instance per aggregate id within a session

Not a cache: there is no eviction, no TTL and no size bound. Entries live
until clear(). Each AggregateManager owns its own map, so the map's lifetime
is the session's lifetime.
"""

import threading

from chronicle.kernel.aggregate import AggregateRoot
from chronicle.kernel.errors import NotInMapError
from chronicle.kernel.ids import AggregateId


class IdentityMap:
    """Session-scoped map from serialized aggregate id to the owned aggregate"""

    def __init__(self) -> None:
        self._aggregates: dict[str, AggregateRoot] = {}
        self._lock = threading.RLock()

    def has(self, aggregate_id: AggregateId) -> bool:
        with self._lock:
            return str(aggregate_id) in self._aggregates

    def get(self, aggregate_id: AggregateId) -> AggregateRoot:
        """
        Return the held instance

        Raises:
            NotInMapError: If no instance is held for ``aggregate_id``
        """
        with self._lock:
            try:
                return self._aggregates[str(aggregate_id)]
            except KeyError:
                raise NotInMapError(str(aggregate_id)) from None

    def add(self, aggregate: AggregateRoot) -> None:
        """Hold ``aggregate``, replacing any instance held for the same id"""
        with self._lock:
            self._aggregates[str(aggregate.aggregate_id)] = aggregate

    def clear(self) -> None:
        with self._lock:
            self._aggregates.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._aggregates)

    def __contains__(self, aggregate_id: object) -> bool:
        return isinstance(aggregate_id, AggregateId) and self.has(aggregate_id)
