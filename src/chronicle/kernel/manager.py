"""
Aggregate Manager - public entry point for loading and saving aggregates

Combines a session-scoped IdentityMap with the AggregateRepository so that
within one session every id resolves to exactly one live instance.
"""

from chronicle.kernel.aggregate import AggregateRoot
from chronicle.kernel.errors import NotInMapError
from chronicle.kernel.identity_map import IdentityMap
from chronicle.kernel.ids import AggregateId
from chronicle.kernel.logging import get_logger
from chronicle.kernel.metrics import identity_map_lookups_total
from chronicle.kernel.repository import AggregateRepository

logger = get_logger(__name__)


class AggregateManager:
    """
    Identity-mapped access to aggregates

    The identity map is not transactional: an aggregate added here stays in
    the map even when persisting it fails. Call clear() (or start a new
    session) to drop possibly stale instances after a failure.
    """

    def __init__(
        self,
        repository: AggregateRepository,
        identity_map: IdentityMap | None = None,
    ) -> None:
        self.repository = repository
        self.identity_map = identity_map or IdentityMap()

    def add(self, aggregate: AggregateRoot) -> None:
        """
        Track ``aggregate`` in the session and persist its recorded events

        Raises:
            ConcurrencyConflict: Propagated from the repository
        """
        if not self.identity_map.has(aggregate.aggregate_id):
            self.identity_map.add(aggregate)
        self.repository.add(aggregate)

    def get(self, aggregate_id: AggregateId) -> AggregateRoot:
        """
        Return the session's instance, loading it from the store on first access

        Raises:
            AggregateNotFoundError: If nothing is stored for ``aggregate_id``
        """
        try:
            aggregate = self.identity_map.get(aggregate_id)
        except NotInMapError:
            identity_map_lookups_total.labels(result="miss").inc()
            logger.debug("Identity map miss", aggregate_id=str(aggregate_id))
        else:
            identity_map_lookups_total.labels(result="hit").inc()
            return aggregate

        aggregate = self.repository.get(aggregate_id)
        self.identity_map.add(aggregate)
        return aggregate

    def clear(self) -> None:
        """Forget every tracked instance; stored events are untouched"""
        logger.debug("Identity map cleared", entries=len(self.identity_map))
        self.identity_map.clear()
