"""
Aggregate Factory - picks the aggregate variant for an identifier and rebuilds it

The identifier type decides the aggregate type: BasketId -> "Basket". The
mapping normally comes from configuration; registering an aggregate class
fills in its own id_type as a default.
"""

from collections.abc import Mapping

from chronicle.kernel.aggregate import AggregateRoot
from chronicle.kernel.errors import UnknownAggregateTypeError
from chronicle.kernel.events import AggregateHistory
from chronicle.kernel.ids import AggregateId
from chronicle.kernel.logging import get_logger
from chronicle.kernel.metrics import (
    aggregates_reconstituted_total,
    reconstitution_duration_seconds,
)

logger = get_logger(__name__)


class AggregateFactory:
    """
    Maps identifier types to aggregate variants and reconstitutes them

    Attributes:
        type_mapping: identifier-type key -> aggregate key
    """

    def __init__(
        self,
        aggregates: tuple[type[AggregateRoot], ...] = (),
        type_mapping: Mapping[str, str] | None = None,
    ) -> None:
        self._aggregates: dict[str, type[AggregateRoot]] = {}
        self.type_mapping: dict[str, str] = dict(type_mapping or {})
        for aggregate_cls in aggregates:
            self.register(aggregate_cls)

    def register(self, aggregate_cls: type[AggregateRoot]) -> None:
        """
        Make an aggregate variant available under its aggregate_type

        An identifier key already present in the configured mapping is kept.
        """
        self._aggregates[aggregate_cls.aggregate_type] = aggregate_cls
        self.type_mapping.setdefault(
            aggregate_cls.id_type.type_key(), aggregate_cls.aggregate_type
        )
        logger.debug(
            "Aggregate type registered",
            aggregate_type=aggregate_cls.aggregate_type,
            id_type=aggregate_cls.id_type.type_key(),
        )

    def selector_for(self, aggregate_id: AggregateId) -> str:
        """
        Aggregate key for an identifier, based on the identifier's type

        Raises:
            UnknownAggregateTypeError: If the identifier type is not mapped
        """
        key = type(aggregate_id).type_key()
        try:
            return self.type_mapping[key]
        except KeyError:
            raise UnknownAggregateTypeError(key) from None

    def reconstitute(self, selector: str, history: AggregateHistory) -> AggregateRoot:
        """
        Rebuild the aggregate selected by ``selector`` from ``history``

        Raises:
            UnknownAggregateTypeError: If no variant is registered for ``selector``
            UnhandledEventError: Propagated from the aggregate's replay
        """
        aggregate_cls = self._aggregates.get(selector)
        if aggregate_cls is None:
            raise UnknownAggregateTypeError(selector)

        with reconstitution_duration_seconds.labels(aggregate_type=selector).time():
            aggregate = aggregate_cls.from_history(history)

        aggregates_reconstituted_total.labels(aggregate_type=selector).inc()
        logger.debug(
            "Aggregate reconstituted",
            aggregate_type=selector,
            aggregate_id=str(aggregate.aggregate_id),
            version=aggregate.committed_version,
        )
        return aggregate

    def registered_types(self) -> list[str]:
        return sorted(self._aggregates)
