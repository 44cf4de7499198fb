"""
Aggregate Repository - persists recorded events and rebuilds aggregates

Write path: recorded events -> erase buffer -> wrap at the committed version
-> enrich metadata -> conditional append.
Read path: read stream -> unwrap -> reconstitute through the factory.

Concurrency conflicts and missing aggregates are reported, never retried.
"""

from collections.abc import Callable, Sequence

from chronicle.kernel.aggregate import AggregateRoot
from chronicle.kernel.errors import AggregateNotFoundError, ConcurrencyConflict
from chronicle.kernel.event_store import EventStore
from chronicle.kernel.events import EventStream
from chronicle.kernel.factory import AggregateFactory
from chronicle.kernel.ids import AggregateId
from chronicle.kernel.logging import LogOperation, get_correlation_id, get_logger
from chronicle.kernel.metrics import (
    concurrency_conflicts_total,
    events_appended_total,
    events_loaded_total,
)
from chronicle.kernel.wrapper import EventWrapper

logger = get_logger(__name__)

# Enrichers run between wrap and append; each returns a new stream
MetadataEnricher = Callable[[AggregateRoot, EventStream], EventStream]


def correlation_id_enricher(aggregate: AggregateRoot, stream: EventStream) -> EventStream:
    """Stamp every envelope with the current logging correlation id"""
    return stream.with_metadata(correlation_id=get_correlation_id())


def aggregate_type_enricher(aggregate: AggregateRoot, stream: EventStream) -> EventStream:
    """Stamp every envelope with the aggregate type that recorded it"""
    return stream.with_metadata(aggregate_type=aggregate.aggregate_type)


class AggregateRepository:
    """
    Orchestrates the wrapper, the store and the factory

    Args:
        event_store: Any EventStore implementation
        wrapper: Converts recorded events to envelopes and back
        factory: Chooses and rebuilds aggregate variants
        enrichers: Metadata enrichers applied in order before each append
    """

    def __init__(
        self,
        event_store: EventStore,
        wrapper: EventWrapper,
        factory: AggregateFactory,
        enrichers: Sequence[MetadataEnricher] = (),
    ) -> None:
        self.event_store = event_store
        self.wrapper = wrapper
        self.factory = factory
        self.enrichers = list(enrichers)

    def add(self, aggregate: AggregateRoot) -> None:
        """
        Persist the aggregate's recorded events

        Does nothing when there is nothing recorded. The pending buffer is
        erased as soon as the events are handed off, before the append.

        Raises:
            ConcurrencyConflict: If another writer stored events for this
                aggregate since it was loaded
        """
        if not aggregate.has_recorded_events():
            return

        events = aggregate.recorded_events()
        aggregate.erase_recorded_events()

        aggregate_id = aggregate.aggregate_id
        base_version = aggregate.committed_version

        with LogOperation(
            logger,
            "add_aggregate",
            expected=(ConcurrencyConflict,),
            aggregate_type=aggregate.aggregate_type,
            aggregate_id=str(aggregate_id),
            base_version=base_version,
            event_count=len(events),
        ):
            stream = self.wrapper.wrap(events, aggregate_id, base_version)
            for enrich in self.enrichers:
                stream = enrich(aggregate, stream)

            try:
                self.event_store.append(aggregate_id, base_version, stream)
            except ConcurrencyConflict:
                concurrency_conflicts_total.labels(
                    aggregate_type=aggregate.aggregate_type
                ).inc()
                raise

            aggregate.mark_committed(stream.last_version)
            events_appended_total.labels(aggregate_type=aggregate.aggregate_type).inc(
                len(stream)
            )

    def get(self, aggregate_id: AggregateId) -> AggregateRoot:
        """
        Rebuild an aggregate from its stored stream

        Raises:
            AggregateNotFoundError: If nothing is stored for ``aggregate_id``
            UnknownAggregateTypeError: If the identifier type is not mapped
        """
        with LogOperation(
            logger,
            "get_aggregate",
            expected=(AggregateNotFoundError,),
            id_type=type(aggregate_id).type_key(),
            aggregate_id=str(aggregate_id),
        ):
            stream = self.event_store.read(aggregate_id)
            if stream is None or stream.is_empty:
                raise AggregateNotFoundError(str(aggregate_id))

            selector = self.factory.selector_for(aggregate_id)
            events_loaded_total.labels(aggregate_type=selector).inc(len(stream))
            history = self.wrapper.unwrap(stream)
            return self.factory.reconstitute(selector, history)
