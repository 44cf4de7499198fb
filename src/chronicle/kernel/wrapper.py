"""
Event Wrapper - converts between recorded events and stored envelopes

wrap() is the only place envelope ids, names, versions and timestamps are
assigned. unwrap() drops all of that again so aggregates only ever see bare
domain events.
"""

from collections.abc import Sequence

from chronicle.kernel.clock import Clock, default_clock
from chronicle.kernel.errors import EmptyStreamError
from chronicle.kernel.events import AggregateHistory, DomainEvent, EventEnvelope, EventStream
from chronicle.kernel.ids import AggregateId, IdGenerator, default_id_generator
from chronicle.kernel.logging import get_logger
from chronicle.kernel.metrics import events_wrapped_total
from chronicle.kernel.naming import EventNameResolver

logger = get_logger(__name__)


class EventWrapper:
    """
    Wraps recorded events into a versioned stream and back

    Collaborators are injected: the name resolver decides event names, the
    id generator supplies envelope ids, and the clock stamps occurred_at.
    """

    def __init__(
        self,
        name_resolver: EventNameResolver,
        id_generator: IdGenerator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.name_resolver = name_resolver
        self.id_generator = id_generator or default_id_generator
        self.clock = clock or default_clock

    def wrap(
        self,
        events: Sequence[DomainEvent],
        aggregate_id: AggregateId,
        base_version: int,
    ) -> EventStream:
        """
        Wrap events into envelopes numbered base_version + 1, + 2, ...

        Args:
            events: Recorded events in the order they happened (non-empty)
            aggregate_id: Owner of the resulting stream
            base_version: Version already stored for the aggregate (0 if new)

        Returns:
            A contiguous EventStream for ``aggregate_id``

        Raises:
            ValueError: If ``events`` is empty or ``base_version`` is negative
            NameResolutionError: If an event type has no name
        """
        if not events:
            raise ValueError("Cannot wrap an empty batch of events")
        if base_version < 0:
            raise ValueError(f"base_version must be >= 0, got {base_version}")

        envelopes = []
        for offset, event in enumerate(events, start=1):
            event_name = self.name_resolver.resolve(type(event))
            envelopes.append(
                EventEnvelope(
                    envelope_id=self.id_generator.generate(),
                    event_name=event_name,
                    event=event,
                    aggregate_version=base_version + offset,
                    occurred_at=self.clock.now(),
                )
            )
            events_wrapped_total.labels(event_name=event_name).inc()

        logger.debug(
            "Events wrapped",
            aggregate_id=str(aggregate_id),
            base_version=base_version,
            event_count=len(envelopes),
        )
        return EventStream(str(aggregate_id), envelopes)

    def unwrap(self, stream: EventStream) -> AggregateHistory:
        """
        Strip envelopes down to the bare events, keeping their order

        Raises:
            EmptyStreamError: If the stream holds no envelopes
        """
        if stream.is_empty:
            raise EmptyStreamError(stream.aggregate_id)
        return AggregateHistory(stream.events())
