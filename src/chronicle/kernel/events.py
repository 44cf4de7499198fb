"""
Event model for event sourcing

Three layers:
- DomainEvent: the bare business fact, produced by aggregate behavior
- EventEnvelope: the fact plus persistence metadata (id, name, version, time)
- EventStream / AggregateHistory: ordered sequences of the two

Fun fact: In event sourcing, the event log is like a time machine -
you can replay history to any point and see exactly what the aggregate
looked like at that moment!
"""

from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime
from typing import Any, overload

from pydantic import BaseModel, Field, SerializeAsAny

from chronicle.kernel.errors import EmptyStreamError


class DomainEvent(BaseModel):
    """
    Base class for domain events

    Events are immutable and carry only business data - no ids, no versions,
    no timestamps of their own unless the business cares about them. The
    envelope adds persistence concerns later.
    """

    model_config = {"frozen": True}


class EventEnvelope(BaseModel):
    """
    A domain event wrapped with persistence metadata

    Everything except ``metadata`` is fixed once the wrapper assigns it.
    Metadata may be enriched before persistence through with_metadata(),
    which returns a new envelope instead of mutating this one.
    """

    envelope_id: str = Field(
        ...,
        description="Globally unique envelope identifier",
    )

    event_name: str = Field(
        ...,
        description="Resolved name of the event type, e.g. 'ProductWasAddedToBasket'",
    )

    event: SerializeAsAny[DomainEvent] = Field(
        ...,
        description="The wrapped domain event",
    )

    aggregate_version: int = Field(
        ...,
        description="Aggregate version after this event (1 for the first event ever)",
        ge=1,
    )

    occurred_at: datetime = Field(
        ...,
        description="UTC timestamp stamped at wrap time",
    )

    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form metadata (correlation ids, actor, ...)",
    )

    model_config = {"frozen": True}

    def with_metadata(self, **items: Any) -> "EventEnvelope":
        """Return a copy with ``items`` merged over the existing metadata"""
        return self.model_copy(update={"metadata": {**self.metadata, **items}})


class EventStream:
    """
    Ordered envelopes for exactly one aggregate

    Versions must be strictly increasing by exactly one - no gaps, no
    duplicates. An empty stream is valid (a store may hand one back) but
    cannot be unwrapped into a history.
    """

    def __init__(self, aggregate_id: str, envelopes: Iterable[EventEnvelope] = ()) -> None:
        self.aggregate_id = aggregate_id
        self._envelopes: tuple[EventEnvelope, ...] = tuple(envelopes)

        for previous, current in zip(self._envelopes, self._envelopes[1:]):
            if current.aggregate_version != previous.aggregate_version + 1:
                raise ValueError(
                    f"Stream {aggregate_id} is not contiguous: version "
                    f"{current.aggregate_version} follows {previous.aggregate_version}"
                )

    def __len__(self) -> int:
        return len(self._envelopes)

    def __iter__(self) -> Iterator[EventEnvelope]:
        return iter(self._envelopes)

    @overload
    def __getitem__(self, index: int) -> EventEnvelope: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[EventEnvelope, ...]: ...

    def __getitem__(self, index: int | slice) -> EventEnvelope | tuple[EventEnvelope, ...]:
        return self._envelopes[index]

    def __repr__(self) -> str:
        return f"EventStream(aggregate_id={self.aggregate_id!r}, envelopes={len(self)})"

    @property
    def is_empty(self) -> bool:
        return not self._envelopes

    @property
    def first_version(self) -> int:
        """Version of the first envelope (0 for an empty stream)"""
        return self._envelopes[0].aggregate_version if self._envelopes else 0

    @property
    def last_version(self) -> int:
        """Version of the last envelope (0 for an empty stream)"""
        return self._envelopes[-1].aggregate_version if self._envelopes else 0

    def events(self) -> list[DomainEvent]:
        return [envelope.event for envelope in self._envelopes]

    def with_metadata(self, **items: Any) -> "EventStream":
        """Return a new stream whose envelopes all carry the extra metadata"""
        return EventStream(
            self.aggregate_id,
            (envelope.with_metadata(**items) for envelope in self._envelopes),
        )


class AggregateHistory(Sequence[DomainEvent]):
    """
    Ordered bare events used to rebuild an aggregate

    A history always holds at least one event - there is no such thing as
    an aggregate that exists without ever having recorded anything.
    """

    def __init__(self, events: Iterable[DomainEvent]) -> None:
        self._events: tuple[DomainEvent, ...] = tuple(events)
        if not self._events:
            raise EmptyStreamError()

    def __len__(self) -> int:
        return len(self._events)

    @overload
    def __getitem__(self, index: int) -> DomainEvent: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[DomainEvent]: ...

    def __getitem__(self, index: int | slice) -> DomainEvent | Sequence[DomainEvent]:
        return self._events[index]

    def __iter__(self) -> Iterator[DomainEvent]:
        return iter(self._events)

    def __repr__(self) -> str:
        return f"AggregateHistory(events={len(self)})"
