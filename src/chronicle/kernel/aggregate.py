"""
Aggregate base class - record, apply, replay

Behavior methods check business rules and then call record_that(). Recording
applies the event through the aggregate's handler map and then buffers it; replay
(from_history) goes through the very same handler map but skips both the
buffer and the business rules, since history is already valid.

Handlers are declared with @applies(EventType). The map from event class to
handler is built once, when the aggregate class is defined, so a missing or
duplicated handler fails at import time rather than halfway through a replay.

Fun fact: This is the same separation accountants use - deciding whether a
transaction is allowed happens once, but posting it to the ledger can be
repeated by anyone who re-reads the journal!
"""

from collections.abc import Callable, Iterable
from typing import Any, ClassVar, TypeVar

from chronicle.kernel.errors import UnhandledEventError
from chronicle.kernel.events import AggregateHistory, DomainEvent
from chronicle.kernel.ids import AggregateId

HANDLER_ATTRIBUTE = "__chronicle_applies__"

A = TypeVar("A", bound="AggregateRoot")
EventHandler = Callable[[Any, Any], None]


def applies(event_type: type[DomainEvent]) -> Callable[[EventHandler], EventHandler]:
    """
    Mark a method as the state-mutation handler for ``event_type``

    Example:
        @applies(ProductWasAddedToBasket)
        def _on_product_added(self, event: ProductWasAddedToBasket) -> None:
            self._products.append(event.product_id)
    """

    def decorator(func: EventHandler) -> EventHandler:
        setattr(func, HANDLER_ATTRIBUTE, event_type)
        return func

    return decorator


class AggregateRoot:
    """
    Base class for event-sourced aggregates

    Class attributes:
        aggregate_type: Key the factory knows this variant by (defaults to the class name)
        id_type: AggregateId subclass identifying instances of this aggregate
        supported_events: Optional closed set of event classes; each one must
            have a handler or class creation fails

    Subclass __init__ must take no arguments besides self and only set up
    empty state: from_history() calls it before replaying.
    """

    aggregate_type: ClassVar[str] = "AggregateRoot"
    id_type: ClassVar[type[AggregateId]] = AggregateId
    supported_events: ClassVar[tuple[type[DomainEvent], ...]] = ()
    _event_handlers: ClassVar[dict[type[DomainEvent], EventHandler]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "aggregate_type" not in cls.__dict__:
            cls.aggregate_type = cls.__name__

        handlers = dict(cls._event_handlers)
        declared_here: set[type[DomainEvent]] = set()
        for name, attribute in cls.__dict__.items():
            event_type = getattr(attribute, HANDLER_ATTRIBUTE, None)
            if event_type is None:
                continue
            if event_type in declared_here:
                raise TypeError(
                    f"{cls.__qualname__} declares more than one handler for "
                    f"{event_type.__qualname__} (second one: {name})"
                )
            declared_here.add(event_type)
            handlers[event_type] = attribute
        cls._event_handlers = handlers

        for event_type in cls.supported_events:
            if event_type not in handlers:
                raise UnhandledEventError(cls.aggregate_type, event_type)

    def __init__(self) -> None:
        self._aggregate_id: AggregateId | None = None
        self._recorded_events: list[DomainEvent] = []
        self._committed_version = 0

    # Recording

    def record_that(self, event: DomainEvent) -> None:
        """
        Apply ``event`` to the current state and buffer it as pending

        An event that cannot be applied never reaches the buffer.
        """
        self._apply(event)
        self._recorded_events.append(event)

    def recorded_events(self) -> list[DomainEvent]:
        """Pending events not yet handed to the repository (the buffer is kept)"""
        return list(self._recorded_events)

    def has_recorded_events(self) -> bool:
        return bool(self._recorded_events)

    def erase_recorded_events(self) -> None:
        """Clear the pending buffer - only the repository calls this"""
        self._recorded_events.clear()

    # Replay

    @classmethod
    def from_history(cls: type[A], history: Iterable[DomainEvent]) -> A:
        """
        Rebuild an aggregate by applying its history in order

        No event is recorded and no business rule is re-checked.

        Raises:
            EmptyStreamError: If the history holds no events
            UnhandledEventError: If an event in the history has no handler
            ValueError: If the history never assigned the aggregate its identifier
        """
        if not isinstance(history, AggregateHistory):
            history = AggregateHistory(history)
        aggregate = cls()
        for event in history:
            aggregate._apply(event)
        if aggregate._aggregate_id is None:
            raise ValueError(
                f"History for {cls.aggregate_type} does not begin with a creation "
                "event that assigns the aggregate id"
            )
        aggregate._committed_version = len(history)
        return aggregate

    @classmethod
    def handled_events(cls) -> tuple[type[DomainEvent], ...]:
        """Event classes this aggregate can apply"""
        return tuple(cls._event_handlers)

    def _apply(self, event: DomainEvent) -> None:
        handler = self._event_handlers.get(type(event))
        if handler is None:
            raise UnhandledEventError(self.aggregate_type, type(event))
        handler(self, event)

    # Identity and versioning

    def _assign_id(self, aggregate_id: AggregateId) -> None:
        """Called by the creation event's handler; the id can never change afterwards"""
        if self._aggregate_id is not None and self._aggregate_id != aggregate_id:
            raise ValueError(
                f"{self.aggregate_type} {self._aggregate_id} cannot be re-identified "
                f"as {aggregate_id}"
            )
        self._aggregate_id = aggregate_id

    @property
    def aggregate_id(self) -> AggregateId:
        if self._aggregate_id is None:
            raise RuntimeError(
                f"{self.aggregate_type} has no identifier until its creation event is recorded"
            )
        return self._aggregate_id

    @property
    def committed_version(self) -> int:
        """Number of events already stored for this aggregate (0 if never persisted)"""
        return self._committed_version

    @property
    def version(self) -> int:
        """Committed version plus pending events"""
        return self._committed_version + len(self._recorded_events)

    def mark_committed(self, version: int) -> None:
        """Record that the store now holds ``version`` events for this aggregate"""
        if version < self._committed_version:
            raise ValueError(
                f"Committed version cannot move backwards ({self._committed_version} -> {version})"
            )
        self._committed_version = version

    def __repr__(self) -> str:
        identifier = self._aggregate_id.value if self._aggregate_id else None
        return (
            f"{type(self).__name__}(aggregate_id={identifier!r}, "
            f"version={self.version}, pending={len(self._recorded_events)})"
        )
