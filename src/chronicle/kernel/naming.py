"""
Event name resolution

The wrapper needs a stable string name for every event type it persists,
and a persistent store needs the reverse lookup to turn stored names back
into event classes. Names must therefore be deterministic and unique.
"""

from collections.abc import Iterable
from typing import Protocol

from chronicle.kernel.errors import NameResolutionError
from chronicle.kernel.events import DomainEvent
from chronicle.kernel.logging import get_logger

logger = get_logger(__name__)


class EventNameResolver(Protocol):
    """Protocol for mapping event types to persisted names"""

    def resolve(self, event_type: type[DomainEvent]) -> str:
        """Return the name for ``event_type`` or raise NameResolutionError"""
        ...


def default_event_name(event_type: type) -> str:
    """An explicit ``event_name`` class attribute wins, otherwise the class name"""
    explicit = getattr(event_type, "event_name", None)
    if isinstance(explicit, str) and explicit:
        return explicit
    return event_type.__name__


class ClassNameResolver:
    """Names every DomainEvent subclass after its class; no registration needed"""

    def resolve(self, event_type: type[DomainEvent]) -> str:
        if not (isinstance(event_type, type) and issubclass(event_type, DomainEvent)):
            raise NameResolutionError(
                event_type, f"{event_type!r} is not a DomainEvent subclass"
            )
        return default_event_name(event_type)


class EventNameRegistry:
    """
    Closed, two-way registry of event names

    Only registered event types resolve; unknown types raise
    NameResolutionError. The reverse lookup (event_class) is what lets the
    SQLite store rebuild typed events from stored rows.
    """

    def __init__(self) -> None:
        self._names: dict[type[DomainEvent], str] = {}
        self._types: dict[str, type[DomainEvent]] = {}

    def register(self, event_type: type[DomainEvent], name: str | None = None) -> str:
        """
        Register an event type under ``name`` (defaults to default_event_name)

        Raises:
            ValueError: If the name is already taken by another event type
        """
        name = name or default_event_name(event_type)
        existing = self._types.get(name)
        if existing is not None and existing is not event_type:
            raise ValueError(
                f"Event name {name!r} already registered for {existing.__qualname__}"
            )
        self._names[event_type] = name
        self._types[name] = event_type
        logger.debug("Event name registered", event_name=name)
        return name

    def register_all(self, event_types: Iterable[type[DomainEvent]]) -> None:
        for event_type in event_types:
            self.register(event_type)

    def resolve(self, event_type: type[DomainEvent]) -> str:
        try:
            return self._names[event_type]
        except KeyError:
            raise NameResolutionError(event_type) from None

    def event_class(self, name: str) -> type[DomainEvent]:
        """
        Reverse lookup used when deserializing stored envelopes

        Raises:
            KeyError: If no event type is registered under ``name``
        """
        try:
            return self._types[name]
        except KeyError:
            raise KeyError(f"No event type registered under name {name!r}") from None

    def names(self) -> list[str]:
        return sorted(self._types)

    def __contains__(self, event_type: object) -> bool:
        return event_type in self._names
