"""
Kernel - event-sourced aggregate persistence

Recording, wrapping, storing and replaying domain events. Everything a
domain module needs to build event-sourced aggregates lives here.

Fun fact: Event sourcing was inspired by accountants - they never erase ledger
entries, they add correcting entries. Chronicle applies that wisdom to objects.
"""

from chronicle.kernel.aggregate import AggregateRoot, applies
from chronicle.kernel.clock import Clock, FixedClock, SystemClock
from chronicle.kernel.errors import (
    AggregateNotFoundError,
    ChronicleError,
    ConcurrencyConflict,
    EmptyStreamError,
    EventStoreError,
    InvariantViolation,
    NameResolutionError,
    NotInMapError,
    UnhandledEventError,
    UnknownAggregateTypeError,
)
from chronicle.kernel.event_store import EventStore, InMemoryEventStore, SQLiteEventStore
from chronicle.kernel.events import AggregateHistory, DomainEvent, EventEnvelope, EventStream
from chronicle.kernel.factory import AggregateFactory
from chronicle.kernel.identity_map import IdentityMap
from chronicle.kernel.ids import AggregateId, IdGenerator, SequentialIdGenerator, generate_id
from chronicle.kernel.manager import AggregateManager
from chronicle.kernel.naming import ClassNameResolver, EventNameRegistry, EventNameResolver
from chronicle.kernel.repository import AggregateRepository
from chronicle.kernel.settings import ChronicleSettings
from chronicle.kernel.wrapper import EventWrapper

__all__ = [
    # Identity & time
    "AggregateId",
    "IdGenerator",
    "SequentialIdGenerator",
    "generate_id",
    "Clock",
    "SystemClock",
    "FixedClock",
    # Events
    "DomainEvent",
    "EventEnvelope",
    "EventStream",
    "AggregateHistory",
    "EventNameResolver",
    "ClassNameResolver",
    "EventNameRegistry",
    "EventWrapper",
    # Aggregates
    "AggregateRoot",
    "applies",
    "AggregateFactory",
    # Persistence
    "EventStore",
    "InMemoryEventStore",
    "SQLiteEventStore",
    "AggregateRepository",
    "IdentityMap",
    "AggregateManager",
    # Configuration
    "ChronicleSettings",
    # Errors
    "ChronicleError",
    "NameResolutionError",
    "EmptyStreamError",
    "UnhandledEventError",
    "UnknownAggregateTypeError",
    "AggregateNotFoundError",
    "NotInMapError",
    "EventStoreError",
    "ConcurrencyConflict",
    "InvariantViolation",
]
