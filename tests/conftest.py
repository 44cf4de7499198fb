"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from chronicle.basket import Basket, BasketId
from chronicle.kernel import logging as chronicle_logging
from chronicle.kernel.clock import FixedClock
from chronicle.kernel.event_store import EventStore, InMemoryEventStore, SQLiteEventStore
from chronicle.kernel.factory import AggregateFactory
from chronicle.kernel.ids import SequentialIdGenerator
from chronicle.kernel.manager import AggregateManager
from chronicle.kernel.naming import EventNameRegistry
from chronicle.kernel.repository import AggregateRepository
from chronicle.kernel.wrapper import EventWrapper


@pytest.fixture(autouse=True)
def reset_logging_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Each test starts with the environment taken from env variables again"""
    monkeypatch.setattr(chronicle_logging, "_configured_environment", None)


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "chronicle.db"


@pytest.fixture
def fixed_clock() -> FixedClock:
    """
    Provide a controllable clock for deterministic envelope timestamps

    Default time: 2025-01-15 12:00:00 UTC
    """
    return FixedClock(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def envelope_ids() -> SequentialIdGenerator:
    """Deterministic envelope ids: env-1, env-2, ..."""
    return SequentialIdGenerator("env")


@pytest.fixture
def basket_id() -> BasketId:
    return BasketId(value="basket-1")


@pytest.fixture
def names() -> EventNameRegistry:
    """Name registry with every basket event registered"""
    registry = EventNameRegistry()
    registry.register_all(Basket.handled_events())
    return registry


@pytest.fixture
def wrapper(
    names: EventNameRegistry, envelope_ids: SequentialIdGenerator, fixed_clock: FixedClock
) -> EventWrapper:
    return EventWrapper(names, id_generator=envelope_ids, clock=fixed_clock)


@pytest.fixture
def factory() -> AggregateFactory:
    return AggregateFactory(aggregates=(Basket,))


@pytest.fixture
def memory_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def sqlite_store(temp_db: Path, names: EventNameRegistry) -> SQLiteEventStore:
    """Provide a fresh SQLite event store for each test"""
    return SQLiteEventStore(temp_db, names)


@pytest.fixture(params=["memory", "sqlite"])
def event_store(request: pytest.FixtureRequest) -> EventStore:
    """Every store-facing test runs against both store implementations"""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def repository(
    event_store: EventStore, wrapper: EventWrapper, factory: AggregateFactory
) -> AggregateRepository:
    return AggregateRepository(event_store, wrapper, factory)


@pytest.fixture
def manager(repository: AggregateRepository) -> AggregateManager:
    return AggregateManager(repository)
