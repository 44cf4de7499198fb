"""
Tests for the aggregate repository

Fun fact: the repository never retries a lost race - deciding whether the
losing change still makes sense is a business question, not a storage one!
"""

import pytest
from prometheus_client import REGISTRY

from chronicle.basket import Basket, BasketId
from chronicle.kernel.errors import (
    AggregateNotFoundError,
    ConcurrencyConflict,
    UnhandledEventError,
    UnknownAggregateTypeError,
)
from chronicle.kernel.event_store import EventStore
from chronicle.kernel.events import DomainEvent
from chronicle.kernel.factory import AggregateFactory
from chronicle.kernel.ids import AggregateId
from chronicle.kernel.logging import set_correlation_id
from chronicle.kernel.repository import (
    AggregateRepository,
    aggregate_type_enricher,
    correlation_id_enricher,
)
from chronicle.kernel.wrapper import EventWrapper


class OrderId(AggregateId):
    pass


class BasketWasKicked(DomainEvent):
    pass


def sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_add_then_get_round_trip(repository: AggregateRepository, basket_id: BasketId) -> None:
    basket = Basket.pick_up(basket_id)
    basket.add_product("apple")
    basket.add_product("pear")
    repository.add(basket)

    loaded = repository.get(basket_id)

    assert isinstance(loaded, Basket)
    assert loaded is not basket
    assert loaded.aggregate_id == basket_id
    assert loaded.products == ["apple", "pear"]
    assert loaded.committed_version == 3
    assert not loaded.has_recorded_events()


def test_add_erases_buffer_and_advances_version(
    repository: AggregateRepository, basket_id: BasketId
) -> None:
    basket = Basket.pick_up(basket_id)
    basket.add_product("apple")

    repository.add(basket)

    assert not basket.has_recorded_events()
    assert basket.committed_version == 2
    assert basket.version == 2


def test_add_without_recorded_events_is_noop(
    repository: AggregateRepository, event_store: EventStore, basket_id: BasketId
) -> None:
    basket = Basket.pick_up(basket_id)
    repository.add(basket)
    stored = event_store.read(basket_id)

    repository.add(basket)

    reloaded = event_store.read(basket_id)
    assert stored is not None and reloaded is not None
    assert len(reloaded) == len(stored) == 1
    assert reloaded[0].aggregate_version == 1


def test_successive_batches_continue_versions(
    repository: AggregateRepository, event_store: EventStore, basket_id: BasketId
) -> None:
    """Versions continue v+1.. across saves of the same instance"""
    basket = Basket.pick_up(basket_id)
    repository.add(basket)
    basket.add_product("apple")
    repository.add(basket)
    basket.add_product("pear")
    basket.remove_product("apple")
    repository.add(basket)

    stream = event_store.read(basket_id)

    assert stream is not None
    assert [e.aggregate_version for e in stream] == [1, 2, 3, 4]
    assert basket.committed_version == 4


def test_loaded_aggregate_continues_versions(
    repository: AggregateRepository, event_store: EventStore, basket_id: BasketId
) -> None:
    basket = Basket.pick_up(basket_id)
    basket.add_product("apple")
    repository.add(basket)

    loaded = repository.get(basket_id)
    loaded.add_product("pear")  # type: ignore[attr-defined]
    repository.add(loaded)

    stream = event_store.read(basket_id)
    assert stream is not None
    assert stream.last_version == 3


def test_get_unknown_aggregate(repository: AggregateRepository) -> None:
    with pytest.raises(AggregateNotFoundError) as exc_info:
        repository.get(BasketId(value="missing"))

    assert exc_info.value.aggregate_id == "missing"


def test_get_unmapped_identifier_type(
    repository: AggregateRepository, basket_id: BasketId
) -> None:
    """Events stored under an id whose type the factory doesn't know"""
    basket = Basket.pick_up(basket_id)
    repository.add(basket)
    stray = OrderId(value=str(basket_id))

    with pytest.raises(UnknownAggregateTypeError):
        repository.get(stray)


def test_concurrent_instances_conflict(
    repository: AggregateRepository, basket_id: BasketId
) -> None:
    """Two instances loaded at the same version: the second save loses"""
    repository.add(Basket.pick_up(basket_id))
    before = sample("chronicle_concurrency_conflicts_total", {"aggregate_type": "Basket"})

    first = repository.get(basket_id)
    second = repository.get(basket_id)
    first.add_product("apple")  # type: ignore[attr-defined]
    second.add_product("pear")  # type: ignore[attr-defined]
    repository.add(first)

    with pytest.raises(ConcurrencyConflict) as exc_info:
        repository.add(second)

    assert exc_info.value.expected_version == 1
    assert exc_info.value.actual_version == 2
    assert sample("chronicle_concurrency_conflicts_total", {"aggregate_type": "Basket"}) == before + 1
    assert repository.get(basket_id).products == ["apple"]  # type: ignore[attr-defined]


def test_failed_add_keeps_committed_version(
    repository: AggregateRepository, basket_id: BasketId
) -> None:
    repository.add(Basket.pick_up(basket_id))
    first = repository.get(basket_id)
    second = repository.get(basket_id)
    first.add_product("apple")  # type: ignore[attr-defined]
    repository.add(first)
    second.add_product("pear")  # type: ignore[attr-defined]

    with pytest.raises(ConcurrencyConflict):
        repository.add(second)

    assert second.committed_version == 1
    assert not second.has_recorded_events()


def test_appended_metric(repository: AggregateRepository, basket_id: BasketId) -> None:
    before = sample("chronicle_events_appended_total", {"aggregate_type": "Basket"})

    basket = Basket.pick_up(basket_id)
    basket.add_product("apple")
    repository.add(basket)

    assert sample("chronicle_events_appended_total", {"aggregate_type": "Basket"}) == before + 2


def test_enrichers_stamp_metadata(
    event_store: EventStore,
    wrapper: EventWrapper,
    factory: AggregateFactory,
    basket_id: BasketId,
) -> None:
    repository = AggregateRepository(
        event_store,
        wrapper,
        factory,
        enrichers=[aggregate_type_enricher, correlation_id_enricher],
    )
    set_correlation_id("corr-123")

    repository.add(Basket.pick_up(basket_id))

    stream = event_store.read(basket_id)
    assert stream is not None
    assert stream[0].metadata == {"aggregate_type": "Basket", "correlation_id": "corr-123"}


def test_custom_enricher(
    event_store: EventStore,
    wrapper: EventWrapper,
    factory: AggregateFactory,
    basket_id: BasketId,
) -> None:
    def actor(aggregate, stream):
        return stream.with_metadata(actor="till-7")

    repository = AggregateRepository(event_store, wrapper, factory, enrichers=[actor])
    basket = Basket.pick_up(basket_id)
    basket.add_product("apple")
    repository.add(basket)

    stream = event_store.read(basket_id)
    assert stream is not None
    assert all(e.metadata == {"actor": "till-7"} for e in stream)


def test_rejected_record_never_reaches_the_store(
    repository: AggregateRepository, event_store: EventStore, basket_id: BasketId
) -> None:
    """An event the aggregate cannot apply is neither stored nor replayed"""
    basket = Basket.pick_up(basket_id)
    with pytest.raises(UnhandledEventError):
        basket.record_that(BasketWasKicked())
    repository.add(basket)

    stream = event_store.read(basket_id)
    assert stream is not None
    assert [e.event_name for e in stream] == ["BasketWasPickedUp"]
    assert repository.get(basket_id).aggregate_id == basket_id
