"""
End-to-end tests through the Chronicle facade

Each test runs against the in-memory store and a real SQLite file, so
the full path record -> wrap -> enrich -> append -> read -> unwrap -> replay
is exercised with and without serialization.
"""

from pathlib import Path

import pytest

from chronicle import Chronicle
from chronicle.basket import Basket, BasketId, BasketLimitReached
from chronicle.kernel.clock import FixedClock
from chronicle.kernel.errors import AggregateNotFoundError, ConcurrencyConflict
from chronicle.kernel.ids import SequentialIdGenerator
from chronicle.kernel.settings import ChronicleSettings


@pytest.fixture(params=["memory", "sqlite"])
def chronicle(request: pytest.FixtureRequest, temp_db: Path, fixed_clock: FixedClock) -> Chronicle:
    settings = ChronicleSettings(database_path=temp_db if request.param == "sqlite" else None)
    return Chronicle(
        settings,
        clock=fixed_clock,
        id_generator=SequentialIdGenerator("env"),
    ).register(Basket)


def test_persist_and_reload_in_fresh_session(chronicle: Chronicle) -> None:
    """Pick up, add two products, save, reload in a fresh session"""
    basket_id = BasketId(value="b-1")
    session = chronicle.session()
    basket = Basket.pick_up(basket_id)
    basket.add_product("apple")
    basket.add_product("pear")
    session.add(basket)

    reloaded = chronicle.session().get(basket_id)

    assert reloaded is not basket
    assert reloaded.products == ["apple", "pear"]  # type: ignore[attr-defined]
    assert reloaded.committed_version == 3
    stream = chronicle.event_store.read(basket_id)
    assert stream is not None
    assert [e.aggregate_version for e in stream] == [1, 2, 3]


def test_concurrent_sessions_conflict(chronicle: Chronicle) -> None:
    """Two sessions change the same basket; the later save conflicts"""
    basket_id = BasketId(value="b-1")
    chronicle.session().add(Basket.pick_up(basket_id))

    alice, bob = chronicle.session(), chronicle.session()
    alices_basket = alice.get(basket_id)
    bobs_basket = bob.get(basket_id)
    alices_basket.add_product("apple")  # type: ignore[attr-defined]
    bobs_basket.add_product("pear")  # type: ignore[attr-defined]

    alice.add(alices_basket)
    with pytest.raises(ConcurrencyConflict):
        bob.add(bobs_basket)

    bob.clear()
    retried = bob.get(basket_id)
    retried.add_product("pear")  # type: ignore[attr-defined]
    bob.add(retried)

    final = chronicle.session().get(basket_id)
    assert final.products == ["apple", "pear"]  # type: ignore[attr-defined]
    assert final.committed_version == 3


def test_limit_survives_reload(chronicle: Chronicle) -> None:
    """A reloaded full basket still refuses a fourth product"""
    basket_id = BasketId(value="b-1")
    basket = Basket.pick_up(basket_id)
    for product in ("apple", "pear", "plum"):
        basket.add_product(product)
    chronicle.session().add(basket)

    reloaded = chronicle.session().get(basket_id)

    with pytest.raises(BasketLimitReached):
        reloaded.add_product("kiwi")  # type: ignore[attr-defined]
    assert not reloaded.has_recorded_events()


def test_rejected_product_is_not_persisted(chronicle: Chronicle) -> None:
    """Saving after a refused fourth product stores only the accepted changes"""
    basket_id = BasketId(value="b-1")
    session = chronicle.session()
    basket = Basket.pick_up(basket_id)
    for product in ("apple", "pear", "plum"):
        basket.add_product(product)
    with pytest.raises(BasketLimitReached):
        basket.add_product("kiwi")

    session.add(basket)

    stream = chronicle.event_store.read(basket_id)
    assert stream is not None
    assert len(stream) == 4
    assert stream.last_version == 4
    assert chronicle.session().get(basket_id).products == ["apple", "pear", "plum"]  # type: ignore[attr-defined]


def test_identity_within_session(chronicle: Chronicle) -> None:
    basket_id = BasketId(value="b-1")
    chronicle.session().add(Basket.pick_up(basket_id))
    session = chronicle.session()

    assert session.get(basket_id) is session.get(basket_id)


def test_round_trip_preserves_events(chronicle: Chronicle) -> None:
    """Stored events come back equal and in order"""
    basket_id = BasketId(value="b-1")
    basket = Basket.pick_up(basket_id)
    basket.add_product("apple")
    basket.add_product("pear")
    basket.remove_product("apple")
    basket.check_out()
    recorded = basket.recorded_events()
    chronicle.session().add(basket)

    stream = chronicle.event_store.read(basket_id)

    assert stream is not None
    assert stream.events() == recorded


def test_envelopes_carry_metadata(chronicle: Chronicle) -> None:
    basket_id = BasketId(value="b-1")
    chronicle.session().add(Basket.pick_up(basket_id))

    stream = chronicle.event_store.read(basket_id)

    assert stream is not None
    envelope = stream[0]
    assert envelope.envelope_id == "env-1"
    assert envelope.metadata["aggregate_type"] == "Basket"
    assert envelope.metadata["correlation_id"]


def test_versions_strictly_increase_across_sessions(chronicle: Chronicle) -> None:
    basket_id = BasketId(value="b-1")
    chronicle.session().add(Basket.pick_up(basket_id))
    for product in ("apple", "pear", "plum"):
        session = chronicle.session()
        basket = session.get(basket_id)
        basket.add_product(product)  # type: ignore[attr-defined]
        session.add(basket)

    stream = chronicle.event_store.read(basket_id)

    assert stream is not None
    assert [e.aggregate_version for e in stream] == [1, 2, 3, 4]


def test_unknown_basket(chronicle: Chronicle) -> None:
    with pytest.raises(AggregateNotFoundError):
        chronicle.session().get(BasketId(value="nope"))


def test_sqlite_events_survive_engine_restart(temp_db: Path) -> None:
    settings = ChronicleSettings(database_path=temp_db)
    basket_id = BasketId(value="b-1")
    basket = Basket.pick_up(basket_id)
    basket.add_product("apple")
    Chronicle(settings).register(Basket).session().add(basket)

    restarted = Chronicle(settings).register(Basket)

    assert restarted.session().get(basket_id).products == ["apple"]  # type: ignore[attr-defined]
