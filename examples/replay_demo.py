#!/usr/bin/env python3
"""
Event Replay Demonstration - Deterministic Aggregate Reconstruction

This example demonstrates the core promise of event sourcing: an aggregate
saved as a list of events can be rebuilt, in any later session, into exactly
the state it had when it was saved.

Key Concepts:
1. Events are the source of truth (not current state)
2. Each save appends envelopes numbered after the last stored version
3. A fresh session rebuilds aggregates by replaying their events
4. Two writers working from the same version cannot both win
5. Business rules are checked when recording, never when replaying

Scenario:
- Pick up a basket, add products, save it to SQLite
- Reload it in a new session and compare
- Inspect the stored envelopes
- Lose a race on purpose
- Hit the three-product limit

Run:
    python examples/replay_demo.py
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

from chronicle import Chronicle
from chronicle.basket import Basket, BasketId, BasketLimitReached
from chronicle.kernel.clock import FixedClock
from chronicle.kernel.errors import ConcurrencyConflict
from chronicle.kernel.ids import SequentialIdGenerator
from chronicle.kernel.settings import ChronicleSettings


def print_section(title: str) -> None:
    """Print section header"""
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}\n")


def main() -> None:
    """Run replay demonstration"""

    print_section("Event Replay Demonstration - Deterministic Rebuilds")

    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "baskets.db"

        # Fixed clock and sequential envelope ids keep the output stable
        fixed_time = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
        clock = FixedClock(fixed_time)

        chronicle = Chronicle(
            ChronicleSettings(database_path=db_path),
            clock=clock,
            id_generator=SequentialIdGenerator("env"),
        ).register(Basket)

        print(f"Database: {db_path}")
        print(f"Fixed time: {fixed_time.isoformat()}")

        # Phase 1: Record and save
        print_section("Phase 1: Record Events and Save")

        basket_id = BasketId(value="basket-42")
        session = chronicle.session()
        basket = Basket.pick_up(basket_id)
        basket.add_product("apple")
        clock.advance(minutes=2)
        basket.add_product("pear")
        print(f"Pending events before save: {len(basket.recorded_events())}")

        session.add(basket)
        print(f"✓ Saved basket {basket_id} at version {basket.committed_version}")

        # Phase 2: Rebuild
        print_section("Phase 2: Rebuild in a Fresh Session")

        rebuilt = chronicle.session().get(basket_id)
        print(f"Original products: {basket.products}")
        print(f"Rebuilt products:  {rebuilt.products}")

        if rebuilt.products == basket.products:
            print("\n✓✓✓ SUCCESS: States are IDENTICAL")
            print("Same events → Same state (always)")
        else:
            print("\n✗✗✗ FAILURE: States differ!")

        # Phase 3: Inspect envelopes
        print_section("Phase 3: Stored Envelopes")

        stream = chronicle.event_store.read(basket_id)
        for envelope in stream or ():
            print(
                f"  v{envelope.aggregate_version} {envelope.event_name:<26} "
                f"{envelope.envelope_id} {envelope.occurred_at.isoformat()}"
            )

        # Phase 4: Optimistic concurrency
        print_section("Phase 4: Two Sessions, One Basket")

        alice, bob = chronicle.session(), chronicle.session()
        alices = alice.get(basket_id)
        bobs = bob.get(basket_id)
        alices.add_product("plum")
        bobs.add_product("kiwi")

        alice.add(alices)
        print("✓ Alice saved first")
        try:
            bob.add(bobs)
        except ConcurrencyConflict as e:
            print(f"✗ Bob lost the race: {e}")
            print("  Bob clears the session and reloads before deciding again")
            bob.clear()
            print(f"  Bob now sees: {bob.get(basket_id).products}")

        # Phase 5: Business rules
        print_section("Phase 5: The Three-Product Limit")

        full = chronicle.session().get(basket_id)
        try:
            full.add_product("kiwi")
        except BasketLimitReached as e:
            print(f"✓ Rule enforced: {e}")
            print(f"  Nothing was recorded: {full.has_recorded_events() is False}")


if __name__ == "__main__":
    main()
