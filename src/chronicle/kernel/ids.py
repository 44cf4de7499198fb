"""
Identifiers - aggregate ids and envelope id generation

Aggregate ids are small typed value objects, one subclass per aggregate, so a
BasketId can never be passed where an OrderId is expected. Envelope ids are
opaque strings produced by an IdGenerator (UUIDv7-style by default, which
keeps stored envelopes roughly time-ordered).

Fun fact: UUIDv7 was only standardised in RFC 9562 (2024), decades after the
random v4 UUIDs most systems still use!
"""

import itertools
import secrets
import threading
import time
from typing import Protocol

from pydantic import BaseModel, Field


class IdGenerator(Protocol):
    """Protocol for envelope/aggregate id generation strategies"""

    def generate(self) -> str:
        """Return a new globally unique id"""
        ...


def generate_id() -> str:
    """
    Generate a UUIDv7-style identifier

    Layout: 48-bit unix millisecond timestamp, version nibble 7, 12 random
    bits, variant bits 10, then 62 random bits.

    Returns:
        36-character hyphenated hex string that sorts by creation time
    """
    timestamp_ms = int(time.time() * 1000) & 0xFFFFFFFFFFFF
    rand_a = secrets.randbits(12)
    rand_b = secrets.randbits(62)

    value = (timestamp_ms << 80) | (0x7 << 76) | (rand_a << 64) | (0b10 << 62) | rand_b
    hex_value = f"{value:032x}"
    return (
        f"{hex_value[:8]}-{hex_value[8:12]}-{hex_value[12:16]}-"
        f"{hex_value[16:20]}-{hex_value[20:]}"
    )


class UuidV7Generator:
    """Default generator backed by generate_id()"""

    def generate(self) -> str:
        return generate_id()


class SequentialIdGenerator:
    """
    Deterministic generator for tests and replay demos

    Produces "<prefix>-1", "<prefix>-2", ... and is safe to share between threads.
    """

    def __init__(self, prefix: str = "id") -> None:
        self.prefix = prefix
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def generate(self) -> str:
        with self._lock:
            return f"{self.prefix}-{next(self._counter)}"


default_id_generator: IdGenerator = UuidV7Generator()


class AggregateId(BaseModel):
    """
    Base identifier for aggregates

    Subclass once per aggregate (e.g. ``class BasketId(AggregateId)``). The
    identifier is created once, when the aggregate is created, and never
    changes afterwards. Equality and hashing use the type and the wrapped
    string; ``str(identifier)`` yields the string used as the stream key.
    """

    value: str = Field(
        ...,
        min_length=1,
        description="Opaque, stable identifier value",
    )

    model_config = {"frozen": True}

    @classmethod
    def generate(cls, generator: IdGenerator | None = None) -> "AggregateId":
        """Create a fresh identifier from the given (or default) generator"""
        return cls(value=(generator or default_id_generator).generate())

    @classmethod
    def from_string(cls, value: str) -> "AggregateId":
        return cls(value=value)

    @classmethod
    def type_key(cls) -> str:
        """Key used by the aggregate factory's identifier-type mapping"""
        return cls.__name__

    def __str__(self) -> str:
        return self.value

    def __lt__(self, other: "AggregateId") -> bool:
        if not isinstance(other, AggregateId):
            return NotImplemented
        return self.value < other.value
