"""
Custom exceptions for Chronicle

Every failure the kernel can report has its own class so callers can tell
configuration mistakes (fatal) apart from expected outcomes such as a missing
aggregate or a lost optimistic-locking race.

Fun fact: optimistic concurrency control was described by Kung and Robinson
in 1981 - the idea is simply "assume nobody else is writing, check at the end".
"""


class ChronicleError(Exception):
    """Base exception for all Chronicle errors"""

    pass


class NameResolutionError(ChronicleError):
    """Raised when an event type has no resolvable name (configuration error)"""

    def __init__(self, event_type: type, message: str = "") -> None:
        self.event_type = event_type
        super().__init__(
            message or f"No event name registered for {event_type.__qualname__}"
        )


class EmptyStreamError(ChronicleError):
    """
    Raised when an empty event stream (or history) would be replayed

    A stored stream never legitimately contains zero envelopes, so this
    signals a broken store invariant rather than a recoverable condition.
    """

    def __init__(self, aggregate_id: str | None = None, message: str = "") -> None:
        self.aggregate_id = aggregate_id
        if not message:
            message = (
                f"Event stream for {aggregate_id} is empty"
                if aggregate_id
                else "Aggregate history must contain at least one event"
            )
        super().__init__(message)


class UnhandledEventError(ChronicleError):
    """Raised when an aggregate has no handler for an event type in its history"""

    def __init__(self, aggregate_type: str, event_type: type, message: str = "") -> None:
        self.aggregate_type = aggregate_type
        self.event_type = event_type
        super().__init__(
            message
            or f"Aggregate {aggregate_type} has no handler for {event_type.__qualname__}"
        )


class UnknownAggregateTypeError(ChronicleError):
    """Raised when the factory has no mapping for an identifier or aggregate key"""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"No aggregate type mapped for {key!r}")


class AggregateNotFoundError(ChronicleError):
    """
    Raised when no stream is stored for an identifier

    Expected and recoverable - callers typically create a new aggregate instead.
    """

    def __init__(self, aggregate_id: str) -> None:
        self.aggregate_id = aggregate_id
        super().__init__(f"Aggregate {aggregate_id} not found")


class NotInMapError(ChronicleError):
    """Identity map miss - only ever caught by the aggregate manager"""

    def __init__(self, aggregate_id: str) -> None:
        self.aggregate_id = aggregate_id
        super().__init__(f"Aggregate {aggregate_id} is not in the identity map")


class EventStoreError(ChronicleError):
    """Base class for event store errors"""

    pass


class ConcurrencyConflict(EventStoreError):
    """
    Raised when the expected stream version doesn't match the stored one

    Another writer persisted first. The caller should reload the aggregate
    and decide whether to retry - the kernel never does.
    """

    def __init__(
        self, aggregate_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stream {aggregate_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )


class InvariantViolation(ChronicleError):
    """
    Raised by aggregate behavior when a business rule would be broken

    Domain modules subclass this for their own rules. It is only ever raised
    before an event is recorded, never while replaying history.
    """

    pass
