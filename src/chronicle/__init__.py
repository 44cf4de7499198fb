"""
Chronicle - event-sourced aggregate persistence

Records aggregate state changes as domain events, stores them as versioned
envelopes, and rebuilds aggregates by replaying their history.

Fun fact: The word "chronicle" comes from the Greek chronika, "annals" - a
record of events in the order they happened, which is exactly what an event
stream is!
"""

from chronicle.engine import Chronicle, configure_observability

__version__ = "0.1.0"
__all__ = ["Chronicle", "configure_observability", "__version__"]
