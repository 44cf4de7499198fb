"""
Chronicle - main façade

Wires the kernel together from settings so applications only deal with
aggregates and sessions.

Example:
    >>> from chronicle import Chronicle
    >>> from chronicle.basket import Basket, BasketId
    >>> chronicle = Chronicle().register(Basket)
    >>> session = chronicle.session()
    >>> basket = Basket.pick_up(BasketId.generate())
    >>> basket.add_product("apple")
    >>> session.add(basket)
    >>> session.clear()
    >>> session.get(basket.aggregate_id).products
    ['apple']
"""

from chronicle.kernel.aggregate import AggregateRoot
from chronicle.kernel.clock import Clock, SystemClock
from chronicle.kernel.event_store import EventStore, InMemoryEventStore, SQLiteEventStore
from chronicle.kernel.factory import AggregateFactory
from chronicle.kernel.ids import IdGenerator, UuidV7Generator
from chronicle.kernel.logging import configure_logging, get_logger
from chronicle.kernel.manager import AggregateManager
from chronicle.kernel.metrics import start_metrics_server
from chronicle.kernel.naming import EventNameRegistry
from chronicle.kernel.repository import (
    AggregateRepository,
    aggregate_type_enricher,
    correlation_id_enricher,
)
from chronicle.kernel.settings import ChronicleSettings
from chronicle.kernel.wrapper import EventWrapper

logger = get_logger(__name__)


def configure_observability(settings: ChronicleSettings) -> None:
    """
    Apply the logging settings and start the metrics endpoint if one is configured

    Call once per process, before building engines.
    """
    configure_logging(
        json_output=settings.use_json_logs,
        log_level=settings.log_level,
        environment=settings.environment,
    )
    if settings.metrics_port is not None:
        start_metrics_server(settings.metrics_port)
        logger.info("Metrics server started", port=settings.metrics_port)


class Chronicle:
    """
    Chronicle main façade

    Owns the long-lived pieces (name registry, wrapper, factory, store,
    repository) and hands out short-lived sessions, each with its own
    identity map.
    """

    def __init__(
        self,
        settings: ChronicleSettings | None = None,
        *,
        event_store: EventStore | None = None,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
    ) -> None:
        """
        Build an engine

        Args:
            settings: Configuration (defaults: in-memory store, development logging)
            event_store: Explicit store, overriding settings.database_path
            clock: Clock stamping envelopes (system clock if None)
            id_generator: Envelope id generator (UUIDv7-style if None)
        """
        self.settings = settings or ChronicleSettings()
        self.names = EventNameRegistry()
        self.factory = AggregateFactory(type_mapping=self.settings.aggregate_types)
        self.wrapper = EventWrapper(
            self.names,
            id_generator=id_generator or UuidV7Generator(),
            clock=clock or SystemClock(),
        )
        self.event_store = event_store or self._build_event_store()
        self.repository = AggregateRepository(
            self.event_store,
            self.wrapper,
            self.factory,
            enrichers=[aggregate_type_enricher, correlation_id_enricher],
        )
        logger.info(
            "Chronicle initialized",
            event_store=type(self.event_store).__name__,
            environment=self.settings.environment,
        )

    def _build_event_store(self) -> EventStore:
        if self.settings.database_path is None:
            return InMemoryEventStore()
        return SQLiteEventStore(
            self.settings.database_path,
            self.names,
            lock_retries=self.settings.sqlite_lock_retries,
        )

    def register(self, *aggregate_classes: type[AggregateRoot]) -> "Chronicle":
        """Make aggregates loadable and their events nameable; returns self for chaining"""
        for aggregate_cls in aggregate_classes:
            self.factory.register(aggregate_cls)
            self.names.register_all(aggregate_cls.handled_events())
        return self

    def session(self) -> AggregateManager:
        """A new AggregateManager with a fresh identity map"""
        return AggregateManager(self.repository)
