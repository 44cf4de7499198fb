"""
Event Stores - append-only envelope logs keyed by aggregate id

The kernel depends only on the EventStore protocol:
- append() is conditional on the expected version and atomic with that check
- read() observes every previously acknowledged append for the same id

Two adapters ship with the kernel: an in-memory store for tests and
single-process use, and a SQLite store for durable local persistence.

Fun fact: The append-only log pattern is one of the oldest database techniques,
dating back to the 1960s IMS database - Chronicle just gives every aggregate
its own little ledger!
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Protocol

from chronicle.kernel.errors import ConcurrencyConflict, EventStoreError
from chronicle.kernel.events import EventEnvelope, EventStream
from chronicle.kernel.ids import AggregateId
from chronicle.kernel.logging import LogOperation, get_logger
from chronicle.kernel.naming import EventNameRegistry
from chronicle.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)


class EventStore(Protocol):
    """Contract the repository requires from durable storage"""

    def append(
        self,
        aggregate_id: AggregateId,
        expected_version: int,
        stream: EventStream,
    ) -> None:
        """
        Append ``stream`` if the stored version still equals ``expected_version``

        Raises:
            ConcurrencyConflict: If another writer appended first
        """
        ...

    def read(self, aggregate_id: AggregateId) -> EventStream | None:
        """Return the full stream for ``aggregate_id``, or None if nothing is stored"""
        ...


class InMemoryEventStore:
    """
    Process-local event store

    A single lock makes the version check and the append one atomic step,
    so two racing writers with the same expected version cannot both win.
    """

    def __init__(self) -> None:
        self._streams: dict[str, list[EventEnvelope]] = {}
        self._lock = threading.Lock()

    def append(
        self,
        aggregate_id: AggregateId,
        expected_version: int,
        stream: EventStream,
    ) -> None:
        if stream.is_empty:
            return

        key = str(aggregate_id)
        with self._lock:
            stored = self._streams.get(key, [])
            current_version = stored[-1].aggregate_version if stored else 0
            if current_version != expected_version:
                raise ConcurrencyConflict(key, expected_version, current_version)
            if stream.first_version != expected_version + 1:
                raise EventStoreError(
                    f"Stream {key} must continue at version {expected_version + 1}, "
                    f"got {stream.first_version}"
                )
            self._streams[key] = stored + list(stream)

        logger.debug(
            "Envelopes appended",
            aggregate_id=key,
            expected_version=expected_version,
            new_version=stream.last_version,
        )

    def read(self, aggregate_id: AggregateId) -> EventStream | None:
        key = str(aggregate_id)
        with self._lock:
            stored = self._streams.get(key)
            if not stored:
                return None
            return EventStream(key, list(stored))

    def stream_version(self, aggregate_id: AggregateId) -> int:
        """Current version of a stream (0 if it doesn't exist)"""
        with self._lock:
            stored = self._streams.get(str(aggregate_id))
            return stored[-1].aggregate_version if stored else 0

    def count_events(self) -> int:
        with self._lock:
            return sum(len(stored) for stored in self._streams.values())

    def count_streams(self) -> int:
        with self._lock:
            return len(self._streams)


class SQLiteEventStore:
    """
    SQLite-backed event store

    Uses WAL mode for crash safety and concurrent readers. The version check
    runs inside a ``BEGIN IMMEDIATE`` transaction, and the
    UNIQUE(stream_id, version) constraint backs it up, so a lost race always
    surfaces as ConcurrencyConflict and never as a duplicate version.

    Schema:
    - envelopes table: one row per envelope, append-only
    - Unique constraint: (stream_id, version)
    - Indices: (stream_id, version), event_name, occurred_at
    """

    def __init__(
        self,
        db_path: str | Path,
        registry: EventNameRegistry,
        *,
        lock_retries: int = 3,
    ) -> None:
        """
        Initialize the store, creating the schema if needed

        Args:
            db_path: Path to the SQLite database file
            registry: Name registry used to turn stored names back into event classes
            lock_retries: Attempts for operations hitting "database is locked"
        """
        self.db_path = Path(db_path)
        self.registry = registry
        self._append_with_retry = retry_on_sqlite_lock(max_attempts=lock_retries)(
            self._append_once
        )
        self._read_with_retry = retry_on_sqlite_lock(max_attempts=lock_retries)(
            self._read_once
        )
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS envelopes (
                    envelope_id TEXT PRIMARY KEY,
                    stream_id TEXT NOT NULL,
                    id_type TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    event_name TEXT NOT NULL,
                    occurred_at TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    metadata_json TEXT NOT NULL,

                    UNIQUE(stream_id, version)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_envelopes_stream "
                "ON envelopes(stream_id, version)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_envelopes_name ON envelopes(event_name)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_envelopes_time ON envelopes(occurred_at)"
            )
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), timeout=5.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def append(
        self,
        aggregate_id: AggregateId,
        expected_version: int,
        stream: EventStream,
    ) -> None:
        """
        Append a stream with optimistic locking

        All envelopes are written in one transaction or none are.

        Raises:
            ConcurrencyConflict: If the stored version differs from ``expected_version``
            EventStoreError: On any other database failure
        """
        if stream.is_empty:
            return
        if stream.first_version != expected_version + 1:
            raise EventStoreError(
                f"Stream {aggregate_id} must continue at version {expected_version + 1}, "
                f"got {stream.first_version}"
            )

        with LogOperation(
            logger,
            "append_envelopes",
            expected=(ConcurrencyConflict,),
            aggregate_id=str(aggregate_id),
            expected_version=expected_version,
            envelope_count=len(stream),
        ):
            try:
                self._append_with_retry(aggregate_id, expected_version, stream)
            except sqlite3.OperationalError as e:
                raise EventStoreError(f"Database error while appending: {e}") from e

    def _append_once(
        self,
        aggregate_id: AggregateId,
        expected_version: int,
        stream: EventStream,
    ) -> None:
        stream_id = str(aggregate_id)
        with self._connect() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
                current_version = self._get_stream_version(conn, stream_id)
                if current_version != expected_version:
                    raise ConcurrencyConflict(stream_id, expected_version, current_version)

                for envelope in stream:
                    conn.execute(
                        """
                        INSERT INTO envelopes (
                            envelope_id, stream_id, id_type, version,
                            event_name, occurred_at, payload_json, metadata_json
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                        (
                            envelope.envelope_id,
                            stream_id,
                            type(aggregate_id).type_key(),
                            envelope.aggregate_version,
                            envelope.event_name,
                            envelope.occurred_at.isoformat(),
                            envelope.event.model_dump_json(),
                            json.dumps(envelope.metadata, default=str),
                        ),
                    )

                conn.commit()

            except ConcurrencyConflict:
                conn.rollback()
                raise

            except sqlite3.IntegrityError as e:
                conn.rollback()
                error_msg = str(e).lower()
                if "stream_id" in error_msg and "version" in error_msg:
                    current = self._get_stream_version(conn, stream_id)
                    raise ConcurrencyConflict(stream_id, expected_version, current) from e
                raise EventStoreError(f"Failed to append envelopes: {e}") from e

            except sqlite3.OperationalError:
                # The retry decorator retries lock errors and re-raises the rest
                conn.rollback()
                raise

            except sqlite3.Error as e:
                conn.rollback()
                raise EventStoreError(f"Unexpected error appending envelopes: {e}") from e

    def read(self, aggregate_id: AggregateId) -> EventStream | None:
        """
        Load the stream for an aggregate in version order

        Returns:
            The stream, or None if nothing was ever stored for ``aggregate_id``
        """
        try:
            rows = self._read_with_retry(str(aggregate_id))
        except sqlite3.OperationalError as e:
            raise EventStoreError(f"Database error while reading: {e}") from e

        if not rows:
            return None
        return EventStream(str(aggregate_id), [self._row_to_envelope(row) for row in rows])

    def _read_once(self, stream_id: str) -> list[sqlite3.Row]:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                SELECT
                    envelope_id, version, event_name, occurred_at,
                    payload_json, metadata_json
                FROM envelopes
                WHERE stream_id = ?
                ORDER BY version ASC
            """,
                (stream_id,),
            )
            return cursor.fetchall()

    def _row_to_envelope(self, row: sqlite3.Row) -> EventEnvelope:
        try:
            event_class = self.registry.event_class(row["event_name"])
        except KeyError as e:
            raise EventStoreError(f"Cannot deserialize stored envelope: {e}") from e
        return EventEnvelope(
            envelope_id=row["envelope_id"],
            event_name=row["event_name"],
            event=event_class.model_validate_json(row["payload_json"]),
            aggregate_version=row["version"],
            occurred_at=datetime.fromisoformat(row["occurred_at"]),
            metadata=json.loads(row["metadata_json"]),
        )

    def get_stream_version(self, aggregate_id: AggregateId) -> int:
        """Current version of a stream (0 if it doesn't exist)"""
        with self._connect() as conn:
            return self._get_stream_version(conn, str(aggregate_id))

    def _get_stream_version(self, conn: sqlite3.Connection, stream_id: str) -> int:
        cursor = conn.execute(
            "SELECT MAX(version) FROM envelopes WHERE stream_id = ?",
            (stream_id,),
        )
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def count_events(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM envelopes").fetchone()[0]

    def count_streams(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(DISTINCT stream_id) FROM envelopes").fetchone()[0]
