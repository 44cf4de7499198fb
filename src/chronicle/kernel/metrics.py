"""
Prometheus metrics for Chronicle.

Covers the write path (wrap/append/conflicts), the read path
(load/reconstitution) and identity-map effectiveness.
"""

from prometheus_client import Counter, Histogram, start_http_server

# ============================================================================
# Write Path
# ============================================================================

events_wrapped_total = Counter(
    "chronicle_events_wrapped_total",
    "Total number of domain events wrapped into envelopes",
    ["event_name"],
)

events_appended_total = Counter(
    "chronicle_events_appended_total",
    "Total number of envelopes appended to the event store",
    ["aggregate_type"],
)

concurrency_conflicts_total = Counter(
    "chronicle_concurrency_conflicts_total",
    "Total number of optimistic locking version conflicts",
    ["aggregate_type"],
)

# ============================================================================
# Read Path
# ============================================================================

events_loaded_total = Counter(
    "chronicle_events_loaded_total",
    "Total number of envelopes loaded from the event store",
    ["aggregate_type"],
)

aggregates_reconstituted_total = Counter(
    "chronicle_aggregates_reconstituted_total",
    "Total number of aggregates rebuilt from history",
    ["aggregate_type"],
)

reconstitution_duration_seconds = Histogram(
    "chronicle_reconstitution_duration_seconds",
    "Duration of rebuilding an aggregate from its history",
    ["aggregate_type"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
)

identity_map_lookups_total = Counter(
    "chronicle_identity_map_lookups_total",
    "Identity map lookups by the aggregate manager",
    ["result"],  # hit, miss
)


def start_metrics_server(port: int = 9090) -> None:
    """Expose metrics over HTTP on ``port``"""
    start_http_server(port)
