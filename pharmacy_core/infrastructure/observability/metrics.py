"""Prometheus metrics for cache efficiency, optimistic rollbacks, and remote API health"""

from prometheus_client import Counter, Histogram

# Dashboard cache metrics
cache_lookup_counter = Counter(
    "pharmacy_cache_lookups_total",
    "Dashboard cache lookups",
    ["entity", "result"],  # hit | miss | forced
)

optimistic_rollback_counter = Counter(
    "pharmacy_optimistic_rollbacks_total",
    "Optimistic mutations reverted after the commit failed",
    ["entity"],
)

stale_response_counter = Counter(
    "pharmacy_stale_responses_discarded_total",
    "Fetch or commit completions discarded because a newer mutation exists",
    ["entity"],
)

# Commerce metrics
order_transition_counter = Counter(
    "pharmacy_order_transitions_total",
    "Order lifecycle events confirmed by the order service",
    ["event"],  # create | request_cancel | approve_cancel | reject_cancel | force_status
)

cart_mutation_counter = Counter(
    "pharmacy_cart_mutations_total",
    "Persisted cart mutations",
    ["operation"],
)

# Remote API metrics
remote_request_histogram = Histogram(
    "pharmacy_remote_request_duration_seconds",
    "Pharmacy API response time",
    ["endpoint"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

remote_failure_counter = Counter(
    "pharmacy_remote_failures_total",
    "Failed pharmacy API calls",
    ["endpoint", "status"],
)


def record_remote_failure(endpoint: str, status: int | None) -> None:
    """Count a failed remote call; network failures are bucketed as 'network'"""
    remote_failure_counter.labels(endpoint=endpoint, status=str(status) if status else "network").inc()
