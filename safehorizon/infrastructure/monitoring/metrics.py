"""
Prometheus metrics for the resilience engine.

Metrics are module-level collectors on the default registry; components
update them alongside their structured log events.
"""

from prometheus_client import Counter, Gauge, Histogram

from safehorizon.shared.types import CircuitBreakerState

CACHE_LOOKUPS = Counter(
    "safehorizon_cache_lookups_total",
    "Cache lookups by outcome",
    ["outcome"],
)

CACHE_EVICTIONS = Counter(
    "safehorizon_cache_evictions_total",
    "Cache entries removed by eviction or expiry",
    ["reason"],
)

CIRCUIT_BREAKER_STATE = Gauge(
    "safehorizon_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["name"],
)

CIRCUIT_BREAKER_REJECTIONS = Counter(
    "safehorizon_circuit_breaker_rejections_total",
    "Calls rejected by an open circuit breaker",
    ["name"],
)

RETRY_ATTEMPTS = Counter(
    "safehorizon_retry_attempts_total",
    "Operation attempts made under a retry policy",
    ["operation", "outcome"],
)

FALLBACK_ACTIVATIONS = Counter(
    "safehorizon_fallback_activations_total",
    "Fallback activations by source",
    ["name", "source"],
)

SYNC_OPERATIONS = Counter(
    "safehorizon_sync_operations_total",
    "Offline operations replayed, by outcome",
    ["outcome"],
)

SYNC_QUEUE_SIZE = Gauge(
    "safehorizon_sync_queue_size",
    "Offline operations waiting for replay",
)

SYNC_DURATION = Histogram(
    "safehorizon_sync_duration_seconds",
    "Duration of offline queue sync passes",
)

_STATE_VALUES = {
    CircuitBreakerState.CLOSED: 0,
    CircuitBreakerState.HALF_OPEN: 1,
    CircuitBreakerState.OPEN: 2,
}


def record_circuit_state(name: str, state: CircuitBreakerState) -> None:
    CIRCUIT_BREAKER_STATE.labels(name=name).set(_STATE_VALUES[state])
