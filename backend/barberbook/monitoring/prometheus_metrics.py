"""
Prometheus metrics for the booking service.

Service timings come from the ``@BaseService.measure_operation`` decorator;
lock and fulfillment outcomes are recorded at the call sites.
"""

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "barberbook_service_operation_duration_seconds",
    "Wall time of booking service operations",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

service_operations_total = Counter(
    "barberbook_service_operations_total",
    "Booking service operations by outcome",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "barberbook_errors_total",
    "Booking service operations that raised, by exception type",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_lock_events_total = Counter(
    "barberbook_booking_lock_events_total",
    "Booking lock acquire/release outcomes",
    ["action", "outcome"],
    registry=REGISTRY,
)

waitlist_fulfillment_total = Counter(
    "barberbook_waitlist_fulfillment_total",
    "Waitlist fulfillment attempts by outcome",
    ["outcome"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade over the module-level collectors."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: str | None = None,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking_lock(action: str, outcome: str) -> None:
        booking_lock_events_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_waitlist_fulfillment(outcome: str) -> None:
        waitlist_fulfillment_total.labels(outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Metrics in Prometheus text exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
