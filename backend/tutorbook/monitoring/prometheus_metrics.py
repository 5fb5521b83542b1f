"""
Prometheus metrics for tutorbook.

Every @measure_operation call feeds the service histograms. Reschedules,
reversals and the lifecycle sweep have their own counters so a dashboard
can show, for example, how many bookings the sweep deferred for students
behind the admin zone.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Dedicated registry so tests and multiple apps in one process never collide
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "tutorbook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

service_operations_total = Counter(
    "tutorbook_service_operations_total",
    "Service operations by outcome",
    ["service", "operation", "status", "error_type"],
    registry=REGISTRY,
)

reschedules_total = Counter(
    "tutorbook_reschedules_total",
    "Reschedule attempts by outcome",
    ["outcome"],  # confirmed, or the rejection code
    registry=REGISTRY,
)

reschedule_reversals_total = Counter(
    "tutorbook_reschedule_reversals_total",
    "Admin cancellations of reschedules",
    registry=REGISTRY,
)

sweep_transitions_total = Counter(
    "tutorbook_sweep_transitions_total",
    "State transitions applied by the lifecycle sweep",
    ["entity", "status"],
    registry=REGISTRY,
)

sweep_deferred_bookings_total = Counter(
    "tutorbook_sweep_deferred_bookings_total",
    "Bookings left scheduled because the class had not ended for the student yet",
    registry=REGISTRY,
)

sweep_unit_failures_total = Counter(
    "tutorbook_sweep_unit_failures_total",
    "Sweep units that failed and were left for the next run",
    registry=REGISTRY,
)

sweep_duration_seconds = Histogram(
    "tutorbook_sweep_duration_seconds",
    "Duration of a full lifecycle sweep",
    registry=REGISTRY,
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)


class PrometheusMetrics:
    """Thin facade over the module-level collectors."""

    def record_service_operation(
        self,
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record one measured service call.

        Args:
            service: Service class name, e.g. 'RescheduleService'
            operation: Name given to @measure_operation, e.g. 'reschedule'
            duration: Wall time in seconds
            status: 'success' or 'error'
            error_type: Exception class name when status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(
            service=service, operation=operation, status=status, error_type=error_type or ""
        ).inc()

    def inc_reschedule(self, outcome: str) -> None:
        reschedules_total.labels(outcome=outcome).inc()

    def inc_reschedule_reversal(self) -> None:
        reschedule_reversals_total.inc()

    def inc_sweep_unit_failure(self) -> None:
        sweep_unit_failures_total.inc()

    def record_sweep(
        self,
        duration: float,
        *,
        classes_completed: int,
        bookings_attended: int,
        bookings_deferred: int,
        packages_completed: int,
    ) -> None:
        sweep_duration_seconds.observe(max(duration, 0.0))
        for entity, status, count in (
            ("class", "completed", classes_completed),
            ("booking", "attended", bookings_attended),
            ("package", "completed", packages_completed),
        ):
            if count > 0:
                sweep_transitions_total.labels(entity=entity, status=status).inc(count)
        if bookings_deferred > 0:
            sweep_deferred_bookings_total.inc(bookings_deferred)

    def get_metrics(self) -> bytes:
        """Current exposition text for the /metrics endpoint."""
        return cast(bytes, generate_latest(REGISTRY))

    def get_content_type(self) -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
