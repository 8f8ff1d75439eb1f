"""
Metrics Collection with Prometheus.

Exposes purchase, catalog and transaction metrics for monitoring.
"""

from enum import Enum
from typing import Callable

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Info

from purchasekit.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    STATUS = "status"
    RESULT = "result"
    PATH = "path"


class PurchaseMetrics:
    """
    Centralized metrics for purchase processing.

    Covers:
    - Purchase attempts by outcome
    - Catalog fetches and catalog size
    - Transaction finalization and verification failures per path
    - Background listener throughput
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "purchasekit_service",
            "Service information",
            registry=registry,
        )
        self.service_info.info(
            {
                "version": settings.service_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # Purchase Metrics
        # ====================================================================
        self.purchases_total = Counter(
            "purchasekit_purchases_total",
            "Total purchase attempts by outcome",
            [MetricLabels.STATUS],
            registry=registry,
        )

        # ====================================================================
        # Catalog Metrics
        # ====================================================================
        self.catalog_fetches_total = Counter(
            "purchasekit_catalog_fetches_total",
            "Total catalog fetches",
            [MetricLabels.RESULT],
            registry=registry,
        )

        self.catalog_size = Gauge(
            "purchasekit_catalog_size",
            "Number of products in the fetched catalog",
            registry=registry,
        )

        self.owned_products = Gauge(
            "purchasekit_owned_products",
            "Number of products the user currently owns",
            registry=registry,
        )

        # ====================================================================
        # Transaction Metrics
        # ====================================================================
        self.transactions_finished_total = Counter(
            "purchasekit_transactions_finished_total",
            "Total transactions finished",
            [MetricLabels.PATH],
            registry=registry,
        )

        self.verification_failures_total = Counter(
            "purchasekit_verification_failures_total",
            "Total transactions that failed verification",
            [MetricLabels.PATH],
            registry=registry,
        )

        self.listener_events_total = Counter(
            "purchasekit_listener_events_total",
            "Total transaction update events processed by the listener",
            [MetricLabels.RESULT],
            registry=registry,
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_purchase(self, status: str) -> None:
        """Record a purchase outcome."""
        if settings.metrics_enabled:
            self.purchases_total.labels(status=status).inc()

    def record_catalog_fetch(self, result: str, size: int | None = None) -> None:
        """Record a catalog fetch and, on success, the resulting catalog size."""
        if not settings.metrics_enabled:
            return
        self.catalog_fetches_total.labels(result=result).inc()
        if size is not None:
            self.catalog_size.set(size)

    def record_owned(self, count: int) -> None:
        """Record the owned product count."""
        if settings.metrics_enabled:
            self.owned_products.set(count)

    def record_finish(self, path: str) -> None:
        """Record a finished transaction."""
        if settings.metrics_enabled:
            self.transactions_finished_total.labels(path=path).inc()

    def record_verification_failure(self, path: str) -> None:
        """Record a verification failure."""
        if settings.metrics_enabled:
            self.verification_failures_total.labels(path=path).inc()

    def record_listener_event(self, result: str) -> None:
        """Record a listener event."""
        if settings.metrics_enabled:
            self.listener_events_total.labels(result=result).inc()


# Global metrics instance
metrics = PurchaseMetrics()


def get_metrics_handler(registry: CollectorRegistry = REGISTRY) -> Callable[[], bytes]:
    """
    Get a Prometheus exposition handler.

    Usage:
        handler = get_metrics_handler()
        body = handler()
    """
    from prometheus_client import generate_latest

    def metrics_endpoint() -> bytes:
        return generate_latest(registry)

    return metrics_endpoint
