# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for monitoring the intake gateway.

All metrics use the ``fc_`` prefix (form-courier).

Metrics exposed:
    - ``fc_requests_total``: Counter of finished intake requests per site and outcome.
    - ``fc_request_latency_seconds``: Histogram of intake latency per site.
    - ``fc_deliveries_failed_total``: Counter of mail sender failures per site.

Example:
    Accessing metrics via the REST API::

        GET /metrics

    Returns Prometheus text format suitable for scraping.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

UNKNOWN_TENANT = "-"


class IntakeMetrics:
    """Prometheus metrics collector for the intake pipeline.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
        requests: Counter of requests labeled by site and outcome.
        latency: Histogram of request latency labeled by site.
        delivery_failures: Counter of failed hand-offs labeled by site.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize metrics with an optional custom registry.

        Args:
            registry: Optional Prometheus CollectorRegistry. If not provided,
                a new registry is created.
        """
        self.registry = registry or CollectorRegistry()
        self.requests = Counter(
            "fc_requests_total",
            "Total intake requests",
            ["tenant", "outcome"],
            registry=self.registry,
        )
        self.latency = Histogram(
            "fc_request_latency_seconds",
            "Intake request latency",
            ["tenant"],
            registry=self.registry,
        )
        self.delivery_failures = Counter(
            "fc_deliveries_failed_total",
            "Total delivery failures",
            ["tenant"],
            registry=self.registry,
        )

    def observe(self, tenant: str | None, outcome: str, seconds: float) -> None:
        """Record one finished request.

        Args:
            tenant: Site key, or None when the site could not be resolved.
            outcome: Outcome label (``sent``, ``rate_limited``, ...).
            seconds: Time spent in the pipeline.
        """
        label = tenant or UNKNOWN_TENANT
        self.requests.labels(tenant=label, outcome=outcome).inc()
        self.latency.labels(tenant=label).observe(seconds)

    def inc_delivery_failure(self, tenant: str) -> None:
        self.delivery_failures.labels(tenant=tenant or UNKNOWN_TENANT).inc()

    def generate_latest(self) -> bytes:
        """Export all metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)
