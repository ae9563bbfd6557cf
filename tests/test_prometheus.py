from prometheus_client import CollectorRegistry

from form_courier.prometheus import IntakeMetrics


def test_observe_counts_per_tenant_and_outcome():
    metrics = IntakeMetrics()
    metrics.observe("acme", "sent", 0.01)
    metrics.observe("acme", "sent", 0.02)
    metrics.observe(None, "unknown_site", 0.001)

    registry = metrics.registry
    assert registry.get_sample_value("fc_requests_total", {"tenant": "acme", "outcome": "sent"}) == 2
    assert registry.get_sample_value("fc_requests_total", {"tenant": "-", "outcome": "unknown_site"}) == 1
    assert registry.get_sample_value("fc_request_latency_seconds_count", {"tenant": "acme"}) == 2


def test_delivery_failures_are_counted():
    metrics = IntakeMetrics()
    metrics.inc_delivery_failure("acme")
    assert metrics.registry.get_sample_value("fc_deliveries_failed_total", {"tenant": "acme"}) == 1


def test_separate_instances_do_not_share_state():
    first = IntakeMetrics()
    second = IntakeMetrics()
    first.observe("acme", "sent", 0.01)

    assert second.registry.get_sample_value("fc_requests_total", {"tenant": "acme", "outcome": "sent"}) is None


def test_custom_registry_and_exposition():
    registry = CollectorRegistry()
    metrics = IntakeMetrics(registry=registry)
    metrics.observe("acme", "rate_limited", 0.0)

    output = metrics.generate_latest().decode()

    assert metrics.registry is registry
    assert "# TYPE fc_requests_total counter" in output
    assert "fc_requests_total{" in output
    assert registry.get_sample_value("fc_requests_total", {"tenant": "acme", "outcome": "rate_limited"}) == 1
