"""
Unit tests for metrics collection and Prometheus export.
"""
import pytest

from garagebook.lib.metrics import MetricsCollector, get_metrics_collector, reset_metrics


@pytest.mark.unit
def test_metrics_collector_initialization(metrics):
    """Test metrics collector initializes with empty counters."""
    output = metrics.export_prometheus()
    assert output == ""  # No metrics yet


@pytest.mark.unit
def test_increment_bookings(metrics):
    metrics.increment_bookings(token_status="assigned")
    metrics.increment_bookings(token_status="ASSIGNED", amount=2)
    metrics.increment_bookings(token_status="pending")

    assert metrics.get_counter_value("bookings_created_total", {"token_status": "assigned"}) == 3
    assert metrics.get_counter_value("bookings_created_total", {"token_status": "pending"}) == 1


@pytest.mark.unit
def test_increment_customers_by_outcome(metrics):
    metrics.increment_customers("created")
    metrics.increment_customers("reused", amount=4)

    assert metrics.get_counter_value("customers_resolved_total", {"outcome": "created"}) == 1
    assert metrics.get_counter_value("customers_resolved_total", {"outcome": "reused"}) == 4


@pytest.mark.unit
def test_unlabeled_counters(metrics):
    metrics.increment_token_conflicts()
    metrics.increment_token_conflicts()
    metrics.increment_encoding_failures()

    assert metrics.get_counter_value("token_conflicts_total", {}) == 2
    assert metrics.get_counter_value("qr_encoding_failures_total", {}) == 1


@pytest.mark.unit
def test_get_counter_value_nonexistent(metrics):
    """Test getting value of non-existent counter returns 0."""
    assert metrics.get_counter_value("booking_transitions_total", {"to_status": "completed"}) == 0


@pytest.mark.unit
def test_export_prometheus_format(metrics):
    """Test Prometheus export format."""
    metrics.increment_bookings("assigned", amount=5)
    metrics.increment_transitions("completed")
    metrics.increment_token_conflicts()

    output = metrics.export_prometheus()

    assert "# HELP bookings_created_total Total number of bookings created" in output
    assert "# TYPE bookings_created_total counter" in output
    assert 'bookings_created_total{token_status="assigned"} 5' in output
    assert 'booking_transitions_total{to_status="completed"} 1' in output
    assert "token_conflicts_total 1" in output
    assert "token_conflicts_total{}" not in output


@pytest.mark.unit
def test_export_sorted_by_metric_name(metrics):
    metrics.increment_transitions("in_progress")
    metrics.increment_bookings("assigned")

    output = metrics.export_prometheus()
    assert output.index("booking_transitions_total") < output.index("bookings_created_total")


@pytest.mark.unit
def test_reset_all(metrics):
    metrics.increment_bookings("assigned")
    metrics.reset_all()

    assert metrics.export_prometheus() == ""


@pytest.mark.unit
def test_global_singleton():
    """Global collector is shared and resettable."""
    collector = get_metrics_collector()
    assert collector is get_metrics_collector()

    collector.increment_encoding_failures()
    reset_metrics()
    assert collector.get_counter_value("qr_encoding_failures_total", {}) == 0


@pytest.mark.unit
def test_collectors_are_independent():
    first = MetricsCollector()
    second = MetricsCollector()
    first.increment_token_conflicts()

    assert second.get_counter_value("token_conflicts_total", {}) == 0
