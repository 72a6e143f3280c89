"""
Prometheus-compatible metrics for observability.

Tracks key booking indicators:
- Bookings created (by token status)
- Customer resolutions (created vs reused)
- Token minting conflicts and QR encoding failures
- Booking status transitions

Usage:
    from garagebook.lib.metrics import get_metrics_collector

    metrics = get_metrics_collector()
    metrics.increment_bookings(token_status="assigned")

    # Export for Prometheus
    prometheus_output = metrics.export_prometheus()
"""

from typing import Dict, Tuple
from threading import Lock


class MetricsCollector:
    """
    Prometheus-style metrics collector for the booking service.

    Counters:
    - bookings_created_total: Bookings persisted (labels: token_status)
    - customers_resolved_total: Customer resolutions (labels: outcome)
    - token_conflicts_total: Token collisions that forced a re-mint
    - qr_encoding_failures_total: Tokens that could not be rendered
    - booking_transitions_total: Status changes (labels: to_status)

    Thread-safe for concurrent increments.
    """

    HELP_TEXTS = {
        "bookings_created_total": "Total number of bookings created",
        "customers_resolved_total": "Total number of customer resolutions during booking",
        "token_conflicts_total": "Total number of booking token collisions",
        "qr_encoding_failures_total": "Total number of failed QR renderings",
        "booking_transitions_total": "Total number of booking status transitions",
    }

    def __init__(self):
        self._lock = Lock()

        # Counters: key = (metric_name, labels_tuple), value = count
        self._counters: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], int] = {}

    def _get_counter_key(self, metric_name: str, labels: Dict[str, str]) -> Tuple[str, Tuple[Tuple[str, str], ...]]:
        """Generate unique key for counter with sorted labels."""
        sorted_labels = tuple(sorted(labels.items()))
        return (metric_name, sorted_labels)

    def _increment(self, metric_name: str, labels: Dict[str, str], amount: int = 1):
        """Thread-safe increment of counter."""
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    # ===== Booking Metrics =====

    def increment_bookings(self, token_status: str, amount: int = 1):
        """
        Increment bookings created counter.

        Args:
            token_status: "assigned" or "pending"
            amount: Increment amount (default 1)
        """
        self._increment("bookings_created_total", {"token_status": token_status.lower()}, amount)

    def increment_customers(self, outcome: str, amount: int = 1):
        """Increment customer resolutions (outcome: created, reused)."""
        self._increment("customers_resolved_total", {"outcome": outcome.lower()}, amount)

    def increment_token_conflicts(self, amount: int = 1):
        self._increment("token_conflicts_total", {}, amount)

    def increment_encoding_failures(self, amount: int = 1):
        self._increment("qr_encoding_failures_total", {}, amount)

    def increment_transitions(self, to_status: str, amount: int = 1):
        """Increment booking status transitions."""
        self._increment("booking_transitions_total", {"to_status": to_status.lower()}, amount)

    # ===== Export =====

    def export_prometheus(self) -> str:
        """
        Export all metrics in Prometheus text format.

        Returns:
            Prometheus-compatible text output
        """
        output_lines = []

        # Group counters by metric name
        metrics_by_name: Dict[str, list] = {}
        with self._lock:
            for (metric_name, labels_tuple), value in self._counters.items():
                metrics_by_name.setdefault(metric_name, []).append((dict(labels_tuple), value))

        for metric_name in sorted(metrics_by_name.keys()):
            help_text = self.HELP_TEXTS.get(metric_name, "Counter metric")
            output_lines.append(f"# HELP {metric_name} {help_text}")
            output_lines.append(f"# TYPE {metric_name} counter")

            for labels_dict, value in sorted(metrics_by_name[metric_name], key=lambda x: str(x[0])):
                if labels_dict:
                    labels_str = ",".join([f'{k}="{v}"' for k, v in sorted(labels_dict.items())])
                    output_lines.append(f"{metric_name}{{{labels_str}}} {value}")
                else:
                    output_lines.append(f"{metric_name} {value}")

            output_lines.append("")  # Blank line between metrics

        return "\n".join(output_lines)

    def get_counter_value(self, metric_name: str, labels: Dict[str, str]) -> int:
        """
        Get current value of a specific counter.

        Args:
            metric_name: Name of the metric
            labels: Exact label set

        Returns:
            Current counter value
        """
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    def reset_all(self):
        """Reset all counters (for testing)."""
        with self._lock:
            self._counters.clear()


# Global singleton instance
_metrics_collector: MetricsCollector | None = None
_metrics_lock = Lock()


def get_metrics_collector() -> MetricsCollector:
    """
    Get global metrics collector singleton.

    Returns:
        MetricsCollector instance
    """
    global _metrics_collector
    if _metrics_collector is None:
        with _metrics_lock:
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics():
    """Reset global metrics collector (for testing)."""
    with _metrics_lock:
        if _metrics_collector is not None:
            _metrics_collector.reset_all()
