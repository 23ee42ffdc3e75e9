"""
Prometheus metrics definitions and the MetricsCollector facade.

Code outside this package records metrics through MetricsCollector:

    from support_relay.utils.metrics import MetricsCollector
    MetricsCollector.record_message_routed("direct")
"""

from support_relay.utils.metrics.relay import (
    relay_connections_active,
    relay_connections_total,
    relay_event_duration_seconds,
    relay_frames_dropped_total,
    relay_messages_routed_total,
    relay_persistence_failures_total,
    relay_routing_failures_total,
)


class MetricsCollector:
    """Static facade over the relay metrics."""

    @staticmethod
    def record_connection_opened() -> None:
        relay_connections_total.labels(status="opened").inc()
        relay_connections_active.inc()

    @staticmethod
    def record_connection_closed() -> None:
        relay_connections_active.dec()

    @staticmethod
    def record_bound(role: str) -> None:
        """
        Record a successful identity bind.

        Args:
            role: 'user' or 'admin'
        """
        relay_connections_total.labels(status=f"bound_{role}").inc()

    @staticmethod
    def record_binding_failed() -> None:
        relay_connections_total.labels(status="binding_failed").inc()

    @staticmethod
    def record_message_routed(kind: str) -> None:
        relay_messages_routed_total.labels(kind=kind).inc()

    @staticmethod
    def record_routing_failure(reason: str) -> None:
        relay_routing_failures_total.labels(reason=reason).inc()

    @staticmethod
    def record_persistence_failure() -> None:
        relay_persistence_failures_total.inc()

    @staticmethod
    def record_frame_dropped() -> None:
        relay_frames_dropped_total.inc()

    @staticmethod
    def observe_event_duration(event: str, seconds: float) -> None:
        relay_event_duration_seconds.labels(event=event).observe(seconds)


__all__ = [
    "MetricsCollector",
    "relay_connections_active",
    "relay_connections_total",
    "relay_event_duration_seconds",
    "relay_frames_dropped_total",
    "relay_messages_routed_total",
    "relay_persistence_failures_total",
    "relay_routing_failures_total",
]
