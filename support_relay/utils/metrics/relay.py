"""
Prometheus metrics for the relay.

Tracks live connections, routed messages, routing failures and dropped
persistence writes.
"""

from support_relay.utils.metrics._helpers import (
    _get_or_create_counter,
    _get_or_create_gauge,
    _get_or_create_histogram,
)

relay_connections_active = _get_or_create_gauge(
    "relay_connections_active", "Number of open relay WebSocket connections"
)

relay_connections_total = _get_or_create_counter(
    "relay_connections_total",
    "Total relay WebSocket connections",
    ["status"],  # opened, bound_user, bound_admin, binding_failed
)

relay_messages_routed_total = _get_or_create_counter(
    "relay_messages_routed_total",
    "Messages successfully routed",
    ["kind"],  # direct, admin_reply, broadcast
)

relay_routing_failures_total = _get_or_create_counter(
    "relay_routing_failures_total",
    "Inbound events rejected at the operation boundary",
    ["reason"],
)

relay_persistence_failures_total = _get_or_create_counter(
    "relay_persistence_failures_total",
    "Message records that could not be persisted",
)

relay_frames_dropped_total = _get_or_create_counter(
    "relay_frames_dropped_total",
    "Outbound frames dropped because the connection buffer was full or gone",
)

relay_event_duration_seconds = _get_or_create_histogram(
    "relay_event_duration_seconds",
    "Inbound event handling duration in seconds",
    ["event"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)
