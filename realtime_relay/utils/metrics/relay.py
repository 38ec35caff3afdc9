"""
Prometheus metrics for relay session monitoring.

This module defines metrics for tracking session counts and outcomes,
upstream connect latency and forwarded traffic per direction.
"""

from realtime_relay.utils.metrics._helpers import (
    _get_or_create_counter,
    _get_or_create_gauge,
    _get_or_create_histogram,
)

# Session Metrics
relay_sessions_active = _get_or_create_gauge(
    "relay_sessions_active", "Number of registered relay sessions"
)

relay_sessions_total = _get_or_create_counter(
    "relay_sessions_total",
    "Total finished relay sessions",
    # client_closed, upstream_closed, shutdown, upstream_unavailable,
    # forwarding_error, oversized_message, backlog_overflow, internal_error
    ["outcome"],
)

relay_session_duration_seconds = _get_or_create_histogram(
    "relay_session_duration_seconds",
    "Relay session lifetime in seconds",
    buckets=(1.0, 5.0, 15.0, 30.0, 60.0, 300.0, 900.0, 1800.0, 3600.0),
)

relay_connections_rejected_total = _get_or_create_counter(
    "relay_connections_rejected_total",
    "Client connections rejected before a session was created",
    ["reason"],
)

# Upstream Metrics
relay_upstream_connect_duration_seconds = _get_or_create_histogram(
    "relay_upstream_connect_duration_seconds",
    "Upstream WebSocket connect duration in seconds",
    ["result"],  # success, network, authentication, protocol, timeout
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Forwarding Metrics
relay_messages_forwarded_total = _get_or_create_counter(
    "relay_messages_forwarded_total",
    "Total frames forwarded",
    ["direction"],  # client_to_upstream, upstream_to_client
)

relay_bytes_forwarded_total = _get_or_create_counter(
    "relay_bytes_forwarded_total",
    "Total payload bytes forwarded",
    ["direction"],
)


def get_active_sessions() -> int:
    """
    Get the current number of registered sessions from the gauge.

    Returns:
        int: Number of registered sessions.
    """
    try:
        return int(relay_sessions_active._value.get())
    except (AttributeError, ValueError):
        return 0


__all__ = [
    "relay_sessions_active",
    "relay_sessions_total",
    "relay_session_duration_seconds",
    "relay_connections_rejected_total",
    "relay_upstream_connect_duration_seconds",
    "relay_messages_forwarded_total",
    "relay_bytes_forwarded_total",
    "get_active_sessions",
]
