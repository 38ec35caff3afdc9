"""
Prometheus metrics definitions and utilities.

Metrics are defined in ``relay`` and emitted through the MetricsCollector
facade:

    from realtime_relay.utils.metrics import MetricsCollector
    MetricsCollector.record_frame_forwarded("client_to_upstream", 42)
"""

from realtime_relay.utils.metrics.collector import MetricsCollector
from realtime_relay.utils.metrics.relay import (
    get_active_sessions,
    relay_bytes_forwarded_total,
    relay_connections_rejected_total,
    relay_messages_forwarded_total,
    relay_session_duration_seconds,
    relay_sessions_active,
    relay_sessions_total,
    relay_upstream_connect_duration_seconds,
)

__all__ = [
    "MetricsCollector",
    "get_active_sessions",
    "relay_bytes_forwarded_total",
    "relay_connections_rejected_total",
    "relay_messages_forwarded_total",
    "relay_session_duration_seconds",
    "relay_sessions_active",
    "relay_sessions_total",
    "relay_upstream_connect_duration_seconds",
]
