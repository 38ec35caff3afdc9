"""
Facade for centralized metrics emission.

Provides high-level methods for recording metrics without exposing
Prometheus implementation details to the relay core.
"""

from realtime_relay.utils.metrics.relay import (
    relay_bytes_forwarded_total,
    relay_connections_rejected_total,
    relay_messages_forwarded_total,
    relay_session_duration_seconds,
    relay_sessions_active,
    relay_sessions_total,
    relay_upstream_connect_duration_seconds,
)


class MetricsCollector:
    """
    Centralized facade for relay Prometheus metrics.

    All methods are static for easy use without instantiation.
    """

    # ========== Session Metrics ==========

    @staticmethod
    def set_active_sessions(count: int) -> None:
        """Record the current registry size."""
        relay_sessions_active.set(count)

    @staticmethod
    def record_session_finished(outcome: str, duration: float) -> None:
        """
        Record a session reaching CLOSED.

        Args:
            outcome: Outcome label (see relay_sessions_total).
            duration: Session lifetime in seconds.
        """
        relay_sessions_total.labels(outcome=outcome).inc()
        relay_session_duration_seconds.observe(duration)

    @staticmethod
    def record_connection_rejected(reason: str) -> None:
        """Record a client connection turned away before session creation."""
        relay_connections_rejected_total.labels(reason=reason).inc()

    # ========== Upstream Metrics ==========

    @staticmethod
    def record_upstream_connect(result: str, duration: float) -> None:
        """
        Record an upstream connect attempt.

        Args:
            result: "success" or the UpstreamFailure value.
            duration: Attempt duration in seconds.
        """
        relay_upstream_connect_duration_seconds.labels(result=result).observe(
            duration
        )

    # ========== Forwarding Metrics ==========

    @staticmethod
    def record_frame_forwarded(direction: str, size: int) -> None:
        """Record one frame forwarded in the given direction."""
        relay_messages_forwarded_total.labels(direction=direction).inc()
        relay_bytes_forwarded_total.labels(direction=direction).inc(size)
