"""
Relay-level constants for protocol behavior.

These values define the close codes and reasons clients rely on to tell
failure classes apart, and should NEVER be changed via environment
variables. For configurable values (ports, timeouts, size limits, etc.),
see realtime_relay/settings.py.
"""

# ============================================================================
# WebSocket Close Codes (RFC 6455 / IANA registry)
# ============================================================================

# Clean teardown after either peer closed normally
WS_NORMAL_CLOSURE_CODE = 1000

# Relay is shutting down
WS_GOING_AWAY_CODE = 1001

# Frame exceeded MAX_MESSAGE_SIZE_BYTES
WS_MESSAGE_TOO_BIG_CODE = 1009

# Read/write failure while forwarding
WS_INTERNAL_ERROR_CODE = 1011

# Relay not accepting, or client flooded frames before upstream was ready
WS_TRY_AGAIN_LATER_CODE = 1013

# Upstream connect attempt failed
WS_BAD_GATEWAY_CODE = 1014


# ============================================================================
# Close Reasons
# ============================================================================

# Close reasons must fit in a control frame (123 bytes of UTF-8)
REASON_SHUTTING_DOWN = "relay shutting down"
REASON_NOT_ACCEPTING = "relay not accepting connections"


# ============================================================================
# Upstream Handshake
# ============================================================================

# Header carrying the realtime API beta opt-in
UPSTREAM_BETA_HEADER_NAME = "OpenAI-Beta"

# Handshake statuses treated as a rejected credential
UPSTREAM_AUTH_REJECTED_STATUSES = frozenset({401, 403})


# ============================================================================
# Forwarding Directions
# ============================================================================

CLIENT_TO_UPSTREAM = "client_to_upstream"
UPSTREAM_TO_CLIENT = "upstream_to_client"
