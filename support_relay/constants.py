"""
Application-level constants for hardcoded relay behavior.

These values define protocol details and internal timing and are not meant
to be changed via environment variables. For configurable values (queue
sizes, sweep timing, database pool) see support_relay/settings.py.
"""

# ============================================================================
# Identities
# ============================================================================

# Fixed identity id of the singleton operator
ADMIN_IDENTITY_ID = "admin"

# Prefix length taken from a connection id for generated user names
GENERATED_NAME_ID_CHARS = 5


# ============================================================================
# WebSocket Protocol Constants
# ============================================================================

# WebSocket close code used when a superseded connection is swept
WS_GOING_AWAY_CODE = 1001

# Timeout (seconds) when closing WebSocket connections gracefully
WS_CLOSE_TIMEOUT_SECONDS = 5


# ============================================================================
# Background Task Behavior
# ============================================================================

# Backoff delay (seconds) when a background task encounters an error
TASK_ERROR_BACKOFF_SECONDS = 1


# ============================================================================
# Logging
# ============================================================================

# Upper bound for a single JSON log line
MAX_LOG_SIZE_BYTES = 100_000
