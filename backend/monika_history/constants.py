"""
Application constants with documented reasoning.

This file centralizes "magic numbers" used throughout the codebase,
providing clear documentation for why each value was chosen.
"""

# =============================================================================
# DATABASE
# =============================================================================

# History database file, resolved against the working directory when the
# configured path is relative
DEFAULT_DATABASE_FILENAME = "monika-logs.db"

# SQLite busy timeout - wait for locks before failing
# 5 seconds covers a report cycle marking rows while a probe inserts
SQLITE_BUSY_TIMEOUT_MS = 5000

# =============================================================================
# SYMON REPORTING
# =============================================================================

# Seconds between report cycles when the Symon config has no interval
DEFAULT_REPORT_INTERVAL_SECONDS = 10

# Lower bound for the report interval, keeps a misconfigured agent from
# hammering the collector
MIN_REPORT_INTERVAL_SECONDS = 1

# Collector timeout for handshake and report calls
# One bounded attempt per cycle; a slow collector is retried next interval
HTTP_CLIENT_TIMEOUT_SECONDS = 30

# Status code stored when a probe failed before any HTTP response arrived
TRANSPORT_FAILURE_STATUS_CODE = 0
