"""
Exception taxonomy for the history store and the Symon reporter.

Upload failures are not exceptions: a failed report cycle is the
``ReportOutcome.FAILED`` value, since the collector being unavailable is routine.
"""


class MonikaHistoryError(Exception):
    """Base class for every error raised by this package."""


class StoreError(MonikaHistoryError):
    """Local persistence failure."""


class StoreOpenError(StoreError):
    """The history file could not be opened, created or validated."""


class StoreWriteError(StoreError):
    """An insert, mark or flush did not commit."""


class StoreClosedError(StoreError):
    """The store is not open."""


class HandshakeError(MonikaHistoryError):
    """Symon could not be reached at startup, or reporting began without a handshake."""
