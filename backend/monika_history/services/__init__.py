"""
Service layer for monika-history.
"""
from monika_history.services.record_store import RecordStore, open_store
from monika_history.services.history import LogWriter, UnreportedBatchReader
from monika_history.services.config_fingerprint import fingerprint
from monika_history.services.reporter import SymonReporter, ReportOutcome, HandshakeOutcome, ReporterState

__all__ = [
    "RecordStore",
    "open_store",
    "LogWriter",
    "UnreportedBatchReader",
    "fingerprint",
    "SymonReporter",
    "ReportOutcome",
    "HandshakeOutcome",
    "ReporterState",
]
