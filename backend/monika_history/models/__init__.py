"""
Database models for the history file.
"""
from monika_history.models.request_log import RequestLog
from monika_history.models.notification_log import NotificationLog

__all__ = [
    "RequestLog",
    "NotificationLog",
]
