"""
Typed history entries and the values the probe and notification layers hand in.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator

from monika_history.constants import TRANSPORT_FAILURE_STATUS_CODE


class LogKind(str, Enum):
    """History tables."""
    REQUEST = "request"
    NOTIFICATION = "notification"


class DeliveryStatus(str, Enum):
    """Outcome of one notification delivery attempt."""
    SUCCESS = "success"
    FAILED = "failed"


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    return as_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# =============================================================================
# Inputs (produced outside this package)
# =============================================================================

class ProbeResult(BaseModel):
    """Completed probe request, as produced by the probe runner."""
    probe_id: str
    probe_name: str = ""
    probe_url: str = ""
    status_code: int = Field(
        TRANSPORT_FAILURE_STATUS_CODE,
        description="HTTP status observed, 0 when no response was received"
    )
    response_time_ms: Optional[int] = Field(None, ge=0, description="Latency, null if no response")
    error_message: str = ""


class NotificationDeliveryResult(BaseModel):
    """Completed notification attempt, as produced by a channel sender."""
    notification_channel_id: str
    channel_type: str
    status: DeliveryStatus
    probe_id: Optional[str] = None
    alert_id: Optional[str] = None
    message: str = ""


# =============================================================================
# Stored entries
# =============================================================================

class RequestLogEntry(BaseModel):
    """A row of the request history table."""
    id: int
    created_at: datetime
    probe_id: str
    probe_name: str
    probe_url: str
    status_code: int
    response_time_ms: Optional[int] = None
    error_message: str = ""
    reported: bool = False

    class Config:
        from_attributes = True

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_report_dict(self) -> Dict[str, Any]:
        """Collector representation. Local id and reported flag are left out."""
        return {
            "created_at": format_timestamp(self.created_at),
            "probe_id": self.probe_id,
            "probe_name": self.probe_name,
            "probe_url": self.probe_url,
            "status_code": self.status_code,
            "response_time": self.response_time_ms,
            "error_resp": self.error_message,
        }


class NotificationLogEntry(BaseModel):
    """A row of the notification history table."""
    id: int
    created_at: datetime
    notification_channel_id: str
    channel_type: str
    status: DeliveryStatus
    probe_id: Optional[str] = None
    alert_id: Optional[str] = None
    message: str = ""
    reported: bool = False

    class Config:
        from_attributes = True

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_report_dict(self) -> Dict[str, Any]:
        """Collector representation. Local id and reported flag are left out."""
        return {
            "created_at": format_timestamp(self.created_at),
            "probe_id": self.probe_id,
            "alert_id": self.alert_id,
            "notification_id": self.notification_channel_id,
            "channel": self.channel_type,
            "status": self.status.value,
            "message": self.message,
        }


class UnreportedBatch(BaseModel):
    """Snapshot of every unreported row across both tables."""
    requests: List[RequestLogEntry] = Field(default_factory=list)
    notifications: List[NotificationLogEntry] = Field(default_factory=list)
    generation: int = Field(0, description="Store flush generation the rows were read in")

    @property
    def is_empty(self) -> bool:
        return not self.requests and not self.notifications

    @property
    def request_ids(self) -> List[int]:
        return [entry.id for entry in self.requests]

    @property
    def notification_ids(self) -> List[int]:
        return [entry.id for entry in self.notifications]

    def to_report_data(self) -> Dict[str, List[Dict[str, Any]]]:
        """The ``data`` member of a report payload."""
        return {
            "requests": [entry.to_report_dict() for entry in self.requests],
            "notifications": [entry.to_report_dict() for entry in self.notifications],
        }
