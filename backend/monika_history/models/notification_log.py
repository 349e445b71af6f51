"""
Notification delivery history model.
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime
from monika_history.database import Base


class NotificationLog(Base):
    """One row per notification delivery attempt."""

    __tablename__ = "notification_logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, nullable=False, index=True)  # naive UTC

    # What triggered the notification
    probe_id = Column(String(255), nullable=True, index=True)
    alert_id = Column(String(255), nullable=True)

    # Which channel handled it
    notification_channel_id = Column(String(255), nullable=False)
    channel_type = Column(String(50), nullable=False)  # smtp, webhook, mailgun, sendgrid, ...

    status = Column(String(20), nullable=False)  # success, failed
    message = Column(Text, nullable=False, default="")

    reported = Column(Boolean, nullable=False, default=False, index=True)
