"""
Probe request history model.
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime
from monika_history.database import Base


class RequestLog(Base):
    """One row per probe request execution."""

    __tablename__ = "request_logs"
    # AUTOINCREMENT keeps ids from being reused; flush drops the table and its sequence
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, nullable=False, index=True)  # naive UTC

    probe_id = Column(String(255), nullable=False, index=True)
    probe_name = Column(String(255), nullable=False, default="")
    probe_url = Column(Text, nullable=False, default="")

    status_code = Column(Integer, nullable=False)  # 0 = no response
    response_time_ms = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=False, default="")

    reported = Column(Boolean, nullable=False, default=False, index=True)
