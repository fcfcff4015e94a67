"""
ERP outbound call log database model.

One row per call made to the ERP (document lookups and status sync),
successful or not.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class ApiOutboundLog(Base):
    __tablename__ = "api_outbound_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    fired_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    endpoint = Column(Text, nullable=False)
    method = Column(String(10), nullable=False)
    http_status = Column(Integer, nullable=True)
    response_time_ms = Column(Integer, nullable=True)

    request_body = Column(JSON, nullable=True)
    response_body = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    success = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<ApiOutboundLog(id={self.id}, {self.method} {self.endpoint}, status={self.http_status})>"
