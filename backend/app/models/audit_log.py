"""
Audit Log Database Model.

Tracks trip lifecycle and administrative actions (force-end, setting changes)
so that supervisors can reconstruct who did what to a trip.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for trip lifecycle and admin actions.
    
    Events logged:
    - TRIP_CREATED / TRIP_STARTED / TRIP_ENDED
    - TRIP_FORCE_ENDED / TRIP_CANCELLED
    - LOT_DROPPED_OFF
    - SETTING_UPDATED
    """
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Who performed the action (None for system actions)
    actor_id = Column(String(10), index=True, nullable=True)
    actor_name = Column(String(100), nullable=True)
    
    # What action was performed
    action = Column(String(100), nullable=False, index=True)
    
    # Trip affected by the action, if any
    trip_id = Column(Integer, index=True, nullable=True)
    
    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)
    
    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_name}, trip={self.trip_id})>"
