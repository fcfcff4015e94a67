"""
Trip database model.

A trip is one driver's run over a route, created from the documents sitting
in the dispatch queue.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import TripStatus

class Trip(Base):
    """
    Trip model.
    
    Created SCHEDULED together with a bulk reassignment of its documents.
    ENDED and CANCELLED are terminal.
    """
    __tablename__ = "trip"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    created_by = Column(String(10), ForeignKey('app_user.id'), nullable=False, index=True)
    driven_by = Column(String(10), ForeignKey('app_user.id'), nullable=False, index=True)
    vehicle_nbr = Column(String(25), nullable=False)
    route = Column(String(100), nullable=False)
    
    # Status
    status = Column(Enum(TripStatus), default=TripStatus.SCHEDULED, nullable=False, index=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    last_updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Trip(id={self.id}, route='{self.route}', status='{self.status.value}')>"
