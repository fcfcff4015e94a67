"""
Location heartbeat database model.

Append-only GPS pings from the mobile app, used to approximate a driver's
live position.
"""

import uuid

from sqlalchemy import Column, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class LocationHeartbeat(Base):
    """
    Location heartbeat model.
    
    Never updated; queried by most recent within a window.
    """
    __tablename__ = "location_heartbeat"
    
    id = Column(String(100), primary_key=True, default=lambda: str(uuid.uuid4()))
    app_user_id = Column(String(10), ForeignKey('app_user.id'), nullable=False, index=True)
    
    # GPS coordinates
    geo_latitude = Column(String(20), nullable=False)
    geo_longitude = Column(String(20), nullable=False)
    
    received_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<LocationHeartbeat(user='{self.app_user_id}', lat={self.geo_latitude}, lng={self.geo_longitude})>"
