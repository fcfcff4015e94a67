"""
Customer database model.

Delivery destinations, upserted as a side effect of scanning.
"""

from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Customer(Base):
    """
    Customer master data.
    
    Geo coordinates are only written by a delivery-location update, never by
    a scan, so addresses typed on the ERP side cannot overwrite them.
    """
    __tablename__ = "customer"
    
    id = Column(String(50), primary_key=True)
    firm_name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    pincode = Column(String(20), nullable=True)
    phone = Column(String(20), nullable=True)
    
    # Geolocation
    geo_latitude = Column(String(20), nullable=True)
    geo_longitude = Column(String(20), nullable=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Customer(id='{self.id}', firm='{self.firm_name}', city='{self.city}')>"
