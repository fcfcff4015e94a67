"""
Document database model.

A document is one shipment unit (an ERP invoice) moving from the warehouse
to a customer.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import DocStatus

class Doc(Base):
    """
    Document model.
    
    `trip_id` is set exactly while the status is TRIP_SCHEDULED or ON_TRIP;
    both columns are always written together. `last_trip_id` keeps the most
    recent trip the document was loaded onto after it leaves the trip
    (delivered, failed or dropped at a transit hub).
    """
    __tablename__ = "doc"
    
    id = Column(String(50), primary_key=True)
    status = Column(Enum(DocStatus), nullable=False, index=True)
    last_scanned_by = Column(String(10), nullable=False, index=True)
    origin_warehouse = Column(String(100), nullable=True)
    
    trip_id = Column(Integer, ForeignKey('trip.id'), nullable=True, index=True)
    last_trip_id = Column(Integer, ForeignKey('trip.id'), nullable=True, index=True)
    
    doc_date = Column(DateTime(timezone=True), nullable=False)
    doc_amount = Column(Numeric(15, 2), nullable=False)
    route = Column(String(100), nullable=False, index=True)
    lot = Column(String(100), nullable=True)
    comment = Column(Text, nullable=True)
    customer_id = Column(String(50), ForeignKey('customer.id'), nullable=False, index=True)
    
    # Populated when the document's lot is dropped at a transit hub
    transit_hub_latitude = Column(String(20), nullable=True)
    transit_hub_longitude = Column(String(20), nullable=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<Doc(id='{self.id}', route='{self.route}', status='{self.status.value}', trip_id={self.trip_id})>"
