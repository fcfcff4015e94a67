"""
Tracking access log database model.

Every public tracking lookup is recorded here.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class DocTrackingAccess(Base):
    __tablename__ = "doc_tracking_access"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    doc_id = Column(String(50), nullable=False, index=True)
    customer_id = Column(String(50), nullable=False)
    accessed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    ip_address = Column(String(50), nullable=True)
    user_agent = Column(String(500), nullable=True)
    
    def __repr__(self):
        return f"<DocTrackingAccess(doc_id='{self.doc_id}', ip='{self.ip_address}')>"
