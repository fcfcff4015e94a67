"""
Signature database model.

One row per delivered document; its timestamp is the delivery time.
"""

from sqlalchemy import Column, String, LargeBinary, DateTime, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Signature(Base):
    __tablename__ = "signature"
    
    doc_id = Column(String(50), ForeignKey('doc.id', ondelete="CASCADE"), primary_key=True)
    signature = Column(LargeBinary, nullable=False)
    last_updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Signature(doc_id='{self.doc_id}', signed_at={self.last_updated_at})>"
