"""
Base location database model.

A base location is the warehouse / office a user works out of. Dispatch
queues and trip cancellation are scoped by it.
"""

from sqlalchemy import Column, String
from backend.app.db.session import Base


class BaseLocation(Base):
    __tablename__ = "base_location"
    
    id = Column(String(50), primary_key=True)
    name = Column(String(100), nullable=False)
    
    def __repr__(self):
        return f"<BaseLocation(id='{self.id}', name='{self.name}')>"
