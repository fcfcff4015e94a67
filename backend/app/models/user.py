"""
App user database models.

Users are identified by their mobile number. Roles are held in a junction
table so one user may scan, create trips and drive.
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import UserRole

class AppUser(Base):
    """
    Application user (scanner, trip creator, driver or admin).
    """
    __tablename__ = "app_user"
    
    id = Column(String(10), primary_key=True)  # mobile number
    person_name = Column(String(50), nullable=False)
    base_location_id = Column(String(50), ForeignKey('base_location.id'), nullable=True, index=True)
    vehicle_nbr = Column(String(25), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<AppUser(id='{self.id}', name='{self.person_name}', base_location='{self.base_location_id}')>"

class AppUserRole(Base):
    """Role assignment for an app user."""
    __tablename__ = "app_user_x_user_role"
    
    app_user_id = Column(String(10), ForeignKey('app_user.id'), primary_key=True)
    role_name = Column(Enum(UserRole), primary_key=True)
    
    def __repr__(self):
        return f"<AppUserRole(user='{self.app_user_id}', role='{self.role_name.value}')>"
