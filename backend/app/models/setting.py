"""
Setting database model.

Tunable key/value parameters, served at runtime by the settings cache.
"""

from sqlalchemy import Column, String
from backend.app.db.session import Base


class Setting(Base):
    __tablename__ = "setting"
    
    id = Column(String(50), primary_key=True)
    setting_name = Column(String(100), unique=True, nullable=False, index=True)
    setting_value = Column(String(100), nullable=False)
    
    def __repr__(self):
        return f"<Setting(name='{self.setting_name}', value='{self.setting_value}')>"
