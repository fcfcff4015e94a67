"""
Customer schemas.
"""

from pydantic import BaseModel
from typing import Optional


class CustomerLightResponse(BaseModel):
    id: str
    firm_name: str
    city: Optional[str] = None
    
    class Config:
        from_attributes = True


class CustomerResponse(CustomerLightResponse):
    address: Optional[str] = None
    pincode: Optional[str] = None
    phone: Optional[str] = None
    geo_latitude: Optional[str] = None
    geo_longitude: Optional[str] = None
