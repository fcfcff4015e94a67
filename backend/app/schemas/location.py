"""
Location heartbeat schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List


class LocationRegisterRequest(BaseModel):
    """Schema for a GPS heartbeat from the mobile app."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class LocationRegisterResponse(BaseModel):
    success: bool
    message: str
    location_id: str


class LocationResponse(BaseModel):
    id: str
    app_user_id: str
    geo_latitude: str
    geo_longitude: str
    received_at: datetime
    
    class Config:
        from_attributes = True


class UserLocationsResponse(BaseModel):
    user_id: str
    person_name: str
    since: datetime
    locations: List[LocationResponse] = []
