"""
Public tracking schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from backend.app.models.enums import DocStatus


class GeoPoint(BaseModel):
    latitude: str
    longitude: str
    received_at: Optional[datetime] = None  # None for snapshots such as transit hubs


class DocTrackingResponse(BaseModel):
    """
    Customer-facing tracking view.
    
    `eta` is in minutes, -1 when no estimate is available.
    """
    success: bool = True
    message: str = "Document tracking information retrieved successfully"
    doc_id: str
    status: DocStatus
    comment: Optional[str] = None
    delivery_timestamp: Optional[datetime] = None
    customer_location: Optional[GeoPoint] = None
    driver_last_known_location: Optional[GeoPoint] = None
    num_enroute_customers: Optional[int] = None
    enroute_customers_service_time: Optional[int] = None
    eta: Optional[int] = None
