"""
Delivery report schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional
from backend.app.models.enums import DocStatus, TripStatus


class DeliveryReportQuery(BaseModel):
    """
    Filters for the delivery report.

    Without both dates the report covers the last month.
    `customer_city` accepts a comma separated list.
    """
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    customer_id: Optional[str] = None
    doc_id: Optional[str] = Field(None, description="Fragment of the document id")
    customer_city: Optional[str] = None
    route: Optional[str] = None
    trip_id: Optional[int] = Field(None, ge=1)
    driver_user_id: Optional[str] = None
    origin_warehouse: Optional[str] = None
    trip_start_location: Optional[str] = Field(None, description="Base location id of the trip creator")


class DeliveryReportItem(BaseModel):
    doc_id: str
    status: DocStatus
    origin_warehouse: str = ""
    doc_date: datetime
    trip_id: int
    comment: str = ""
    customer_id: str
    last_updated_at: Optional[datetime] = None

    firm_name: str = ""
    address: str = ""
    city: str = ""
    pincode: str = ""

    created_by: str = ""
    created_by_person_name: str = ""
    created_by_location: str = ""
    driven_by: str = ""
    driver_name: str = ""
    vehicle_nbr: str = ""
    route: str = ""
    trip_status: Optional[TripStatus] = None


class DeliveryReportResponse(BaseModel):
    success: bool = True
    message: str
    data: List[DeliveryReportItem] = []
    total_records: int
    status_code: int = 200
