"""
Document schemas.

Request and response schemas for scanning, delivery marking and the
dispatch queue.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from backend.app.models.enums import DocStatus


class ScanResult(BaseModel):
    """
    Outcome of a scan.
    
    Business-rule rejections are reported here rather than raised, so the
    scanning device always gets a stable answer.
    """
    success: bool
    message: str
    doc_id: str
    status_code: int = 200


class UndoScansResult(BaseModel):
    success: bool
    message: str
    deleted_docs: int = 0
    status_code: int = 200


class MarkDeliveryRequest(BaseModel):
    """Schema for recording a successful delivery."""
    signature: Optional[str] = Field(None, description="Base64 encoded signature image")
    comment: Optional[str] = Field(None, max_length=1000)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class MarkDeliveryFailedRequest(BaseModel):
    """Schema for recording a failed delivery attempt."""
    comment: str = Field(..., min_length=1, max_length=1000, description="Reason for failure")


class DeliveryResult(BaseModel):
    success: bool
    message: str
    doc_id: str
    status: DocStatus
    status_code: int = 200


class DispatchQueueUser(BaseModel):
    """Documents one user scanned onto a route."""
    user_id: str
    person_name: Optional[str] = None
    doc_count: int


class DispatchQueueRoute(BaseModel):
    route: str
    doc_count: int
    users: List[DispatchQueueUser] = []


class DispatchQueueResponse(BaseModel):
    success: bool = True
    message: str
    total_docs: int
    routes: List[DispatchQueueRoute] = []


class DocTripInfo(BaseModel):
    doc_id: str
    doc_status: DocStatus
    trip_id: Optional[int] = None
    trip_status: Optional[str] = None


class DocResponse(BaseModel):
    """Document with its customer details, as shown on a run sheet."""
    id: str
    status: DocStatus
    last_scanned_by: str
    origin_warehouse: Optional[str] = None
    trip_id: Optional[int] = None
    doc_date: datetime
    doc_amount: Decimal
    route: str
    lot: Optional[str] = None
    comment: Optional[str] = None
    customer_id: str
    transit_hub_latitude: Optional[str] = None
    transit_hub_longitude: Optional[str] = None
    created_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None
    
    customer_firm_name: Optional[str] = None
    customer_address: Optional[str] = None
    customer_city: Optional[str] = None
    customer_pincode: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_geo_latitude: Optional[str] = None
    customer_geo_longitude: Optional[str] = None


class MockDataRequest(BaseModel):
    """Parameters for generating mock source documents."""
    count: int = Field(10, ge=1, le=100)
    real_phone_number: Optional[str] = Field(None, description="Phone used for the first mock document")
    real_route: Optional[str] = None
    real_lot: Optional[str] = None


class MockDataResponse(BaseModel):
    message: str
    count: int
    doc_ids: List[str]


class PurgeMockDataResponse(BaseModel):
    deleted_docs: int
    deleted_customers: int


class TrackingLinkResponse(BaseModel):
    """Tracking URL handed to the ERP for a document out on (or past) a trip."""
    doc_id: str
    status: DocStatus
    tracking_url: str
