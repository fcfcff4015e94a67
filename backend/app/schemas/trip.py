"""
Trip schemas.

Schemas for trip creation, lifecycle actions and run sheets.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from backend.app.models.enums import TripStatus
from backend.app.schemas.doc import DocResponse
from backend.app.schemas.tracking import GeoPoint


class CreateTripRequest(BaseModel):
    """Schema for grouping dispatch-queue documents into a trip."""
    route: str = Field(..., min_length=1, max_length=100)
    user_ids: List[str] = Field(..., min_length=1, description="Scanning users whose documents are loaded")
    driver_id: str = Field(..., min_length=1)
    vehicle_nbr: str = Field(..., min_length=1, max_length=25)


class DropOffLotRequest(BaseModel):
    lot_heading: str = Field(..., min_length=1)


class TripActionResult(BaseModel):
    """Outcome of a trip lifecycle action."""
    success: bool
    message: str
    status_code: int = 200
    trip_id: Optional[int] = None
    documents_loaded: Optional[int] = None
    marked_undelivered_count: Optional[int] = None


class AvailableDriver(BaseModel):
    id: str
    person_name: str
    base_location_id: Optional[str] = None
    base_location_name: Optional[str] = None
    vehicle_nbr: Optional[str] = None


class TripSummary(BaseModel):
    """Trip header as shown in listings and on the run sheet."""
    trip_id: int
    route: str
    status: TripStatus
    created_by_id: str
    created_by: Optional[str] = None
    driver_id: str
    driver_name: Optional[str] = None
    vehicle_nbr: str
    creator_location: Optional[str] = None
    driver_location: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None
    driver_last_known_location: Optional[GeoPoint] = None
    total_direct_deliveries: int = 0
    pending_direct_deliveries: int = 0
    pending_lot_drop_offs: int = 0
    delivery_count_status_msg: str = ""
    drop_off_count_status_msg: str = ""


class DocGroup(BaseModel):
    """One lot (or the direct-deliveries group) on a run sheet."""
    heading: str
    droppable: bool
    drop_off_completed: bool
    show_drop_off_button: bool
    expand_group_by_default: bool
    docs: List[DocResponse] = []


class TripDetailsResponse(TripSummary):
    doc_groups: List[DocGroup] = []


class TripListResponse(BaseModel):
    trips: List[TripSummary]
    total: int
