"""
Trip API Endpoints.

Trip creation, the driver's lifecycle actions and run sheets.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, Body
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_services
from backend.app.core.guards import require_role, require_admin
from backend.app.db.session import get_db
from backend.app.models.enums import UserRole
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.trip import (
    AvailableDriver, CreateTripRequest, DropOffLotRequest,
    TripActionResult, TripDetailsResponse, TripListResponse
)

router = APIRouter(prefix="/trips", tags=["Trips"])

trip_creator = require_role([UserRole.APP_TRIP_CREATOR])
driver = require_role([UserRole.APP_TRIP_DRIVER])
trip_staff = require_role([UserRole.APP_TRIP_CREATOR, UserRole.APP_TRIP_DRIVER])


@router.post("", response_model=TripActionResult)
async def create_trip(
    request: CreateTripRequest = Body(...),
    current_user: CurrentUser = Depends(trip_creator),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    """
    Create a trip from the dispatch queue.
    
    Loads every READY_FOR_DISPATCH document of the route scanned by the
    selected users.
    """
    result = await services.trips.create_trip(db, request, current_user)
    return JSONResponse(status_code=result.status_code, content=result.model_dump())


@router.get("/available-drivers", response_model=List[AvailableDriver])
async def available_drivers(
    current_user: CurrentUser = Depends(trip_creator),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.trips.get_available_drivers(db, current_user)


@router.get("/mine", response_model=TripListResponse)
async def my_trips(
    current_user: CurrentUser = Depends(driver),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    trips = await services.trips.get_my_trips(db, current_user)
    return TripListResponse(trips=trips, total=len(trips))


@router.get("/scheduled", response_model=TripListResponse)
async def scheduled_trips(
    current_user: CurrentUser = Depends(trip_creator),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    """SCHEDULED trips of the caller's base location (all locations for admins)."""
    if current_user.has_role(UserRole.APP_ADMIN):
        trips = await services.trips.get_all_scheduled_trips(db)
    else:
        trips = await services.trips.get_scheduled_trips_from_same_location(db, current_user)
    return TripListResponse(trips=trips, total=len(trips))


@router.get("/all", response_model=TripListResponse)
async def all_trips(
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    trips = await services.trips.get_all_trips(db)
    return TripListResponse(trips=trips, total=len(trips))


@router.get("/{trip_id}", response_model=TripDetailsResponse)
async def trip_details(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: CurrentUser = Depends(trip_staff),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.trips.get_trip_details(db, trip_id)


@router.post("/{trip_id}/start", response_model=TripActionResult)
async def start_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: CurrentUser = Depends(driver),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.trips.start_trip(db, trip_id, current_user)


@router.post("/{trip_id}/drop-off", response_model=TripActionResult)
async def drop_off_lot(
    trip_id: int = Path(..., description="Trip ID"),
    request: DropOffLotRequest = Body(...),
    current_user: CurrentUser = Depends(driver),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.trips.drop_off_lot(db, trip_id, request.lot_heading, current_user)


@router.post("/{trip_id}/end", response_model=TripActionResult)
async def end_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: CurrentUser = Depends(driver),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.trips.end_trip(db, trip_id, current_user)


@router.post("/{trip_id}/force-end", response_model=TripActionResult)
async def force_end_trip(
    trip_id: int = Path(..., description="Trip ID"),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.trips.force_end_trip(db, trip_id, admin)


@router.post("/{trip_id}/cancel", response_model=TripActionResult)
async def cancel_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: CurrentUser = Depends(trip_creator),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.trips.cancel_trip(db, trip_id, current_user)
