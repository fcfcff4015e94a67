"""
Location API Endpoints.

GPS heartbeats from the mobile app and their history.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Body, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_role
from backend.app.db.session import get_db
from backend.app.models.enums import UserRole
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.location import (
    LocationRegisterRequest, LocationRegisterResponse, UserLocationsResponse
)
from backend.app.services.location_service import LocationService

router = APIRouter(prefix="/locations", tags=["Locations"])


@router.post("", response_model=LocationRegisterResponse, status_code=201)
async def register_location(
    request: LocationRegisterRequest = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await LocationService.register_location(db, request, current_user)


@router.get("/users/{user_id}", response_model=UserLocationsResponse)
async def user_locations(
    user_id: str = Path(...),
    start: Optional[str] = Query(None, description="Start time in epoch milliseconds"),
    current_user: CurrentUser = Depends(require_role([UserRole.APP_TRIP_CREATOR])),
    db: AsyncSession = Depends(get_db)
):
    """Heartbeats of a user since `start` (default: last 48 hours), newest first."""
    return await LocationService.get_user_locations(db, user_id, start)
