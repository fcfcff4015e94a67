"""
Location Service.

Stores GPS heartbeats from the mobile app and answers "where was this user
last seen" for trips and tracking.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import utcnow
from backend.app.core.config import settings
from backend.app.core.exceptions import BadRequestError, InternalServiceError, ResourceNotFoundError
from backend.app.models.location_heartbeat import LocationHeartbeat
from backend.app.models.user import AppUser
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.location import (
    LocationRegisterRequest, LocationRegisterResponse,
    LocationResponse, UserLocationsResponse
)

logger = logging.getLogger(__name__)

# Accepted range for a caller supplied start time
MIN_START = datetime(2000, 1, 1, tzinfo=timezone.utc)
MAX_START = datetime(2100, 1, 1, tzinfo=timezone.utc)


def parse_start_epoch(start_epoch_ms: Optional[str]) -> Optional[datetime]:
    """
    Parse a start time in epoch milliseconds.
    
    Raises:
        BadRequestError: not a number, or outside 2000-2100
    """
    if start_epoch_ms is None or start_epoch_ms == "":
        return None
    try:
        millis = int(start_epoch_ms)
        start = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        raise BadRequestError("Start time must be epoch milliseconds")
    if start < MIN_START or start >= MAX_START:
        raise BadRequestError("Start time must be between years 2000 and 2100")
    return start


class LocationService:
    
    @staticmethod
    async def register_location(
        db: AsyncSession,
        request: LocationRegisterRequest,
        current_user: CurrentUser
    ) -> LocationRegisterResponse:
        heartbeat = LocationHeartbeat(
            app_user_id=current_user.id,
            geo_latitude=str(request.latitude),
            geo_longitude=str(request.longitude),
            received_at=utcnow(),
        )
        db.add(heartbeat)
        try:
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Failed to store heartbeat for user %s: %s", current_user.id, exc)
            raise InternalServiceError("Failed to register location")
        
        return LocationRegisterResponse(
            success=True,
            message="Location registered successfully",
            location_id=heartbeat.id,
        )
    
    @staticmethod
    async def get_user_locations(
        db: AsyncSession,
        user_id: str,
        start_epoch_ms: Optional[str] = None
    ) -> UserLocationsResponse:
        """Heartbeats of a user since the given start (default: the tracking window), newest first."""
        user = await db.get(AppUser, user_id)
        if user is None:
            raise ResourceNotFoundError("User", user_id)
        
        since = parse_start_epoch(start_epoch_ms)
        if since is None:
            since = utcnow() - timedelta(hours=settings.tracking_window_hours)
        
        result = await db.execute(
            select(LocationHeartbeat)
            .where(
                LocationHeartbeat.app_user_id == user_id,
                LocationHeartbeat.received_at >= since
            )
            .order_by(desc(LocationHeartbeat.received_at))
        )
        
        return UserLocationsResponse(
            user_id=user.id,
            person_name=user.person_name,
            since=since,
            locations=[LocationResponse.model_validate(row) for row in result.scalars().all()],
        )
    
    @staticmethod
    async def latest_for_user(
        db: AsyncSession,
        user_id: str,
        since: Optional[datetime] = None
    ) -> Optional[LocationHeartbeat]:
        query = select(LocationHeartbeat).where(LocationHeartbeat.app_user_id == user_id)
        if since is not None:
            query = query.where(LocationHeartbeat.received_at >= since)
        query = query.order_by(desc(LocationHeartbeat.received_at)).limit(1)
        
        result = await db.execute(query)
        return result.scalar_one_or_none()
