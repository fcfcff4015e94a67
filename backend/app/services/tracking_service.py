"""
Tracking Service.

Builds the customer-facing tracking view of a document from the document,
its trip and the driver's location heartbeats.
"""

import base64
import binascii
import logging
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import BadRequestError
from backend.app.models.customer import Customer
from backend.app.models.doc import Doc
from backend.app.models.doc_tracking_access import DocTrackingAccess
from backend.app.models.enums import DocStatus, TripStatus
from backend.app.models.signature import Signature
from backend.app.models.trip import Trip
from backend.app.schemas.tracking import DocTrackingResponse, GeoPoint
from backend.app.services.external import EtaProvider
from backend.app.services.geo import haversine_distance, parse_coordinates
from backend.app.services.location_service import LocationService

logger = logging.getLogger(__name__)

# Value reported when no ETA can be computed
ETA_UNAVAILABLE = -1


def encode_tracking_token(doc_id: str) -> str:
    """Tracking tokens are the base64 encoded document id."""
    return base64.b64encode(doc_id.encode("utf-8")).decode("ascii")


def decode_tracking_token(token: str) -> str:
    token = (token or "").strip()
    if not token:
        raise BadRequestError("Invalid token")
    try:
        padded = token + "=" * (-len(token) % 4)
        return base64.b64decode(padded, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        raise BadRequestError("Invalid token")


class TrackingService:
    
    def __init__(self, eta_provider: EtaProvider, session_factory: Callable[[], AsyncSession]):
        self.eta_provider = eta_provider
        self.session_factory = session_factory
    
    async def track_document(
        self,
        db: AsyncSession,
        token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> DocTrackingResponse:
        """
        Resolve a tracking token into the tracking view.
        
        Raises:
            BadRequestError: undecodable token or unknown document
        """
        doc_id = decode_tracking_token(token)
        
        result = await db.execute(
            select(Doc, Customer)
            .join(Customer, Customer.id == Doc.customer_id)
            .where(Doc.id == doc_id)
        )
        row = result.first()
        if row is None:
            raise BadRequestError("Invalid token")
        doc, customer = row
        
        response = DocTrackingResponse(doc_id=doc.id, status=doc.status)
        customer_point = parse_coordinates(customer.geo_latitude, customer.geo_longitude)
        if customer_point:
            response.customer_location = GeoPoint(
                latitude=customer.geo_latitude,
                longitude=customer.geo_longitude,
            )
        
        if doc.status == DocStatus.AT_TRANSIT_HUB:
            # Snapshot of where the lot was dropped, no timestamp
            if doc.transit_hub_latitude and doc.transit_hub_longitude:
                response.driver_last_known_location = GeoPoint(
                    latitude=doc.transit_hub_latitude,
                    longitude=doc.transit_hub_longitude,
                )
        elif doc.status == DocStatus.ON_TRIP:
            await self._fill_on_trip(db, doc, customer_point, response)
        elif doc.status == DocStatus.DELIVERED:
            response.customer_location = None
            response.comment = doc.comment
            signature = await db.get(Signature, doc.id)
            if signature:
                response.delivery_timestamp = signature.last_updated_at
        elif doc.status == DocStatus.UNDELIVERED:
            response.customer_location = None
            response.comment = doc.comment
        
        await self._record_access(doc.id, doc.customer_id, ip_address, user_agent)
        return response
    
    async def _fill_on_trip(self, db: AsyncSession, doc: Doc, customer_point, response: DocTrackingResponse) -> None:
        response.eta = ETA_UNAVAILABLE
        
        trip = await db.get(Trip, doc.trip_id) if doc.trip_id else None
        if trip is None or trip.status != TripStatus.STARTED or trip.started_at is None:
            return
        
        heartbeat = await LocationService.latest_for_user(db, trip.driven_by, since=trip.started_at)
        if heartbeat is None:
            return
        
        response.driver_last_known_location = GeoPoint(
            latitude=heartbeat.geo_latitude,
            longitude=heartbeat.geo_longitude,
            received_at=heartbeat.received_at,
        )
        driver_point = parse_coordinates(heartbeat.geo_latitude, heartbeat.geo_longitude)
        if driver_point is None or customer_point is None:
            return
        
        own_distance = haversine_distance(*driver_point, *customer_point)
        
        result = await db.execute(
            select(Customer.geo_latitude, Customer.geo_longitude)
            .join(Doc, Doc.customer_id == Customer.id)
            .where(
                Doc.trip_id == trip.id,
                Doc.status == DocStatus.ON_TRIP,
                Doc.id != doc.id
            )
        )
        enroute = 0
        for latitude, longitude in result.all():
            other_point = parse_coordinates(latitude, longitude)
            if other_point and haversine_distance(*driver_point, *other_point) < own_distance:
                enroute += 1
        
        response.num_enroute_customers = enroute
        response.enroute_customers_service_time = enroute * settings.per_stop_service_minutes
        
        eta = await self.eta_provider.estimate(*driver_point, *customer_point)
        response.eta = eta if eta is not None else ETA_UNAVAILABLE
    
    async def _record_access(
        self,
        doc_id: str,
        customer_id: str,
        ip_address: Optional[str],
        user_agent: Optional[str]
    ) -> None:
        """Write the access log row in its own transaction; failures are only logged."""
        try:
            async with self.session_factory() as session:
                session.add(DocTrackingAccess(
                    doc_id=doc_id,
                    customer_id=customer_id,
                    ip_address=ip_address,
                    user_agent=(user_agent or "")[:500] or None,
                ))
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to record tracking access for doc %s: %s", doc_id, exc)
