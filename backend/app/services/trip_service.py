"""
Trip Service.

Groups dispatch-queue documents into trips and drives the trip state
machine. Every transition updates the trip and its documents in a single
transaction; external notifications go out after the commit.

Status flow:
    SCHEDULED → STARTED → ENDED (normally or force ended)
    SCHEDULED → CANCELLED
"""

import logging
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, desc, or_, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.background import fire_and_forget
from backend.app.core.clock import utcnow
from backend.app.core.config import settings
from backend.app.core.exceptions import BadRequestError
from backend.app.models.base_location import BaseLocation
from backend.app.models.customer import Customer
from backend.app.models.doc import Doc
from backend.app.models.enums import DocStatus, TripStatus, UserRole
from backend.app.models.location_heartbeat import LocationHeartbeat
from backend.app.models.trip import Trip
from backend.app.models.user import AppUser, AppUserRole
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.doc import DocResponse
from backend.app.schemas.tracking import GeoPoint
from backend.app.schemas.trip import (
    CreateTripRequest, TripActionResult, AvailableDriver,
    TripSummary, TripDetailsResponse, DocGroup
)
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.external import SmsSender, StatusSync, notify_status_change
from backend.app.services.geo import haversine_distance, parse_coordinates
from backend.app.services.location_service import LocationService
from backend.app.services.settings_cache import SettingsCache
from backend.app.services.tracking_service import encode_tracking_token

logger = logging.getLogger(__name__)

# Lot documents that no longer need a drop-off
DROP_OFF_DONE_STATUSES = {DocStatus.AT_TRANSIT_HUB, DocStatus.DELIVERED, DocStatus.UNDELIVERED}

# Heartbeats older than this are not used to order the run sheet
RUN_SHEET_LOCATION_MAX_AGE = timedelta(hours=1)


def sort_docs_by_distance(
    rows: List[tuple],
    driver_location: Optional[LocationHeartbeat]
) -> List[tuple]:
    """
    Order (doc, customer) rows nearest first from the driver.

    Rows whose customer has no coordinates go last in their original order.
    Without a driver location the order is unchanged.
    """
    if driver_location is None:
        return list(rows)
    driver_point = parse_coordinates(driver_location.geo_latitude, driver_location.geo_longitude)
    if driver_point is None:
        return list(rows)

    located, unlocated = [], []
    for row in rows:
        customer = row[1]
        point = parse_coordinates(customer.geo_latitude, customer.geo_longitude) if customer else None
        if point is None:
            unlocated.append(row)
        else:
            located.append((haversine_distance(*driver_point, *point), row))

    located.sort(key=lambda item: item[0])
    return [row for _, row in located] + unlocated


def to_doc_response(doc: Doc, customer: Optional[Customer]) -> DocResponse:
    return DocResponse(
        id=doc.id,
        status=doc.status,
        last_scanned_by=doc.last_scanned_by,
        origin_warehouse=doc.origin_warehouse,
        trip_id=doc.trip_id,
        doc_date=doc.doc_date,
        doc_amount=doc.doc_amount,
        route=doc.route,
        lot=doc.lot,
        comment=doc.comment,
        customer_id=doc.customer_id,
        transit_hub_latitude=doc.transit_hub_latitude,
        transit_hub_longitude=doc.transit_hub_longitude,
        created_at=doc.created_at,
        last_updated_at=doc.last_updated_at,
        customer_firm_name=customer.firm_name if customer else None,
        customer_address=customer.address if customer else None,
        customer_city=customer.city if customer else None,
        customer_pincode=customer.pincode if customer else None,
        customer_phone=customer.phone if customer else None,
        customer_geo_latitude=customer.geo_latitude if customer else None,
        customer_geo_longitude=customer.geo_longitude if customer else None,
    )


class TripService:

    def __init__(
        self,
        settings_cache: SettingsCache,
        status_sync: StatusSync,
        sms_sender: SmsSender
    ):
        self.settings_cache = settings_cache
        self.status_sync = status_sync
        self.sms_sender = sms_sender

    # Helpers

    async def _get_trip(self, db: AsyncSession, trip_id: int) -> Trip:
        trip = await db.get(Trip, trip_id)
        if trip is None:
            raise BadRequestError(f"Trip with ID '{trip_id}' not found.")
        return trip

    @staticmethod
    def _require_driver(trip: Trip, current_user: CurrentUser, action: str) -> None:
        if trip.driven_by != current_user.id:
            raise BadRequestError(f"Only the assigned driver can {action} this trip")

    @staticmethod
    async def _attached_docs(db: AsyncSession, trip_id: int, lot: Optional[str] = None) -> List[Doc]:
        query = select(Doc).where(Doc.trip_id == trip_id)
        if lot is not None:
            query = query.where(Doc.lot == lot)
        result = await db.execute(query.order_by(Doc.id))
        return list(result.scalars().all())

    @staticmethod
    async def _users_by_ids(db: AsyncSession, user_ids: Iterable[str]) -> Dict[str, tuple]:
        """Map user id to (person_name, base_location_id, base_location_name)."""
        result = await db.execute(
            select(AppUser.id, AppUser.person_name, AppUser.base_location_id, BaseLocation.name)
            .outerjoin(BaseLocation, BaseLocation.id == AppUser.base_location_id)
            .where(AppUser.id.in_(set(user_ids)))
        )
        return {row[0]: tuple(row[1:]) for row in result.all()}

    # Lifecycle

    async def create_trip(
        self,
        db: AsyncSession,
        request: CreateTripRequest,
        current_user: CurrentUser
    ) -> TripActionResult:
        """
        Create a SCHEDULED trip from the dispatch-queue documents of a route
        scanned by the given users.
        """
        result = await db.execute(
            select(Doc)
            .where(
                Doc.status == DocStatus.READY_FOR_DISPATCH,
                Doc.route == request.route,
                Doc.last_scanned_by.in_(request.user_ids)
            )
            .order_by(Doc.id)
            .with_for_update()
        )
        docs = list(result.scalars().all())

        if not docs:
            raise BadRequestError(
                f"No documents found in dispatch queue for route '{request.route}' scanned by the selected users"
            )

        if await db.get(AppUser, request.driver_id) is None:
            raise BadRequestError(f"Driver with ID '{request.driver_id}' not found")
        if await db.get(AppUser, current_user.id) is None:
            raise BadRequestError(f"Trip creator with ID '{current_user.id}' not found")

        now = utcnow()
        try:
            trip = Trip(
                created_by=current_user.id,
                driven_by=request.driver_id,
                vehicle_nbr=request.vehicle_nbr,
                route=request.route,
                status=TripStatus.SCHEDULED,
                created_at=now,
                last_updated_at=now,
            )
            db.add(trip)
            await db.flush()

            for doc in docs:
                doc.status = DocStatus.TRIP_SCHEDULED
                doc.trip_id = trip.id
                doc.last_trip_id = trip.id
                doc.last_updated_at = now

            log_event(
                db=db,
                action=AuditAction.TRIP_CREATED,
                actor_id=current_user.id,
                actor_name=current_user.username,
                trip_id=trip.id,
                metadata={"route": request.route, "driver_id": request.driver_id, "documents": len(docs)}
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Trip creation for route %s failed: %s", request.route, exc)
            raise BadRequestError(f"Failed to create trip: {exc}")

        doc_ids = [doc.id for doc in docs]
        logger.info("Trip %s created on route %s with %d documents", trip.id, request.route, len(doc_ids))
        notify_status_change(self.status_sync, self.settings_cache, doc_ids, DocStatus.TRIP_SCHEDULED, current_user.id)

        return TripActionResult(
            success=True,
            message=f"Trip created successfully with {len(doc_ids)} documents loaded.",
            status_code=201,
            trip_id=trip.id,
            documents_loaded=len(doc_ids),
        )

    async def start_trip(self, db: AsyncSession, trip_id: int, current_user: CurrentUser) -> TripActionResult:
        """
        Start a SCHEDULED trip: the trip goes STARTED and its documents ON_TRIP.

        A driver can have only one STARTED trip.
        """
        trip = await self._get_trip(db, trip_id)

        if trip.status != TripStatus.SCHEDULED:
            raise BadRequestError(f"Trip cannot be started. Current status: {trip.status.value}")
        self._require_driver(trip, current_user, "start")

        result = await db.execute(
            select(Trip.id).where(
                Trip.driven_by == current_user.id,
                Trip.status == TripStatus.STARTED,
                Trip.id != trip_id
            )
        )
        active_trip_id = result.scalars().first()
        if active_trip_id is not None:
            raise BadRequestError(
                f"You already have trip {active_trip_id} in progress. End it before starting another trip."
            )

        result = await db.execute(
            select(Doc, Customer.phone)
            .join(Customer, Customer.id == Doc.customer_id)
            .where(Doc.trip_id == trip_id)
        )
        rows = result.all()
        if not rows:
            raise BadRequestError(f"Trip {trip_id} has no documents associated with it")

        now = utcnow()
        try:
            trip.status = TripStatus.STARTED
            trip.started_at = now
            trip.last_updated_at = now
            for doc, _ in rows:
                doc.status = DocStatus.ON_TRIP
                doc.last_updated_at = now

            log_event(
                db=db,
                action=AuditAction.TRIP_STARTED,
                actor_id=current_user.id,
                actor_name=current_user.username,
                trip_id=trip_id,
                metadata={"documents": len(rows)}
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Starting trip %s failed: %s", trip_id, exc)
            raise BadRequestError(f"Failed to start trip: {exc}")

        doc_ids = [doc.id for doc, _ in rows]
        logger.info("Trip %s started by %s", trip_id, current_user.id)
        notify_status_change(self.status_sync, self.settings_cache, doc_ids, DocStatus.ON_TRIP, current_user.id)

        if self.settings_cache.get_send_tracking_sms():
            for doc, customer_phone in rows:
                self._send_tracking_sms(doc.id, customer_phone, current_user)

        return TripActionResult(
            success=True,
            message=f"Trip {trip_id} has been started successfully. {len(rows)} document(s) are now ON_TRIP.",
            trip_id=trip_id,
        )

    def _send_tracking_sms(self, doc_id: str, customer_phone: Optional[str], current_user: CurrentUser) -> None:
        # Outside production every SMS goes to the driver's own mobile
        recipient = customer_phone if settings.is_production else current_user.id
        if not recipient:
            logger.info("Skipping tracking SMS for doc %s: customer has no phone number", doc_id)
            return
        fire_and_forget(
            self.sms_sender.send_tracking_link(recipient, doc_id, encode_tracking_token(doc_id)),
            f"tracking SMS doc={doc_id}",
        )

    async def drop_off_lot(
        self,
        db: AsyncSession,
        trip_id: int,
        lot_heading: str,
        current_user: CurrentUser
    ) -> TripActionResult:
        """
        Drop a lot at a transit hub. Its ON_TRIP documents leave the trip as
        AT_TRANSIT_HUB, stamped with the driver's last known location.
        """
        trip = await self._get_trip(db, trip_id)

        if trip.status != TripStatus.STARTED:
            raise BadRequestError(f"Lots can only be dropped off from a started trip. Current status: {trip.status.value}")
        self._require_driver(trip, current_user, "drop off lots of")
        if lot_heading == settings.direct_deliveries_heading:
            raise BadRequestError("Direct deliveries cannot be dropped off at a transit hub")

        docs = [doc for doc in await self._attached_docs(db, trip_id, lot=lot_heading) if doc.status == DocStatus.ON_TRIP]
        if not docs:
            raise BadRequestError(f"No documents of lot '{lot_heading}' are on trip {trip_id}")

        location = await LocationService.latest_for_user(db, trip.driven_by)
        now = utcnow()
        try:
            for doc in docs:
                doc.status = DocStatus.AT_TRANSIT_HUB
                doc.trip_id = None
                doc.transit_hub_latitude = location.geo_latitude if location else None
                doc.transit_hub_longitude = location.geo_longitude if location else None
                doc.last_updated_at = now
            trip.last_updated_at = now

            log_event(
                db=db,
                action=AuditAction.LOT_DROPPED_OFF,
                actor_id=current_user.id,
                actor_name=current_user.username,
                trip_id=trip_id,
                metadata={"lot": lot_heading, "documents": len(docs)}
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Dropping off lot %s of trip %s failed: %s", lot_heading, trip_id, exc)
            raise BadRequestError(f"Failed to drop off lot: {exc}")

        doc_ids = [doc.id for doc in docs]
        logger.info("Lot %s of trip %s dropped off (%d documents)", lot_heading, trip_id, len(doc_ids))
        notify_status_change(self.status_sync, self.settings_cache, doc_ids, DocStatus.AT_TRANSIT_HUB, current_user.id)

        return TripActionResult(
            success=True,
            message=f"Lot '{lot_heading}' dropped off at transit hub. {len(doc_ids)} document(s) updated.",
            trip_id=trip_id,
        )

    async def end_trip(self, db: AsyncSession, trip_id: int, current_user: CurrentUser) -> TripActionResult:
        """
        End a STARTED trip once every direct delivery is recorded and every
        lot has been dropped off.
        """
        trip = await self._get_trip(db, trip_id)

        if trip.status != TripStatus.STARTED:
            raise BadRequestError(f"Trip cannot be ended. Current status: {trip.status.value}")
        self._require_driver(trip, current_user, "end")

        attached = await self._attached_docs(db, trip_id)
        pending_direct = [doc for doc in attached if doc.lot is None]
        if pending_direct:
            raise BadRequestError(
                f"Cannot end trip. {len(pending_direct)} direct deliveries are still pending."
            )
        pending_lots = sorted({doc.lot for doc in attached})
        if pending_lots:
            raise BadRequestError(
                f"Cannot end trip. Lots not yet dropped off: {', '.join(pending_lots)}"
            )

        return await self._finish_trip(db, trip, current_user, AuditAction.TRIP_ENDED, "end trip", marked_undelivered=0)

    async def force_end_trip(self, db: AsyncSession, trip_id: int, current_user: CurrentUser) -> TripActionResult:
        """
        Admin override: mark every document still on the trip UNDELIVERED and
        end the trip.
        """
        trip = await self._get_trip(db, trip_id)

        if trip.status != TripStatus.STARTED:
            raise BadRequestError(f"Only started trips can be force ended. Current status: {trip.status.value}")

        docs = [doc for doc in await self._attached_docs(db, trip_id) if doc.status not in DROP_OFF_DONE_STATUSES]
        comment = f"Trip force ended by user {current_user.username}"
        now = utcnow()
        for doc in docs:
            doc.status = DocStatus.UNDELIVERED
            doc.trip_id = None
            doc.comment = comment
            doc.last_updated_at = now

        response = await self._finish_trip(
            db, trip, current_user, AuditAction.TRIP_FORCE_ENDED, "force end trip", marked_undelivered=len(docs)
        )

        notify_status_change(
            self.status_sync, self.settings_cache, [doc.id for doc in docs], DocStatus.UNDELIVERED, current_user.id
        )
        return response

    async def _finish_trip(
        self,
        db: AsyncSession,
        trip: Trip,
        current_user: CurrentUser,
        action: str,
        operation: str,
        marked_undelivered: int
    ) -> TripActionResult:
        try:
            now = utcnow()
            trip.status = TripStatus.ENDED
            trip.last_updated_at = now
            log_event(
                db=db,
                action=action,
                actor_id=current_user.id,
                actor_name=current_user.username,
                trip_id=trip.id,
                metadata={"marked_undelivered": marked_undelivered} if marked_undelivered else None
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Failed to %s %s: %s", operation, trip.id, exc)
            raise BadRequestError(f"Failed to {operation}: {exc}")

        if action == AuditAction.TRIP_FORCE_ENDED:
            logger.warning("Trip %s force ended by %s; %d documents marked undelivered", trip.id, current_user.id, marked_undelivered)
            return TripActionResult(
                success=True,
                message=f"Trip {trip.id} has been force ended. {marked_undelivered} document(s) marked UNDELIVERED.",
                trip_id=trip.id,
                marked_undelivered_count=marked_undelivered,
            )

        logger.info("Trip %s ended by %s", trip.id, current_user.id)
        return TripActionResult(
            success=True,
            message=f"Trip {trip.id} has been ended successfully.",
            trip_id=trip.id,
        )

    async def cancel_trip(self, db: AsyncSession, trip_id: int, current_user: CurrentUser) -> TripActionResult:
        """
        Cancel a SCHEDULED trip and put its documents back in the dispatch queue.

        Only users of the trip creator's base location may cancel.
        """
        trip = await self._get_trip(db, trip_id)

        if trip.status != TripStatus.SCHEDULED:
            raise BadRequestError(f"Only scheduled trips can be cancelled. Current status: {trip.status.value}")

        creator = await db.get(AppUser, trip.created_by)
        creator_location = creator.base_location_id if creator else None
        if creator_location != current_user.base_location_id:
            raise BadRequestError("Only users from the trip creator's base location can cancel this trip")

        docs = await self._attached_docs(db, trip_id)
        now = utcnow()
        try:
            for doc in docs:
                doc.status = DocStatus.READY_FOR_DISPATCH
                doc.trip_id = None
                doc.last_trip_id = None
                doc.transit_hub_latitude = None
                doc.transit_hub_longitude = None
                doc.last_updated_at = now
            trip.status = TripStatus.CANCELLED
            trip.last_updated_at = now

            log_event(
                db=db,
                action=AuditAction.TRIP_CANCELLED,
                actor_id=current_user.id,
                actor_name=current_user.username,
                trip_id=trip_id,
                metadata={"documents": len(docs)}
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Cancelling trip %s failed: %s", trip_id, exc)
            raise BadRequestError(f"Failed to cancel trip: {exc}")

        doc_ids = [doc.id for doc in docs]
        logger.info("Trip %s cancelled by %s; %d documents back in dispatch queue", trip_id, current_user.id, len(doc_ids))
        notify_status_change(self.status_sync, self.settings_cache, doc_ids, DocStatus.READY_FOR_DISPATCH, current_user.id)

        return TripActionResult(
            success=True,
            message=f"Trip {trip_id} has been cancelled. {len(doc_ids)} document(s) returned to dispatch queue.",
            trip_id=trip_id,
        )

    # Read views

    async def get_available_drivers(self, db: AsyncSession, current_user: CurrentUser) -> List[AvailableDriver]:
        """
        Active drivers, the caller first, then drivers of the caller's base
        location, then everyone else; alphabetical within each band.
        """
        result = await db.execute(
            select(AppUser, BaseLocation.name)
            .join(AppUserRole, AppUserRole.app_user_id == AppUser.id)
            .outerjoin(BaseLocation, BaseLocation.id == AppUser.base_location_id)
            .where(
                AppUserRole.role_name == UserRole.APP_TRIP_DRIVER,
                AppUser.is_active.is_(True)
            )
        )

        ranked = []
        for user, location_name in result.all():
            if user.id == current_user.id:
                band, name = 0, f"[SELF] {user.person_name}"
            elif user.base_location_id == current_user.base_location_id:
                band, name = 1, user.person_name
            else:
                band, name = 2, f"{user.person_name} ({location_name or 'Unknown Location'})"
            ranked.append((band, user.person_name.lower(), AvailableDriver(
                id=user.id,
                person_name=name,
                base_location_id=user.base_location_id,
                base_location_name=location_name,
                vehicle_nbr=user.vehicle_nbr,
            )))

        ranked.sort(key=lambda item: (item[0], item[1]))
        return [driver for _, _, driver in ranked]

    async def get_trip_details(self, db: AsyncSession, trip_id: int) -> TripDetailsResponse:
        """
        Run sheet of a trip: the summary plus its documents grouped by lot.

        Lot groups come alphabetically, direct deliveries last. Within a group
        documents are ordered by distance from the driver when a heartbeat from
        the last hour is available.
        """
        trip = await self._get_trip(db, trip_id)

        result = await db.execute(
            select(Doc, Customer)
            .outerjoin(Customer, Customer.id == Doc.customer_id)
            .where(Doc.last_trip_id == trip_id)
            .order_by(Doc.lot, Doc.id)
        )
        rows = result.all()

        driver_location = await LocationService.latest_for_user(
            db, trip.driven_by, since=utcnow() - RUN_SHEET_LOCATION_MAX_AGE
        )

        grouped: Dict[Optional[str], List[tuple]] = {}
        for row in rows:
            grouped.setdefault(row[0].lot, []).append(row)

        doc_groups = []
        for lot in sorted(key for key in grouped if key is not None):
            members = grouped[lot]
            # Documents re-scanned off the hub have left the trip and count as dropped
            completed = all(
                doc.trip_id != trip.id or doc.status in DROP_OFF_DONE_STATUSES for doc, _ in members
            )
            doc_groups.append(DocGroup(
                heading=lot,
                droppable=True,
                drop_off_completed=completed,
                show_drop_off_button=not completed,
                expand_group_by_default=False,
                docs=[to_doc_response(doc, customer) for doc, customer in sort_docs_by_distance(members, driver_location)],
            ))
        if None in grouped:
            doc_groups.append(DocGroup(
                heading=settings.direct_deliveries_heading,
                droppable=False,
                drop_off_completed=False,
                show_drop_off_button=False,
                expand_group_by_default=True,
                docs=[to_doc_response(doc, customer) for doc, customer in sort_docs_by_distance(grouped[None], driver_location)],
            ))

        summary = await self._build_summary(db, trip)
        return TripDetailsResponse(**summary.model_dump(), doc_groups=doc_groups)

    async def _build_summary(self, db: AsyncSession, trip: Trip, users: Optional[Dict[str, tuple]] = None) -> TripSummary:
        if users is None:
            users = await self._users_by_ids(db, [trip.created_by, trip.driven_by])
        creator = users.get(trip.created_by, (None, None, None))
        driver = users.get(trip.driven_by, (None, None, None))

        driver_location = None
        if trip.status == TripStatus.STARTED and trip.started_at:
            heartbeat = await LocationService.latest_for_user(
                db, trip.driven_by, since=trip.started_at - timedelta(minutes=1)
            )
            if heartbeat:
                driver_location = GeoPoint(
                    latitude=heartbeat.geo_latitude,
                    longitude=heartbeat.geo_longitude,
                    received_at=heartbeat.received_at,
                )

        result = await db.execute(
            select(Doc.lot, Doc.trip_id).where(Doc.last_trip_id == trip.id)
        )
        docs = result.all()
        total_direct = sum(1 for lot, _ in docs if lot is None)
        pending_direct = sum(1 for lot, attached in docs if lot is None and attached == trip.id)
        pending_lots = len({lot for lot, attached in docs if lot is not None and attached == trip.id})

        if total_direct == 0:
            delivery_msg = "No Direct Deliveries"
        elif trip.status == TripStatus.SCHEDULED:
            delivery_msg = f"Direct Deliveries: {total_direct}"
        elif pending_direct == 0:
            delivery_msg = "No Pending Deliveries"
        else:
            delivery_msg = f"Deliveries: {pending_direct} pending out of {total_direct}"

        drop_off_msg = "No Lots To Be Dropped Off" if pending_lots == 0 else f"Lots To Be Dropped Off: {pending_lots}"

        return TripSummary(
            trip_id=trip.id,
            route=trip.route,
            status=trip.status,
            created_by_id=trip.created_by,
            created_by=creator[0],
            driver_id=trip.driven_by,
            driver_name=driver[0],
            vehicle_nbr=trip.vehicle_nbr,
            creator_location=creator[2],
            driver_location=driver[2],
            created_at=trip.created_at,
            started_at=trip.started_at,
            last_updated_at=trip.last_updated_at,
            driver_last_known_location=driver_location,
            total_direct_deliveries=total_direct,
            pending_direct_deliveries=pending_direct,
            pending_lot_drop_offs=pending_lots,
            delivery_count_status_msg=delivery_msg,
            drop_off_count_status_msg=drop_off_msg,
        )

    async def _summaries(self, db: AsyncSession, trips: List[Trip]) -> List[TripSummary]:
        users = await self._users_by_ids(db, {t.created_by for t in trips} | {t.driven_by for t in trips})
        return [await self._build_summary(db, trip, users) for trip in trips]

    async def get_my_trips(self, db: AsyncSession, current_user: CurrentUser) -> List[TripSummary]:
        """The caller's SCHEDULED and STARTED trips, STARTED first."""
        result = await db.execute(
            select(Trip)
            .where(
                Trip.driven_by == current_user.id,
                Trip.status.in_([TripStatus.SCHEDULED, TripStatus.STARTED])
            )
            .order_by(desc(Trip.created_at), desc(Trip.id))
        )
        trips = sorted(result.scalars().all(), key=lambda t: t.status != TripStatus.STARTED)
        return await self._summaries(db, trips)

    async def get_scheduled_trips_from_same_location(self, db: AsyncSession, current_user: CurrentUser) -> List[TripSummary]:
        """SCHEDULED trips created by users of the caller's base location."""
        result = await db.execute(
            select(Trip)
            .join(AppUser, AppUser.id == Trip.created_by)
            .where(
                Trip.status == TripStatus.SCHEDULED,
                AppUser.base_location_id == current_user.base_location_id
            )
            .order_by(desc(Trip.created_at), desc(Trip.id))
        )
        return await self._summaries(db, list(result.scalars().all()))

    async def get_all_scheduled_trips(self, db: AsyncSession) -> List[TripSummary]:
        result = await db.execute(
            select(Trip)
            .where(Trip.status == TripStatus.SCHEDULED)
            .order_by(desc(Trip.created_at), desc(Trip.id))
        )
        return await self._summaries(db, list(result.scalars().all()))

    async def get_all_trips(self, db: AsyncSession) -> List[TripSummary]:
        """Open trips plus trips ended within the tracking window."""
        ended_since = utcnow() - timedelta(hours=settings.tracking_window_hours)
        result = await db.execute(
            select(Trip)
            .where(or_(
                Trip.status.in_([TripStatus.SCHEDULED, TripStatus.STARTED]),
                and_(Trip.status == TripStatus.ENDED, Trip.last_updated_at >= ended_since)
            ))
            .order_by(desc(Trip.created_at), desc(Trip.id))
        )
        return await self._summaries(db, list(result.scalars().all()))
