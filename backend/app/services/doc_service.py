"""
Document Service.

Owns the document status state machine: scan-in with route cooldown,
undo, delivery and failure recording, the dispatch queue and mock data.

Status flow:
    (scan) → READY_FOR_DISPATCH → TRIP_SCHEDULED → ON_TRIP → DELIVERED
    ON_TRIP → UNDELIVERED | AT_TRANSIT_HUB → (re-scan) → READY_FOR_DISPATCH
"""

import base64
import binascii
import logging
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy import select, delete, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import utcnow, as_utc
from backend.app.core.config import settings
from backend.app.core.exceptions import BadRequestError, InternalServiceError, ResourceNotFoundError
from backend.app.models.customer import Customer
from backend.app.models.doc import Doc
from backend.app.models.enums import DocStatus
from backend.app.models.signature import Signature
from backend.app.models.trip import Trip
from backend.app.models.user import AppUser
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.doc import (
    ScanResult, UndoScansResult, MarkDeliveryRequest, MarkDeliveryFailedRequest,
    DeliveryResult, DispatchQueueResponse, DispatchQueueRoute, DispatchQueueUser,
    DocTripInfo, MockDataRequest, MockDataResponse, PurgeMockDataResponse, TrackingLinkResponse
)
from backend.app.schemas.tracking import DocTrackingResponse
from backend.app.services.customer_service import CustomerService
from backend.app.services.external import (
    DocumentSource, MockDocumentSource, StatusSync, notify_status_change
)
from backend.app.services.mock_data import generate_mock_docs
from backend.app.services.settings_cache import SettingsCache
from backend.app.services.tracking_service import TrackingService, encode_tracking_token

logger = logging.getLogger(__name__)

NOT_SCANNED_MESSAGE = "Document was not scanned and so not in the system yet"

# Existing documents in these statuses cannot be scanned again: (message, status code)
SCAN_REJECTIONS = {
    DocStatus.DELIVERED: ("Doc ID is already delivered and cannot be scanned again", 400),
    DocStatus.TRIP_SCHEDULED: ("Doc ID is already scheduled for a trip", 409),
    DocStatus.ON_TRIP: ("Doc ID is already out on a trip", 409),
}

RESCAN_MESSAGES = {
    DocStatus.READY_FOR_DISPATCH: ("Doc ID re-scanned. Was already in dispatch queue", 409),
    DocStatus.UNDELIVERED: ("Scanned and added to Dispatch Queue (previous delivery attempt failed)", 200),
    DocStatus.AT_TRANSIT_HUB: ("Scanned from transit hub and added to Dispatch Queue", 200),
}


class DocService:

    def __init__(
        self,
        settings_cache: SettingsCache,
        document_source: DocumentSource,
        mock_source: MockDocumentSource,
        status_sync: StatusSync,
        tracking: TrackingService
    ):
        self.settings_cache = settings_cache
        self.document_source = document_source
        self.mock_source = mock_source
        self.status_sync = status_sync
        self.tracking = tracking

    # Scanning

    async def scan_and_add(self, db: AsyncSession, doc_id: str, current_user: CurrentUser) -> ScanResult:
        """
        Scan a document into the dispatch queue.

        Existing documents are re-scanned when their status allows it.
        New documents are resolved through the document source, checked
        against the route cooldown and inserted together with their
        customer. Rejections and storage failures come back as a result.
        """
        doc_id = doc_id.strip()
        try:
            existing = await db.get(Doc, doc_id)
            if existing is not None:
                return await self._rescan(db, existing, current_user)
            return await self._scan_new(db, doc_id, current_user)
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Scan of doc %s by %s failed: %s", doc_id, current_user.id, exc)
            return ScanResult(
                success=False,
                message=f"Error adding document: {exc}",
                doc_id=doc_id,
                status_code=500,
            )

    async def _rescan(self, db: AsyncSession, doc: Doc, current_user: CurrentUser) -> ScanResult:
        if doc.status in SCAN_REJECTIONS:
            message, status_code = SCAN_REJECTIONS[doc.status]
            return ScanResult(success=False, message=message, doc_id=doc.id, status_code=status_code)

        message, status_code = RESCAN_MESSAGES[doc.status]

        doc.last_scanned_by = current_user.id
        doc.last_updated_at = utcnow()
        if doc.status != DocStatus.READY_FOR_DISPATCH:
            # Transit hub coordinates stay until the document joins its next trip
            doc.status = DocStatus.READY_FOR_DISPATCH
            doc.trip_id = None
        await db.commit()

        logger.info("Doc %s re-scanned by %s", doc.id, current_user.id)
        return ScanResult(success=True, message=message, doc_id=doc.id, status_code=status_code)

    async def _scan_new(self, db: AsyncSession, doc_id: str, current_user: CurrentUser) -> ScanResult:
        source_doc = await self.document_source.resolve(doc_id, current_user)
        if source_doc is None:
            return ScanResult(
                success=False,
                message="Doc ID not found in ERP",
                doc_id=doc_id,
                status_code=400,
            )

        conflict = await self._check_route_cooldown(db, current_user, source_doc.route_id)
        if conflict:
            return ScanResult(success=False, message=conflict, doc_id=doc_id, status_code=400)

        now = utcnow()
        await CustomerService.upsert_from_source(db, source_doc)
        db.add(Doc(
            id=source_doc.doc_id,
            status=DocStatus.READY_FOR_DISPATCH,
            last_scanned_by=current_user.id,
            origin_warehouse=source_doc.warehouse_location,
            trip_id=None,
            doc_date=source_doc.doc_date,
            doc_amount=source_doc.doc_amount,
            route=source_doc.route_id,
            lot=source_doc.lot_nbr or None,
            customer_id=source_doc.customer_id,
            created_at=now,
            last_updated_at=now,
        ))
        await db.commit()

        logger.info("Doc %s scanned into route %s by %s", doc_id, source_doc.route_id, current_user.id)
        return ScanResult(
            success=True,
            message="Scanned and added to Dispatch Queue",
            doc_id=doc_id,
            status_code=200,
        )

    async def _check_route_cooldown(self, db: AsyncSession, current_user: CurrentUser, route: str) -> Optional[str]:
        """Return a conflict message when the user's last scan in the cooldown window was on another route."""
        cool_off_seconds = self.settings_cache.get_cool_off_seconds()
        now = utcnow()

        result = await db.execute(
            select(Doc)
            .where(
                Doc.last_scanned_by == current_user.id,
                Doc.last_updated_at > now - timedelta(seconds=cool_off_seconds)
            )
            .order_by(desc(Doc.last_updated_at))
            .limit(1)
        )
        last_scan = result.scalar_one_or_none()

        if last_scan is None or last_scan.route == route:
            return None

        elapsed = int((now - as_utc(last_scan.last_updated_at)).total_seconds())
        remaining = max(cool_off_seconds - elapsed, 1)
        return (
            f"Route conflict detected. Previous scan route: {last_scan.route}. "
            f"Current scan route: {route}. Please wait for {remaining} second(s) "
            f"cooling off period and then reattempt scan."
        )

    async def undo_all_scans(self, db: AsyncSession, current_user: CurrentUser) -> UndoScansResult:
        """Delete every dispatch-queue document last scanned by the caller."""
        try:
            result = await db.execute(
                select(Doc.id).where(
                    Doc.last_scanned_by == current_user.id,
                    Doc.status == DocStatus.READY_FOR_DISPATCH
                )
            )
            doc_ids = list(result.scalars().all())

            if not doc_ids:
                return UndoScansResult(success=True, message="No documents found to undo", deleted_docs=0)

            await db.execute(delete(Doc).where(Doc.id.in_(doc_ids)))
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Undo scans for %s failed: %s", current_user.id, exc)
            return UndoScansResult(success=False, message="Failed to undo scans", deleted_docs=0, status_code=500)

        logger.info("Undid %d scans of %s", len(doc_ids), current_user.id)
        return UndoScansResult(
            success=True,
            message=f"Successfully unscanned {len(doc_ids)} documents",
            deleted_docs=len(doc_ids),
        )

    # Delivery

    async def mark_delivery(
        self,
        db: AsyncSession,
        doc_id: str,
        request: MarkDeliveryRequest,
        current_user: CurrentUser
    ) -> DeliveryResult:
        """
        Record a successful delivery with the customer's signature.

        Customer coordinates are updated only when both are supplied.

        Raises:
            ResourceNotFoundError: document was never scanned
            BadRequestError: signature missing or not base64
            InternalServiceError: storage failure
        """
        doc = await db.get(Doc, doc_id)
        if doc is None:
            raise ResourceNotFoundError("Document", doc_id, message=NOT_SCANNED_MESSAGE)

        if not request.signature:
            raise BadRequestError("Signature is required for successful delivery")

        try:
            signature_bytes = base64.b64decode(request.signature, validate=True)
        except (binascii.Error, ValueError):
            raise BadRequestError("Signature must be base64 encoded")

        now = utcnow()
        try:
            doc.status = DocStatus.DELIVERED
            doc.trip_id = None
            doc.last_updated_at = now
            if request.comment:
                doc.comment = request.comment

            signature = await db.get(Signature, doc_id)
            if signature is None:
                db.add(Signature(doc_id=doc_id, signature=signature_bytes, last_updated_at=now))
            else:
                signature.signature = signature_bytes
                signature.last_updated_at = now

            if request.latitude is not None and request.longitude is not None:
                await CustomerService.update_delivery_location(
                    db, doc.customer_id, request.latitude, request.longitude
                )

            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Failed to mark doc %s delivered: %s", doc_id, exc)
            raise InternalServiceError(f"Failed to mark delivery: {exc}")

        logger.info("Doc %s delivered by %s", doc_id, current_user.id)
        notify_status_change(self.status_sync, self.settings_cache, [doc_id], DocStatus.DELIVERED, current_user.id)

        return DeliveryResult(
            success=True,
            message="Document marked as delivered successfully",
            doc_id=doc_id,
            status=DocStatus.DELIVERED,
        )

    async def mark_delivery_failed(
        self,
        db: AsyncSession,
        doc_id: str,
        request: MarkDeliveryFailedRequest,
        current_user: CurrentUser
    ) -> DeliveryResult:
        """Record a failed delivery attempt; the document can be re-scanned afterwards."""
        doc = await db.get(Doc, doc_id)
        if doc is None:
            raise ResourceNotFoundError("Document", doc_id, message=NOT_SCANNED_MESSAGE)

        if doc.status == DocStatus.DELIVERED:
            raise BadRequestError("Document is already delivered and cannot be marked as failed")

        try:
            doc.status = DocStatus.UNDELIVERED
            doc.trip_id = None
            doc.comment = request.comment
            doc.last_updated_at = utcnow()
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Failed to mark doc %s undelivered: %s", doc_id, exc)
            raise InternalServiceError(f"Failed to mark delivery failed: {exc}")

        logger.info("Doc %s marked undelivered by %s", doc_id, current_user.id)
        notify_status_change(self.status_sync, self.settings_cache, [doc_id], DocStatus.UNDELIVERED, current_user.id)

        return DeliveryResult(
            success=True,
            message="Document marked as delivery failed successfully",
            doc_id=doc_id,
            status=DocStatus.UNDELIVERED,
        )

    async def track_document(
        self,
        db: AsyncSession,
        token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> DocTrackingResponse:
        return await self.tracking.track_document(db, token, ip_address, user_agent)

    async def get_tracking_link(self, db: AsyncSession, doc_id: Optional[str], host: Optional[str]) -> TrackingLinkResponse:
        """
        Tracking URL of a scanned document, requested by the ERP.

        Documents still waiting in the dispatch queue or on a scheduled trip
        have nothing to track yet.
        """
        doc_id = (doc_id or "").strip()
        if not doc_id:
            raise BadRequestError("docId query parameter is required")

        result = await db.execute(select(Doc.status).where(Doc.id == doc_id))
        status = result.scalar_one_or_none()
        if status is None:
            raise BadRequestError("The provided docId is not among scanned documents in Pharma Tracker.")
        if status in (DocStatus.READY_FOR_DISPATCH, DocStatus.TRIP_SCHEDULED):
            raise BadRequestError("The provided docId was scanned in Pharma Tracker, but not on a trip yet.")

        base_url = ""
        if host:
            base_url = host if host.startswith("https://") else f"https://{host}"
        return TrackingLinkResponse(
            doc_id=doc_id,
            status=status,
            tracking_url=f"{base_url}/track?t={encode_tracking_token(doc_id)}",
        )

    # Read views

    async def get_dispatch_queue_for_user(self, db: AsyncSession, current_user: CurrentUser) -> DispatchQueueResponse:
        """
        Dispatch-queue documents scanned by users of the caller's base location,
        grouped by route and then by scanning user.
        """
        if current_user.base_location_id:
            users_result = await db.execute(
                select(AppUser.id, AppUser.person_name)
                .where(AppUser.base_location_id == current_user.base_location_id)
            )
            names = {user_id: name for user_id, name in users_result.all()}
        else:
            names = {current_user.id: current_user.username}

        result = await db.execute(
            select(Doc.route, Doc.last_scanned_by)
            .where(
                Doc.status == DocStatus.READY_FOR_DISPATCH,
                Doc.last_scanned_by.in_(list(names))
            )
        )
        rows = result.all()

        counts: Dict[str, Dict[str, int]] = {}
        for route, user_id in rows:
            per_user = counts.setdefault(route, {})
            per_user[user_id] = per_user.get(user_id, 0) + 1

        routes = []
        for route in sorted(counts):
            users = [
                DispatchQueueUser(user_id=user_id, person_name=names.get(user_id), doc_count=count)
                for user_id, count in sorted(counts[route].items())
            ]
            routes.append(DispatchQueueRoute(
                route=route,
                doc_count=sum(user.doc_count for user in users),
                users=users,
            ))

        return DispatchQueueResponse(
            message=f"Found {len(rows)} documents in dispatch queue for your base location",
            total_docs=len(rows),
            routes=routes,
        )

    async def get_doc_trip_info(self, db: AsyncSession, doc_id_fragment: str) -> DocTripInfo:
        """Look up a document by a unique fragment of its id and report its trip."""
        fragment = doc_id_fragment.strip()
        if not fragment:
            raise BadRequestError("Document id is required")

        result = await db.execute(select(Doc).where(Doc.id.contains(fragment, autoescape=True)).limit(2))
        matches = result.scalars().all()

        if not matches:
            raise BadRequestError(f"No document found matching '{fragment}'")
        if len(matches) > 1:
            raise BadRequestError(f"More than one document matches '{fragment}'. Enter more digits.")

        doc = matches[0]
        trip_id = doc.trip_id or doc.last_trip_id
        trip = await db.get(Trip, trip_id) if trip_id else None

        return DocTripInfo(
            doc_id=doc.id,
            doc_status=doc.status,
            trip_id=trip.id if trip else None,
            trip_status=trip.status.value if trip else None,
        )

    # Mock data

    async def create_mock_data(self, request: MockDataRequest) -> MockDataResponse:
        docs = generate_mock_docs(
            count=request.count,
            real_phone_number=request.real_phone_number,
            real_route=request.real_route,
            real_lot=request.real_lot,
        )
        self.mock_source.add_docs(docs)
        logger.info("Generated %d mock documents", len(docs))
        return MockDataResponse(
            message="Mock data created successfully",
            count=len(docs),
            doc_ids=[doc.doc_id for doc in docs],
        )

    async def purge_mock_data(self, db: AsyncSession) -> PurgeMockDataResponse:
        """Hard-delete mock documents, their signatures and mock customers."""
        mock_pattern = f"{settings.mock_customer_prefix}%"

        result = await db.execute(select(Doc.id).where(Doc.customer_id.like(mock_pattern)))
        doc_ids = list(result.scalars().all())

        try:
            if doc_ids:
                await db.execute(delete(Signature).where(Signature.doc_id.in_(doc_ids)))
                await db.execute(delete(Doc).where(Doc.id.in_(doc_ids)))
            customers = await db.execute(delete(Customer).where(Customer.id.like(mock_pattern)))
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Mock data purge failed: %s", exc)
            raise InternalServiceError(f"Failed to purge mock data: {exc}")

        self.mock_source.clear()
        logger.info("Purged %d mock documents and %d mock customers", len(doc_ids), customers.rowcount)
        return PurgeMockDataResponse(deleted_docs=len(doc_ids), deleted_customers=customers.rowcount)
