"""
Document API Endpoints.

Scanning, undo, dispatch queue and delivery recording.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Body, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_services
from backend.app.core.guards import require_role, require_admin
from backend.app.db.session import get_db
from backend.app.models.enums import UserRole
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.doc import (
    DeliveryResult, DispatchQueueResponse, DocTripInfo,
    MarkDeliveryRequest, MarkDeliveryFailedRequest,
    MockDataRequest, MockDataResponse, PurgeMockDataResponse, TrackingLinkResponse
)

router = APIRouter(prefix="/docs", tags=["Documents"])

scanner = require_role([UserRole.APP_SCANNER])
trip_staff = require_role([UserRole.APP_SCANNER, UserRole.APP_TRIP_CREATOR, UserRole.APP_TRIP_DRIVER])


@router.post("/{doc_id}/scan")
async def scan_doc(
    doc_id: str = Path(..., min_length=1, max_length=50),
    current_user: CurrentUser = Depends(scanner),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    """
    Scan a document into the dispatch queue.
    
    Responds with the status code carried by the scan result.
    """
    result = await services.docs.scan_and_add(db, doc_id, current_user)
    return JSONResponse(status_code=result.status_code, content=result.model_dump())


@router.post("/undo-scans")
async def undo_scans(
    current_user: CurrentUser = Depends(scanner),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    """Remove every dispatch-queue document the caller scanned."""
    result = await services.docs.undo_all_scans(db, current_user)
    return JSONResponse(status_code=result.status_code, content=result.model_dump())


@router.get("/dispatch-queue", response_model=DispatchQueueResponse)
async def dispatch_queue(
    current_user: CurrentUser = Depends(trip_staff),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.docs.get_dispatch_queue_for_user(db, current_user)


@router.post("/{doc_id}/mark-delivery", response_model=DeliveryResult)
async def mark_delivery(
    doc_id: str = Path(...),
    request: MarkDeliveryRequest = Body(...),
    current_user: CurrentUser = Depends(require_role([UserRole.APP_TRIP_DRIVER])),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.docs.mark_delivery(db, doc_id, request, current_user)


@router.post("/{doc_id}/mark-delivery-failed", response_model=DeliveryResult)
async def mark_delivery_failed(
    doc_id: str = Path(...),
    request: MarkDeliveryFailedRequest = Body(...),
    current_user: CurrentUser = Depends(require_role([UserRole.APP_TRIP_DRIVER])),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.docs.mark_delivery_failed(db, doc_id, request, current_user)


@router.get("/{doc_id_fragment}/trip-info", response_model=DocTripInfo)
async def doc_trip_info(
    doc_id_fragment: str = Path(..., min_length=1),
    current_user: CurrentUser = Depends(trip_staff),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    """Find the trip of a document from a unique fragment of its id."""
    return await services.docs.get_doc_trip_info(db, doc_id_fragment)


@router.post("/mock-data", response_model=MockDataResponse)
async def create_mock_data(
    request: MockDataRequest = Body(...),
    admin: CurrentUser = Depends(require_admin),
    services=Depends(get_services)
):
    return await services.docs.create_mock_data(request)


@router.delete("/mock-data", response_model=PurgeMockDataResponse)
async def purge_mock_data(
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.docs.purge_mock_data(db)


@router.get("/tracking-link", response_model=TrackingLinkResponse)
async def tracking_link(
    request: Request,
    doc_id: Optional[str] = Query(None, alias="docId"),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    """
    Tracking URL for a document, called by the ERP (no authentication).

    The URL is built on the host the request came in on.
    """
    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    return await services.docs.get_tracking_link(db, doc_id, host)
