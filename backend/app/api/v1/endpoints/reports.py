"""
Report API Endpoints.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_current_user
from backend.app.db.session import get_db
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.report import DeliveryReportQuery, DeliveryReportResponse
from backend.app.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/delivery-report-data", response_model=DeliveryReportResponse)
async def delivery_report_data(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    customer_id: Optional[str] = Query(None),
    doc_id: Optional[str] = Query(None, description="Fragment of the document id"),
    customer_city: Optional[str] = Query(None, description="Comma separated cities"),
    route: Optional[str] = Query(None),
    trip_id: Optional[int] = Query(None, ge=1),
    driver_user_id: Optional[str] = Query(None),
    origin_warehouse: Optional[str] = Query(None),
    trip_start_location: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delivered and undelivered trip documents; the date range is limited to one month."""
    query = DeliveryReportQuery(
        from_date=from_date,
        to_date=to_date,
        customer_id=customer_id,
        doc_id=doc_id,
        customer_city=customer_city,
        route=route,
        trip_id=trip_id,
        driver_user_id=driver_user_id,
        origin_warehouse=origin_warehouse,
        trip_start_location=trip_start_location,
    )
    return await ReportService.get_delivery_report(db, query)
