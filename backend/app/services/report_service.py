"""
Report Service.

Delivery report: the final outcome (DELIVERED or UNDELIVERED) of every
document that went out on a trip, with its customer, trip, creator and
driver.
"""

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Tuple

from sqlalchemy import select, desc
from sqlalchemy.orm import aliased
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.clock import utcnow
from backend.app.core.config import settings
from backend.app.core.exceptions import BadRequestError
from backend.app.models.base_location import BaseLocation
from backend.app.models.customer import Customer
from backend.app.models.doc import Doc
from backend.app.models.enums import DocStatus
from backend.app.models.trip import Trip
from backend.app.models.user import AppUser
from backend.app.schemas.report import DeliveryReportItem, DeliveryReportQuery, DeliveryReportResponse

logger = logging.getLogger(__name__)

REPORTED_STATUSES = [DocStatus.DELIVERED, DocStatus.UNDELIVERED]


def report_window(query: DeliveryReportQuery) -> Tuple[datetime, datetime]:
    """
    Document-date window of the report, both ends inclusive.

    Raises:
        BadRequestError: inverted range or a range longer than a month
    """
    if query.from_date and query.to_date:
        if query.from_date > query.to_date:
            raise BadRequestError("From date must not be after to date.")
        days = (query.to_date - query.from_date).days + 1
        if days > settings.delivery_report_max_days:
            raise BadRequestError("Date range cannot exceed 1 month.")
        start_day, end_day = query.from_date, query.to_date
    else:
        end_day = utcnow().date()
        start_day = end_day - timedelta(days=settings.delivery_report_max_days)

    return (
        datetime.combine(start_day, time.min, tzinfo=timezone.utc),
        datetime.combine(end_day, time.max, tzinfo=timezone.utc),
    )


class ReportService:

    @staticmethod
    async def get_delivery_report(db: AsyncSession, query: DeliveryReportQuery) -> DeliveryReportResponse:
        """
        Delivered and undelivered trip documents in the window, newest trip
        first and by customer within a trip.
        """
        start, end = report_window(query)

        creator = aliased(AppUser)
        driver = aliased(AppUser)
        stmt = (
            select(Doc, Customer, Trip, creator, driver, BaseLocation.name)
            .join(Trip, Trip.id == Doc.last_trip_id)
            .outerjoin(Customer, Customer.id == Doc.customer_id)
            .outerjoin(creator, creator.id == Trip.created_by)
            .outerjoin(BaseLocation, BaseLocation.id == creator.base_location_id)
            .outerjoin(driver, driver.id == Trip.driven_by)
            .where(
                Doc.status.in_(REPORTED_STATUSES),
                Doc.doc_date.between(start, end)
            )
            .order_by(desc(Doc.last_trip_id), Doc.customer_id)
        )

        if query.customer_id:
            stmt = stmt.where(Doc.customer_id == query.customer_id)
        if query.doc_id:
            stmt = stmt.where(Doc.id.contains(query.doc_id, autoescape=True))
        if query.route:
            stmt = stmt.where(Doc.route == query.route)
        if query.trip_id:
            stmt = stmt.where(Doc.last_trip_id == query.trip_id)
        if query.origin_warehouse:
            stmt = stmt.where(Doc.origin_warehouse == query.origin_warehouse)
        if query.customer_city:
            cities = [city.strip() for city in query.customer_city.split(",") if city.strip()]
            if cities:
                stmt = stmt.where(Customer.city.in_(cities))
        if query.driver_user_id:
            stmt = stmt.where(Trip.driven_by == query.driver_user_id)
        if query.trip_start_location:
            stmt = stmt.where(creator.base_location_id == query.trip_start_location)

        result = await db.execute(stmt)

        data = []
        for doc, customer, trip, trip_creator, trip_driver, creator_location in result.all():
            data.append(DeliveryReportItem(
                doc_id=doc.id,
                status=doc.status,
                origin_warehouse=doc.origin_warehouse or "",
                doc_date=doc.doc_date,
                trip_id=trip.id,
                comment=doc.comment or "",
                customer_id=doc.customer_id,
                last_updated_at=doc.last_updated_at,
                firm_name=customer.firm_name if customer else "",
                address=(customer.address or "") if customer else "",
                city=(customer.city or "") if customer else "",
                pincode=(customer.pincode or "") if customer else "",
                created_by=trip.created_by,
                created_by_person_name=trip_creator.person_name if trip_creator else "",
                created_by_location=creator_location or "",
                driven_by=trip.driven_by,
                driver_name=trip_driver.person_name if trip_driver else "",
                vehicle_nbr=trip.vehicle_nbr,
                route=trip.route or doc.route,
                trip_status=trip.status,
            ))

        logger.info("Delivery report %s to %s: %d records", start.date(), end.date(), len(data))
        return DeliveryReportResponse(
            message=f"Retrieved {len(data)} delivery report records",
            data=data,
            total_records=len(data),
        )
