"""
Customer API Endpoints.
"""

from typing import List, Union

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.guards import require_role
from backend.app.db.session import get_db
from backend.app.models.enums import UserRole
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.customer import CustomerLightResponse, CustomerResponse
from backend.app.services.customer_service import CustomerService

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.get("", response_model=None)
async def customer_master_data(
    lightweight: bool = Query(False, description="Only id, firm name and city"),
    current_user: CurrentUser = Depends(require_role([UserRole.APP_TRIP_CREATOR, UserRole.APP_TRIP_DRIVER])),
    db: AsyncSession = Depends(get_db)
) -> List[Union[CustomerResponse, CustomerLightResponse]]:
    """Customer master data sorted by firm name."""
    return await CustomerService.get_customer_master_data(db, lightweight=lightweight)
