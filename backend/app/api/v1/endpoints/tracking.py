"""
Public Tracking API Endpoint.

No authentication: the tracking token is the only key.
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_services
from backend.app.db.session import get_db
from backend.app.schemas.tracking import DocTrackingResponse

router = APIRouter(prefix="/docs", tags=["Tracking"])


@router.get("/tracking", response_model=DocTrackingResponse)
async def track_doc(
    request: Request,
    token: str = Query(..., description="Tracking token from the SMS link"),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.docs.track_document(
        db,
        token,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
