"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    tracking, docs, trips, locations, settings, customers, reports
)

router = APIRouter()

# Public tracking (no auth); registered before the document routes
router.include_router(tracking.router)

router.include_router(docs.router)
router.include_router(trips.router)
router.include_router(locations.router)
router.include_router(settings.router)
router.include_router(customers.router)
router.include_router(reports.router)
