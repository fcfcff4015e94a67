"""
Shared enumerations.

Document and trip statuses are declared once here and reused by the ORM
models, the Pydantic schemas and the services.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.
    
    Roles:
        APP_ADMIN: Supreme user, may force-end trips and change settings
        APP_SCANNER: Scans documents into the dispatch queue
        APP_TRIP_CREATOR: Groups dispatch-queue documents into trips
        APP_TRIP_DRIVER: Drives trips and records deliveries
    """
    APP_ADMIN = "APP_ADMIN"
    APP_SCANNER = "APP_SCANNER"
    APP_TRIP_CREATOR = "APP_TRIP_CREATOR"
    APP_TRIP_DRIVER = "APP_TRIP_DRIVER"


class DocStatus(str, enum.Enum):
    """
    Document status enumeration.
    
    Status flow:
        READY_FOR_DISPATCH → TRIP_SCHEDULED → ON_TRIP → DELIVERED
        ON_TRIP → UNDELIVERED → (re-scan) READY_FOR_DISPATCH
        ON_TRIP → AT_TRANSIT_HUB → (re-scan) READY_FOR_DISPATCH
        TRIP_SCHEDULED → (trip cancelled) READY_FOR_DISPATCH
    DELIVERED is terminal.
    """
    READY_FOR_DISPATCH = "READY_FOR_DISPATCH"
    TRIP_SCHEDULED = "TRIP_SCHEDULED"
    ON_TRIP = "ON_TRIP"
    AT_TRANSIT_HUB = "AT_TRANSIT_HUB"
    DELIVERED = "DELIVERED"
    UNDELIVERED = "UNDELIVERED"


# Statuses in which a document is attached to a trip (trip_id is set)
TRIP_ATTACHED_STATUSES = frozenset({DocStatus.TRIP_SCHEDULED, DocStatus.ON_TRIP})


class TripStatus(str, enum.Enum):
    """
    Trip status enumeration.
    
    Status flow:
        SCHEDULED → STARTED → ENDED
        SCHEDULED → CANCELLED
    ENDED and CANCELLED are terminal.
    """
    SCHEDULED = "SCHEDULED"
    STARTED = "STARTED"
    ENDED = "ENDED"
    CANCELLED = "CANCELLED"


class SettingName(str, enum.Enum):
    """Names of the tunable settings stored in the setting table."""
    MINS_BETWEEN_LOCATION_HEARTBEATS = "MINS_BETWEEN_LOCATION_HEARTBEATS"
    COOL_OFF_SECONDS_BTWN_DIFF_ROUTE_SCANS = "COOL_OFF_SECONDS_BTWN_DIFF_ROUTE_SCANS"
    UPDATE_DOC_STATUS_TO_ERP = "UPDATE_DOC_STATUS_TO_ERP"
    SEND_TRACKING_SMS = "SEND_TRACKING_SMS"
