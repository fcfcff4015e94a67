"""
Audit logging service for trip lifecycle and admin actions.

Audit rows are added to the caller's session and committed together with
the state change they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    TRIP_CREATED = "TRIP_CREATED"
    TRIP_STARTED = "TRIP_STARTED"
    TRIP_ENDED = "TRIP_ENDED"
    TRIP_FORCE_ENDED = "TRIP_FORCE_ENDED"
    TRIP_CANCELLED = "TRIP_CANCELLED"
    LOT_DROPPED_OFF = "LOT_DROPPED_OFF"
    SETTING_UPDATED = "SETTING_UPDATED"


def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[str] = None,
    actor_name: Optional[str] = None,
    trip_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Stage an audit event in the current transaction.
    
    Args:
        db: Database session (caller commits)
        action: Action being performed (use AuditAction constants)
        actor_id: Mobile number of the user performing the action
        actor_name: Display name of actor
        trip_id: Trip affected, if any
        metadata: Additional context as JSON
        
    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_name=actor_name,
        action=action,
        trip_id=trip_id,
        meta_data=metadata
    )
    
    db.add(audit_log)
    return audit_log


async def get_trip_audit_trail(
    db: AsyncSession,
    trip_id: int,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve the audit trail of one trip, most recent first.
    """
    query = (
        select(AuditLog)
        .where(AuditLog.trip_id == trip_id)
        .order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
        .limit(limit)
    )
    
    result = await db.execute(query)
    return list(result.scalars().all())
