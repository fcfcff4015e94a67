"""
Security guards for role-based access control.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_user
from backend.app.schemas.auth import CurrentUser


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.
    
    Usage:
        @router.post("/trips/{trip_id}/start")
        async def start_trip(current_user: CurrentUser = Depends(require_role([UserRole.APP_TRIP_DRIVER]))):
            ...
    
    The caller passes when any of their roles is allowed. APP_ADMIN is the
    supreme role and passes every check.
    
    Raises:
        HTTPException 403 if none of the user's roles is in allowed_roles
    """
    async def role_checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not current_user.roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No roles assigned to user"
            )
        
        if UserRole.APP_ADMIN in current_user.roles:
            return current_user
        
        if not any(role in allowed_roles for role in current_user.roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )
        
        return current_user
    
    return role_checker


def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Dependency for admin-only endpoints (force-end, settings changes)."""
    if UserRole.APP_ADMIN not in current_user.roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    
    return current_user
