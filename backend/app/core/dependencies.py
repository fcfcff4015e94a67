"""
Authentication dependencies for FastAPI.

Resolves the bearer token into a `CurrentUser` and hands out the services
held on `app.state`.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.core.jwt import decode_access_token
from backend.app.db.session import get_db
from backend.app.models.user import AppUser, AppUserRole
from backend.app.schemas.auth import CurrentUser

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> CurrentUser:
    """
    FastAPI dependency for JWT authentication.
    
    1. Validates JWT token signature and expiry
    2. Loads the user by mobile number (token subject) and checks it is active
    3. Loads the user's roles
    
    Raises:
        HTTPException: 401 if authentication fails, 403 if the user is inactive
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    mobile = payload.get("sub")
    if not mobile:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    result = await db.execute(select(AppUser).where(AppUser.id == mobile))
    user = result.scalar_one_or_none()
    
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )
    
    roles_result = await db.execute(
        select(AppUserRole.role_name).where(AppUserRole.app_user_id == user.id)
    )
    
    return CurrentUser(
        id=user.id,
        username=user.person_name,
        base_location_id=user.base_location_id,
        vehicle_nbr=user.vehicle_nbr,
        roles=list(roles_result.scalars().all()),
    )


def get_services(request: Request):
    """Return the service container built at startup."""
    return request.app.state.services
