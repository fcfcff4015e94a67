"""
Authentication Pydantic schemas.

The caller identity every service operation receives. Tokens are issued
upstream; this service only decodes them.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from backend.app.models.enums import UserRole


class CurrentUser(BaseModel):
    """
    Resolved caller identity.
    
    Built by `get_current_user` from the bearer token subject and the
    app_user / app_user_x_user_role rows.
    """
    id: str = Field(..., description="Mobile number of the user")
    username: str = Field(..., description="Person name")
    base_location_id: Optional[str] = Field(default=None, description="Base location of the user")
    vehicle_nbr: Optional[str] = None
    roles: List[UserRole] = Field(default_factory=list)
    
    def has_role(self, role: UserRole) -> bool:
        return role in self.roles
