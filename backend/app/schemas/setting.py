"""
Setting schemas.
"""

from pydantic import BaseModel, Field


class SettingResponse(BaseModel):
    setting_name: str
    setting_value: str
    
    class Config:
        from_attributes = True


class UpdateSettingRequest(BaseModel):
    setting_value: str = Field(..., min_length=1, max_length=100)


class UpdateSettingResult(BaseModel):
    success: bool
    message: str
    setting_name: str
    old_value: str
    new_value: str
    status_code: int = 200
