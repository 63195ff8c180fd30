"""
Account schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: str
    role: str
    company_id: Optional[int] = None
    is_first_login: bool
    is_profile_complete: bool
    date_created: str
    last_login: Optional[str] = None


class CompleteProfileRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)


class UpdatePasswordRequest(BaseModel):
    current_password: str
    new_password: str
    confirm_new_password: str


class MessageResponse(BaseModel):
    message: str
