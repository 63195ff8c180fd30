"""
Account endpoints: profile completion and password change.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cybertrain.config import get_db
from cybertrain.models.models import User
from cybertrain.routes.auth_routes import user_response
from cybertrain.schemas.user_schemas import (
    CompleteProfileRequest,
    MessageResponse,
    UpdatePasswordRequest,
    UserResponse,
)
from cybertrain.utils.auth import get_current_user
from cybertrain.utils.jwt import get_password_hash, password_problems, verify_password

logger = logging.getLogger(__name__)

user_routes = APIRouter()


@user_routes.post("/complete-profile", response_model=UserResponse)
async def complete_profile(
    body: CompleteProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserResponse:
    """Set first and last name on first login; these appear on certificates."""
    first_name, last_name = body.first_name.strip(), body.last_name.strip()
    if not first_name or not last_name:
        raise HTTPException(status_code=400, detail="First and last name are required")
    current_user.first_name = first_name
    current_user.last_name = last_name
    current_user.is_profile_complete = True
    current_user.is_first_login = False
    db.commit()
    db.refresh(current_user)
    logger.info("User %s completed profile", current_user.id)
    return user_response(current_user)


@user_routes.patch("/password", response_model=MessageResponse)
async def update_user_password(
    body: UpdatePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """
    Update current user's password. Requires current password and confirmation of new password.
    """
    if body.new_password != body.confirm_new_password:
        raise HTTPException(status_code=400, detail="New password and confirmation do not match")
    if not verify_password(body.current_password, current_user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    problems = password_problems(body.new_password)
    if problems:
        raise HTTPException(status_code=400, detail=" ".join(problems))
    current_user.hashed_password = get_password_hash(body.new_password)
    db.commit()
    return MessageResponse(message="Password updated")
