"""
Login, logout and current-user endpoints.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from cybertrain.config import get_db
from cybertrain.models.models import User
from cybertrain.schemas.auth_schemas import LoginRequest, LoginResponse, LogoutResponse
from cybertrain.schemas.user_schemas import UserResponse
from cybertrain.utils.auth import authenticate_user, clear_auth_cookie, get_current_user, set_auth_cookie
from cybertrain.utils.common import iso_format, iso_or_none

logger = logging.getLogger(__name__)

auth_routes = APIRouter()


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        display_name=user.display_name,
        role=user.role.value,
        company_id=user.company_id,
        is_first_login=bool(user.is_first_login),
        is_profile_complete=bool(user.is_profile_complete),
        date_created=iso_format(user.date_created),
        last_login=iso_or_none(user.last_login),
    )


@auth_routes.post("/login")
def login(request: LoginRequest, response: Response, db: Session = Depends(get_db)) -> LoginResponse:
    """Authenticate user and set HTTP-only cookie with token."""
    user = authenticate_user(request.email, request.password, db)
    if user is None:
        logger.info("Failed login for %s", request.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    user.last_login = datetime.utcnow()
    db.commit()
    set_auth_cookie(response, user)
    logger.info("User %s logged in", user.id)
    return LoginResponse(
        message="Login successful",
        token_set=True,
        requires_profile_completion=not user.is_profile_complete,
    )


@auth_routes.post("/logout")
def logout(response: Response) -> LogoutResponse:
    """Clear the authentication cookie."""
    clear_auth_cookie(response)
    return LogoutResponse(message="Logout successful - cookie cleared")


@auth_routes.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)) -> UserResponse:
    return user_response(current_user)
