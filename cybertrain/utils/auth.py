from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, Cookie, Response, status, Depends
from sqlalchemy.orm import Session

from cybertrain.config import get_db, settings
from cybertrain.models.models import User
from cybertrain.schemas.auth_schemas import AuthTokenPayload
from cybertrain.utils.jwt import verify_token, get_password_hash, create_access_token, verify_password
from cybertrain.utils.permissions import Action, require

COOKIE_NAME = "access_token"


def get_current_user(access_token: Optional[str] = Cookie(None), db: Session = Depends(get_db)) -> User:
    if not access_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing token",
        )

    payload = verify_token(access_token)
    if payload.sub is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )
    user = get_user_by_email(payload.sub, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )
    return user


def require_action(action: Action):
    """Dependency factory: the current user must hold the capability for ``action``."""

    def _dependency(current_user: User = Depends(get_current_user)) -> User:
        require(current_user.role, action)
        return current_user

    return _dependency


def set_auth_cookie(response: Response, user: User) -> None:
    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = create_access_token(
        AuthTokenPayload(sub=user.email, role=user.role.value, exp=datetime.now(timezone.utc) + expires)
    )
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=int(expires.total_seconds()),
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key=COOKIE_NAME,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax"
    )


def get_user_by_email(email: str, db: Session) -> User | None:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def create_user(
    email: str,
    password: str,
    db: Session,
    **fields,
) -> User:
    """Create and commit a user. ``fields`` are extra column values (names, role, company)."""
    user = User(email=email.strip().lower(), hashed_password=get_password_hash(password), **fields)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def authenticate_user(email: str, password: str, db: Session) -> User | None:
    user = get_user_by_email(email, db)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user
