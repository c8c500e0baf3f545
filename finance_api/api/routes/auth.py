import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finance_api.core.auth_dependency import get_db, get_current_session, get_current_user_obj
from finance_api.db.models.user import User, UserSession
from finance_api.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    LogoutRequest,
    AuthResponse,
    LogoutResponse,
    UserResponse,
)
from finance_api.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _auth_response(user: User, session: UserSession) -> AuthResponse:
    return AuthResponse(
        access_token=auth_service.issue_token(session),
        expires_at=session.expires_at,
        user=UserResponse.model_validate(user),
    )


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """
    Create an account with default settings and categories, and log it in.
    """
    try:
        user, session = auth_service.register_user(
            db,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            currency=payload.currency,
            monthly_limit=payload.monthly_limit,
            notifications_enabled=payload.notifications_enabled,
            language=payload.language,
            theme=payload.theme,
        )
    except auth_service.EmailAlreadyRegistered:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    except SQLAlchemyError as e:
        logger.error(f"Registration failed: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to register user")
    return _auth_response(user, session)


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    try:
        user, session = auth_service.login_user(db, payload.email, payload.password)
    except auth_service.InvalidCredentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    except SQLAlchemyError as e:
        logger.error(f"Login failed: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create session")
    return _auth_response(user, session)


@router.post("/logout", response_model=LogoutResponse)
def logout(
    payload: Optional[LogoutRequest] = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db)
):
    """Invalidate this session, or all of the user's sessions with ``all_devices``."""
    all_devices = bool(payload and payload.all_devices)
    try:
        closed = auth_service.logout(db, session, all_devices=all_devices)
    except SQLAlchemyError as e:
        logger.error(f"Logout failed: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to end session")
    return LogoutResponse(message="Logged out", sessions_closed=closed)


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user_obj)):
    return UserResponse.model_validate(user)
