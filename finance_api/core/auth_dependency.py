from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session
from finance_api.core.security import decode_access_token
from finance_api.db.base import utcnow
from finance_api.db.session import SessionLocal
from finance_api.db.models.user import User, UserSession

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

CREDENTIALS_ERROR = "Invalid or expired session"


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_session(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> UserSession:
    """
    Resolve the bearer JWT to a live server-side session.

    The JWT's ``sid`` claim names the session; unknown, invalidated or
    expired sessions are rejected even if the JWT itself still verifies.
    """
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail=CREDENTIALS_ERROR)

    session_token = payload.get("sid")
    if not session_token:
        raise HTTPException(status_code=401, detail=CREDENTIALS_ERROR)

    session = db.query(UserSession).filter(UserSession.token == session_token).first()
    if session is None or not session.valid or session.expires_at <= utcnow():
        raise HTTPException(status_code=401, detail=CREDENTIALS_ERROR)
    if str(session.user_id) != str(payload.get("sub")):
        raise HTTPException(status_code=401, detail=CREDENTIALS_ERROR)
    return session


def get_current_user_obj(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db)
) -> User:
    """Get the current User object from the bearer session."""
    user = db.query(User).filter(User.id == session.user_id).first()
    if not user or not user.active:
        raise HTTPException(status_code=401, detail=CREDENTIALS_ERROR)
    return user
