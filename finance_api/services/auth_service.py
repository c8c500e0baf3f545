"""
Account registration, login and logout.

Sessions live in the ``sessions`` table; the bearer JWT only points at one.
"""
import logging
from datetime import timedelta
from typing import Tuple

from sqlalchemy.orm import Session

from finance_api.core import config
from finance_api.core.security import (
    hash_password,
    verify_password,
    new_session_token,
    create_access_token,
)
from finance_api.db.base import utcnow
from finance_api.db.models.category import Category
from finance_api.db.models.user import User, UserConfig, UserSession
from finance_api.db.session import atomic

logger = logging.getLogger(__name__)

# (name, icon, color, type)
DEFAULT_CATEGORIES = (
    ("Alimentação", "utensils", "#EF4444", "variavel"),
    ("Transporte", "bus", "#3B82F6", "variavel"),
    ("Moradia", "home", "#8B5CF6", "fixa"),
    ("Saúde", "heart", "#10B981", "variavel"),
    ("Educação", "book", "#F59E0B", "variavel"),
    ("Lazer", "music", "#6366F1", "variavel"),
)


class EmailAlreadyRegistered(Exception):
    pass


class InvalidCredentials(Exception):
    pass


def _session_ttl() -> timedelta:
    return timedelta(hours=config.SESSION_TTL_HOURS)


def create_session(db: Session, user_id: int) -> UserSession:
    """Add a new session to ``db``; the caller commits."""
    session = UserSession(
        token=new_session_token(),
        user_id=user_id,
        expires_at=utcnow() + _session_ttl(),
        valid=True,
    )
    db.add(session)
    return session


def issue_token(session: UserSession) -> str:
    """Signed JWT pointing at ``session``; expires with it."""
    return create_access_token(
        {"sub": str(session.user_id), "sid": session.token},
        expires_delta=session.expires_at - utcnow(),
    )


def seed_default_categories(db: Session, user_id: int):
    for index, (name, icon, color, category_type) in enumerate(DEFAULT_CATEGORIES):
        db.add(Category(
            user_id=user_id,
            name=name,
            icon=icon,
            color_hex=color,
            type=category_type,
            order=index,
            active=True,
        ))


def register_user(db: Session, name: str, email: str, password: str,
                  currency: str = "BRL", monthly_limit: float = 0.0,
                  notifications_enabled: bool = True, language: str = "pt-BR",
                  theme: str = "sistema") -> Tuple[User, UserSession]:
    """
    Create user, config, default categories and a first session in one transaction.

    Raises:
        EmailAlreadyRegistered: email is taken
    """
    email = email.strip().lower()
    if db.query(User.id).filter(User.email == email).first():
        raise EmailAlreadyRegistered(email)

    password_hash = hash_password(password)

    with atomic(db):
        user = User(name=name.strip(), email=email, password_hash=password_hash, active=True)
        db.add(user)
        db.flush()
        db.add(UserConfig(
            user_id=user.id,
            currency=currency,
            monthly_limit=monthly_limit,
            notifications_enabled=notifications_enabled,
            language=language,
            theme=theme,
        ))
        seed_default_categories(db, user.id)
        session = create_session(db, user.id)

    logger.info(f"User registered: user_id={user.id}")
    return user, session


def login_user(db: Session, email: str, password: str) -> Tuple[User, UserSession]:
    """
    Raises:
        InvalidCredentials: unknown email, wrong password or inactive user
    """
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not user.active or not verify_password(password, user.password_hash):
        raise InvalidCredentials()

    with atomic(db):
        user.last_login_at = utcnow()
        session = create_session(db, user.id)

    logger.info(f"User logged in: user_id={user.id}")
    return user, session


def logout(db: Session, session: UserSession, all_devices: bool = False) -> int:
    """Invalidate the current session, or every session of its user. Returns sessions closed."""
    with atomic(db):
        query = db.query(UserSession).filter(UserSession.valid.is_(True))
        if all_devices:
            query = query.filter(UserSession.user_id == session.user_id)
        else:
            query = query.filter(UserSession.id == session.id)
        closed = query.update({UserSession.valid: False}, synchronize_session=False)

    logger.info(f"Logout: user_id={session.user_id}, all_devices={all_devices}, closed={closed}")
    return closed
