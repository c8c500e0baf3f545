from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, ForeignKey, Index
from sqlalchemy.orm import relationship
from finance_api.db.base import Base, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    config = relationship("UserConfig", uselist=False, back_populates="user", cascade="all, delete-orphan")


class UserConfig(Base):
    """Per-user preferences (1:1 with users)."""
    __tablename__ = "user_configs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    currency = Column(String(3), default="BRL", nullable=False)
    monthly_limit = Column(Float, default=0.0, nullable=False)  # 0 means no limit
    notifications_enabled = Column(Boolean, default=True, nullable=False)
    language = Column(String(5), default="pt-BR", nullable=False)
    theme = Column(String(10), default="sistema", nullable=False)  # "claro", "escuro", "sistema"

    user = relationship("User", back_populates="config")


class UserSession(Base):
    """
    Server-side login session.

    The JWT handed to clients carries ``sid`` = token, so a session can be
    invalidated on logout even while the JWT itself has not expired.
    """
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    valid = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("idx_sessions_user_valid", "user_id", "valid"),
    )
