"""
Pydantic schemas for authentication endpoints.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    """Request schema for user registration."""
    name: str = Field(..., min_length=1, max_length=120, description="User's display name")
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., description="Password (6 chars minimum, 72 bytes maximum)")
    currency: str = Field("BRL", description="ISO currency code, 3 upper-case letters")
    monthly_limit: float = Field(0.0, ge=0, description="Monthly spending limit, 0 for none")
    notifications_enabled: bool = Field(True, description="Push notifications opt-in")
    language: str = Field("pt-BR", max_length=5, description="Preferred language")
    theme: str = Field("sistema", pattern="^(claro|escuro|sistema)$", description="UI theme")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        """Validate password length in bytes (bcrypt limit is 72 bytes)."""
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        if len(v.encode("utf-8")) > 72:
            raise ValueError("Password too long (bcrypt limit 72 bytes)")
        return v

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        v = (v or "BRL").strip().upper()
        if len(v) != 3 or not v.isascii() or not v.isalpha():
            raise ValueError("Currency must be 3 letters (A-Z)")
        return v

    @field_validator("language")
    @classmethod
    def default_language(cls, v: str) -> str:
        return v.strip() or "pt-BR"

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Maria Silva",
                "email": "maria@example.com",
                "password": "segredo123",
                "currency": "BRL",
                "monthly_limit": 3500.0,
                "language": "pt-BR",
                "theme": "sistema"
            }
        }


class LoginRequest(BaseModel):
    """Request schema for user login."""
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")

    class Config:
        json_schema_extra = {
            "example": {
                "email": "maria@example.com",
                "password": "segredo123"
            }
        }


class LogoutRequest(BaseModel):
    all_devices: bool = Field(False, description="Invalidate every session of the user")


class UserConfigResponse(BaseModel):
    currency: str
    monthly_limit: float
    notifications_enabled: bool
    language: str
    theme: str

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    """Profile of the authenticated user."""
    id: int
    name: str
    email: str
    active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    config: Optional[UserConfigResponse] = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


class LogoutResponse(BaseModel):
    message: str
    sessions_closed: int
