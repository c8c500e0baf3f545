import logging
import secrets
import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt
from finance_api.core.config import SECRET_KEY, ALGORITHM

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    """
    Hash a password with bcrypt.

    Passwords are validated to at most 72 bytes before they get here; anything
    longer is truncated since bcrypt ignores the excess anyway.

    Raises:
        ValueError: If password cannot be hashed
    """
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        logger.warning("Password exceeds 72 bytes, truncating before hashing")
        password_bytes = password_bytes[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")
    except ValueError as e:
        logger.error(f"Password hashing failed: {e}")
        raise ValueError("Invalid password") from e


def verify_password(password: str, hashed: str) -> bool:
    """Return True if ``password`` matches the bcrypt ``hashed`` value."""
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(password_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError) as e:
        logger.warning(f"Password verification failed: {e}")
        return False


def new_session_token() -> str:
    """64 hex chars of randomness."""
    return secrets.token_hex(32)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Raises jose.JWTError on a bad signature or expired token."""
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
