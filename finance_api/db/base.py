from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Models import Base from here; finance_api.db.models registers them all on Base.metadata


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo, so every stored datetime is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
