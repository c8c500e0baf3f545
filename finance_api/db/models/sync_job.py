from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from finance_api.db.base import Base, utcnow


class SyncJob(Base):
    __tablename__ = "sync_jobs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    origin = Column(String(10), default="mobile", nullable=False)  # "mobile", "web", "backup"
    started_at = Column(DateTime, default=utcnow, nullable=False)
    finished_at = Column(DateTime, nullable=True)
    status = Column(String(10), default="ok", nullable=False)  # "ok", "erro", "parcial"
