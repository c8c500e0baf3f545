from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from finance_api.db.base import Base, utcnow


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(60), nullable=False)
    icon = Column(String(40), nullable=True)
    color_hex = Column(String(7), nullable=True)
    type = Column(String(10), default="variavel", nullable=False)  # "fixa", "variavel"
    order = Column(Integer, default=0, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_categories_user_active", "user_id", "active"),
    )
