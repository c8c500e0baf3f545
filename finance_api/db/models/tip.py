from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Index
from finance_api.db.base import Base, utcnow


class GeneratedTip(Base):
    """
    Financial tip shown on the dashboard.

    A user's tips are replaced wholesale on every regeneration.
    """
    __tablename__ = "generated_tips"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(15), nullable=False)  # "economia", "planejamento", "alerta"
    text = Column(Text, nullable=False)
    model_source = Column(String(80), nullable=False)  # model name or "heuristic"
    relevance = Column(Integer, default=0, nullable=False)  # 0..100
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_tips_user_relevance", "user_id", "relevance"),
    )
