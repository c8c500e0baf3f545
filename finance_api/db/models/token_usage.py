from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Index
from finance_api.db.base import Base, utcnow


class TokenUsage(Base):
    """
    Append-only ledger of AI token consumption.

    One row per AI call that returned a response. Rows are never updated or deleted.
    """
    __tablename__ = "token_usage"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    request_type = Column(String(20), nullable=False)  # "receipt", "insight", "meal_plan"
    request_id = Column(String(36), unique=True, nullable=False)  # uuid4 per call
    prompt_tokens = Column(Integer, default=0, nullable=False)
    response_tokens = Column(Integer, default=0, nullable=False)
    total_tokens = Column(Integer, default=0, nullable=False)
    cost_in_cents = Column(Integer, default=0, nullable=False)
    metadata_json = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_token_usage_user_created", "user_id", "created_at"),
    )
