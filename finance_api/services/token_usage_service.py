"""
Token usage ledger.

Every AI call that returns a response appends one TokenUsage row with the token counts
reported by the model and an estimated cost in integer cents. Rows are
never updated or deleted. Recording is best-effort: a failure is logged
and rolled back, and the caller's operation carries on.
"""
import logging
import os
import uuid
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finance_api.core import config
from finance_api.db.models.token_usage import TokenUsage
from finance_api.db.session import atomic
from finance_api.llm.provider import UsageMetadata

logger = logging.getLogger(__name__)

REQUEST_TYPES = ("receipt", "insight", "meal_plan")
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

_THOUSAND = Decimal(1000)


def lookup_cost_rate(env_key: str, log: Optional[logging.Logger] = None) -> Decimal:
    """
    Read a per-1k-token rate (decimal cents) from the environment.

    Unset means 0. Unparseable, negative or non-finite values log a warning
    and also mean 0.
    """
    log = log or logger
    raw = os.getenv(env_key)
    if raw is None or not raw.strip():
        return Decimal(0)
    try:
        rate = Decimal(raw.strip())
    except InvalidOperation:
        log.warning(f"Invalid token rate in {env_key}={raw!r}, using 0")
        return Decimal(0)
    if not rate.is_finite() or rate < 0:
        log.warning(f"Invalid token rate in {env_key}={raw!r}, using 0")
        return Decimal(0)
    return rate


class TokenUsageLedger:
    """Append-only record of AI token consumption per user."""

    def __init__(self, prompt_rate: Any = 0, response_rate: Any = 0,
                 logger: Optional[logging.Logger] = None):
        self.prompt_rate = Decimal(str(prompt_rate))
        self.response_rate = Decimal(str(response_rate))
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_env(cls, logger: Optional[logging.Logger] = None) -> "TokenUsageLedger":
        return cls(
            prompt_rate=lookup_cost_rate(config.PROMPT_COST_ENV, logger),
            response_rate=lookup_cost_rate(config.RESPONSE_COST_ENV, logger),
            logger=logger,
        )

    def estimate_cost(self, usage: UsageMetadata) -> int:
        """
        (prompt/1000 * prompt_rate) + (response/1000 * response_rate), rounded
        half-up to whole cents. Non-positive totals cost 0.
        """
        cost = (
            Decimal(usage.prompt_token_count) / _THOUSAND * self.prompt_rate
            + Decimal(usage.candidates_token_count) / _THOUSAND * self.response_rate
        )
        cents = int(cost.quantize(Decimal(1), rounding=ROUND_HALF_UP))
        return cents if cents > 0 else 0

    def record(
        self,
        db: Session,
        user_id: int,
        request_type: str,
        usage: UsageMetadata,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[TokenUsage]:
        """
        Append one ledger entry in its own transaction.

        Returns:
            The stored entry, or None when recording failed
        """
        if request_type not in REQUEST_TYPES:
            raise ValueError(f"Unknown request type: {request_type}")

        entry = TokenUsage(
            user_id=user_id,
            request_type=request_type,
            request_id=str(uuid.uuid4()),
            prompt_tokens=usage.prompt_token_count,
            response_tokens=usage.candidates_token_count,
            total_tokens=usage.total_token_count,
            cost_in_cents=self.estimate_cost(usage),
            metadata_json=dict(metadata or {}),
        )
        try:
            with atomic(db):
                db.add(entry)
        except SQLAlchemyError as e:
            self.logger.warning(
                f"Could not record token usage: user_id={user_id}, type={request_type}: {e}"
            )
            return None

        db.refresh(entry)
        self.logger.info(
            f"Token usage recorded: user_id={user_id}, type={request_type}, "
            f"tokens={entry.total_tokens}, cost_cents={entry.cost_in_cents}"
        )
        return entry

    def list_entries(self, db: Session, user_id: int, page: int = 1,
                     limit: int = DEFAULT_PAGE_SIZE) -> List[TokenUsage]:
        """Newest first. Out-of-range page/limit are clamped."""
        page, limit = clamp_page(page, limit)
        return (
            db.query(TokenUsage)
            .filter(TokenUsage.user_id == user_id)
            .order_by(TokenUsage.created_at.desc(), TokenUsage.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

    def count(self, db: Session, user_id: int) -> int:
        return db.query(func.count(TokenUsage.id)).filter(TokenUsage.user_id == user_id).scalar() or 0

    def totals(self, db: Session, user_id: int) -> Dict[str, int]:
        prompt_sum, response_sum, total_sum, cost_sum = (
            db.query(
                func.coalesce(func.sum(TokenUsage.prompt_tokens), 0),
                func.coalesce(func.sum(TokenUsage.response_tokens), 0),
                func.coalesce(func.sum(TokenUsage.total_tokens), 0),
                func.coalesce(func.sum(TokenUsage.cost_in_cents), 0),
            )
            .filter(TokenUsage.user_id == user_id)
            .one()
        )
        return {
            "total_prompt_tokens": int(prompt_sum),
            "total_response_tokens": int(response_sum),
            "total_tokens": int(total_sum),
            "total_cost_cents": int(cost_sum),
        }


def clamp_page(page: Optional[int], limit: Optional[int]):
    if not limit or limit <= 0:
        limit = DEFAULT_PAGE_SIZE
    limit = min(limit, MAX_PAGE_SIZE)
    if not page or page < 1:
        page = 1
    return page, limit
