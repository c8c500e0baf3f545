import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finance_api.core.ai_dependency import get_ai_provider, get_token_ledger
from finance_api.core.auth_dependency import get_db, get_current_user_obj
from finance_api.db.base import utcnow
from finance_api.db.models.user import User
from finance_api.llm.provider import LLMProvider
from finance_api.schemas.ai import TipListResponse, TipResponse
from finance_api.services.tips_service import TipsService, HEURISTIC_SOURCE
from finance_api.services.token_usage_service import TokenUsageLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tips", tags=["Tips"])


def _resolve_period(month: Optional[int], year: Optional[int]):
    today = utcnow().date()
    return month or today.month, year or today.year


def _regenerate(service: TipsService, user: User, month: int, year: int) -> TipListResponse:
    try:
        tips, ai_used = service.regenerate(user, month, year)
    except SQLAlchemyError as e:
        logger.error(f"Failed to store tips for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate tips")
    return TipListResponse(
        tips=[TipResponse.model_validate(t) for t in tips],
        source="gemini" if ai_used else HEURISTIC_SOURCE,
    )


@router.get("", response_model=TipListResponse)
def list_tips(
    refresh: bool = Query(False, description="Regenerate before returning"),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    provider: Optional[LLMProvider] = Depends(get_ai_provider),
    ledger: TokenUsageLedger = Depends(get_token_ledger)
):
    """
    Stored tips, top five by relevance.

    Tips are generated on first access or when ``refresh`` is set.
    """
    month, year = _resolve_period(month, year)
    service = TipsService(db, provider, ledger)

    stored = service.load(user.id)
    if stored and not refresh:
        return TipListResponse(tips=[TipResponse.model_validate(t) for t in stored], source="stored")
    return _regenerate(service, user, month, year)


@router.post("/generate", response_model=TipListResponse)
def generate_tips(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    provider: Optional[LLMProvider] = Depends(get_ai_provider),
    ledger: TokenUsageLedger = Depends(get_token_ledger)
):
    month, year = _resolve_period(month, year)
    return _regenerate(TipsService(db, provider, ledger), user, month, year)
