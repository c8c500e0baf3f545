from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from finance_api.core.ai_dependency import get_token_ledger
from finance_api.core.auth_dependency import get_db, get_current_user_obj
from finance_api.db.models.user import User
from finance_api.schemas.usage import (
    TokenUsageEntry,
    TokenUsageListResponse,
    TokenUsagePagination,
    TokenUsageSummary,
)
from finance_api.services.token_usage_service import (
    TokenUsageLedger,
    DEFAULT_PAGE_SIZE,
    clamp_page,
)

router = APIRouter(prefix="/token-usage", tags=["Token Usage"])


@router.get("", response_model=TokenUsageListResponse)
def list_token_usage(
    page: int = Query(1, description="Page number, values below 1 are treated as 1"),
    limit: int = Query(DEFAULT_PAGE_SIZE, description="Page size, capped at 200"),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    ledger: TokenUsageLedger = Depends(get_token_ledger)
):
    """
    The user's AI token ledger, newest first.

    The summary covers every entry, not only the returned page.
    """
    page, limit = clamp_page(page, limit)
    entries = ledger.list_entries(db, user.id, page, limit)
    return TokenUsageListResponse(
        entries=[TokenUsageEntry.model_validate(e) for e in entries],
        summary=TokenUsageSummary(**ledger.totals(db, user.id)),
        pagination=TokenUsagePagination(page=page, limit=limit, total_entries=ledger.count(db, user.id)),
    )
