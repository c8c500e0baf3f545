import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from finance_api.core.auth_dependency import get_db, get_current_user_obj
from finance_api.db.base import utcnow
from finance_api.db.models.user import User
from finance_api.schemas.finance import CategoryResponse, CategoryTotal, DashboardSummaryResponse
from finance_api.services import expense_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/summary", response_model=DashboardSummaryResponse)
def get_summary(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """Month total, previous-month comparison and the top five categories."""
    today = utcnow().date()
    summary = expense_service.dashboard_summary(db, user.id, month or today.month, year or today.year)
    summary["top_categories"] = [
        CategoryTotal(category=CategoryResponse.model_validate(entry["category"]), total=entry["total"])
        for entry in summary["top_categories"]
    ]
    return DashboardSummaryResponse(**summary)
