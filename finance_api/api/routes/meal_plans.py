"""
Weekly meal plan endpoints.

Weeks are ISO weeks written ``YYYY-Www``; one plan is kept per user and week.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finance_api.core.ai_dependency import get_ai_provider, get_token_ledger
from finance_api.core.auth_dependency import get_db, get_current_user_obj
from finance_api.db.models.user import User
from finance_api.llm.provider import LLMProvider
from finance_api.schemas.ai import GenerateMealPlanRequest, MealPlanResponse
from finance_api.services.meal_plan_service import MealPlanService, InvalidISOWeek, resolve_iso_week
from finance_api.services.token_usage_service import TokenUsageLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meal-plans", tags=["Meal Plans"])


@router.get("", response_model=MealPlanResponse)
def get_meal_plan(
    week: Optional[str] = Query(None, description="ISO week YYYY-Www, defaults to the current week"),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    ledger: TokenUsageLedger = Depends(get_token_ledger)
):
    try:
        _, _, iso_week = resolve_iso_week(week)
    except InvalidISOWeek as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    plan = MealPlanService(db, None, ledger).load(user.id, iso_week)
    if not plan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No meal plan for week {iso_week}")
    return MealPlanResponse.model_validate(plan)


@router.post("/generate", status_code=status.HTTP_201_CREATED, response_model=MealPlanResponse)
def generate_meal_plan(
    payload: Optional[GenerateMealPlanRequest] = None,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
    provider: Optional[LLMProvider] = Depends(get_ai_provider),
    ledger: TokenUsageLedger = Depends(get_token_ledger)
):
    """
    Generate the plan for the requested week, replacing any existing one.

    Falls back to a fixed 21-meal plan when Gemini is unavailable.
    """
    payload = payload or GenerateMealPlanRequest()
    options = payload.model_dump(exclude={"week"}, exclude_none=True)
    service = MealPlanService(db, provider, ledger)
    try:
        plan = service.generate(user, week=payload.week, options=options)
    except InvalidISOWeek as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SQLAlchemyError as e:
        logger.error(f"Failed to store meal plan for user_id={user.id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate meal plan")

    logger.info(f"Meal plan generated: user_id={user.id}, week={plan.iso_week}, ai={plan.generated_by_ai}")
    return MealPlanResponse.model_validate(plan)
