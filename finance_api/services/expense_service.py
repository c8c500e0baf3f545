"""
Expense aggregation queries.

Feeds the dashboard, the tips prompt/heuristics and the meal plan prompt.
"""
import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from finance_api.db.models.category import Category
from finance_api.db.models.expense import Expense, ExpenseItem
from finance_api.services.reconciler import round_money

logger = logging.getLogger(__name__)

TOP_CATEGORY_LIMIT = 5


def month_interval(month: int, year: int) -> Tuple[date, date]:
    """Half-open [first day of month, first day of next month)."""
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def previous_month(month: int, year: int) -> Tuple[int, int]:
    if month == 1:
        return 12, year - 1
    return month - 1, year


def aggregate_total(db: Session, user_id: int, start: date, end: date) -> float:
    total = (
        db.query(func.coalesce(func.sum(Expense.amount), 0.0))
        .filter(Expense.user_id == user_id, Expense.date >= start, Expense.date < end)
        .scalar()
    )
    return float(total or 0.0)


def top_categories(db: Session, user_id: int, start: date, end: date,
                   limit: int = TOP_CATEGORY_LIMIT) -> List[Dict]:
    """
    Categories ordered by spend in [start, end).

    Returns:
        List of {"category": Category, "total": float}
    """
    total_col = func.sum(Expense.amount).label("total")
    rows = (
        db.query(Category, total_col)
        .join(Expense, Expense.category_id == Category.id)
        .filter(Expense.user_id == user_id, Expense.date >= start, Expense.date < end)
        .group_by(Category.id)
        .order_by(total_col.desc(), Category.id)
        .limit(limit)
        .all()
    )
    return [{"category": category, "total": round_money(total)} for category, total in rows]


def recent_expenses(db: Session, user_id: int, limit: int = 6) -> List[Expense]:
    return (
        db.query(Expense)
        .options(joinedload(Expense.category))
        .filter(Expense.user_id == user_id)
        .order_by(Expense.date.desc(), Expense.id.desc())
        .limit(limit)
        .all()
    )


def recent_items(db: Session, user_id: int, limit: int = 20) -> List[ExpenseItem]:
    return (
        db.query(ExpenseItem)
        .join(Expense, Expense.id == ExpenseItem.expense_id)
        .filter(Expense.user_id == user_id)
        .order_by(ExpenseItem.id.desc())
        .limit(limit)
        .all()
    )


def dashboard_summary(db: Session, user_id: int, month: int, year: int) -> Dict:
    start, end = month_interval(month, year)
    prev_start, prev_end = month_interval(*previous_month(month, year))

    current_total = aggregate_total(db, user_id, start, end)
    previous_total = aggregate_total(db, user_id, prev_start, prev_end)

    variation = 0.0
    if previous_total > 0:
        variation = (current_total - previous_total) / previous_total * 100

    return {
        "month": month,
        "year": year,
        "total_spent": round_money(current_total),
        "previous_total": round_money(previous_total),
        "variation_pct": round_money(variation),
        "top_categories": top_categories(db, user_id, start, end),
    }


def category_belongs_to_user(db: Session, user_id: int, category_id: Optional[int]) -> bool:
    if category_id is None:
        return False
    return (
        db.query(Category.id)
        .filter(Category.id == category_id, Category.user_id == user_id)
        .first()
        is not None
    )
