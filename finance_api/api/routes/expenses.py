"""
Expense CRUD endpoints.

An expense may carry one receipt, created or replaced in the same
transaction as the expense itself.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from finance_api.core.auth_dependency import get_db, get_current_user_obj
from finance_api.db.base import utcnow
from finance_api.db.models.expense import Expense, Receipt
from finance_api.db.models.user import User
from finance_api.db.session import atomic
from finance_api.schemas.finance import (
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseResponse,
    ExpenseListResponse,
    ExpenseSummary,
    ReceiptInput,
)
from finance_api.services import expense_service
from finance_api.services.reconciler import round_money

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/expenses", tags=["Expenses"])


def _expense_query(db: Session, user_id: int):
    return (
        db.query(Expense)
        .options(
            selectinload(Expense.category),
            selectinload(Expense.receipt),
            selectinload(Expense.items),
        )
        .filter(Expense.user_id == user_id)
    )


def get_owned_expense(db: Session, user_id: int, expense_id: int) -> Expense:
    expense = _expense_query(db, user_id).filter(Expense.id == expense_id).first()
    if not expense:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")
    return expense


def ensure_category(db: Session, user_id: int, category_id: int):
    if not expense_service.category_belongs_to_user(db, user_id, category_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Category does not belong to user")


def apply_receipt(expense: Expense, receipt: ReceiptInput):
    """Update the existing receipt in place or attach a new one."""
    fields = receipt.model_dump()
    if expense.receipt is None:
        expense.receipt = Receipt(**fields)
        return
    for field, value in fields.items():
        setattr(expense.receipt, field, value)


@router.get("", response_model=ExpenseListResponse)
def list_expenses(
    month: Optional[int] = Query(None, ge=1, le=12, description="Defaults to the current month"),
    year: Optional[int] = Query(None, ge=1900, le=9999, description="Defaults to the current year"),
    category_id: Optional[int] = Query(None),
    origin: Optional[str] = Query(None, pattern="^(manual|ocr|ia)$"),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    today = utcnow().date()
    month = month or today.month
    year = year or today.year
    start, end = expense_service.month_interval(month, year)

    query = _expense_query(db, user.id).filter(Expense.date >= start, Expense.date < end)
    if category_id is not None:
        query = query.filter(Expense.category_id == category_id)
    if origin:
        query = query.filter(Expense.origin == origin)
    expenses = query.order_by(Expense.date.desc(), Expense.id.desc()).all()

    total = sum(e.amount or 0.0 for e in expenses)
    count = len(expenses)
    return ExpenseListResponse(
        month=month,
        year=year,
        expenses=[ExpenseResponse.model_validate(e) for e in expenses],
        summary=ExpenseSummary(
            count=count,
            total=round_money(total),
            average=round_money(total / count) if count else 0.0,
        ),
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ExpenseResponse)
def create_expense(
    payload: ExpenseCreate,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    ensure_category(db, user.id, payload.category_id)
    try:
        with atomic(db):
            expense = Expense(
                user_id=user.id,
                category_id=payload.category_id,
                description=payload.description,
                amount=round_money(payload.amount),
                date=payload.date,
                recurring=payload.recurring,
                origin=payload.origin,
            )
            if payload.receipt is not None:
                expense.receipt = Receipt(**payload.receipt.model_dump())
            db.add(expense)
    except SQLAlchemyError as e:
        logger.error(f"Failed to create expense: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create expense")

    logger.info(f"Expense created: expense_id={expense.id}, user_id={user.id}")
    return ExpenseResponse.model_validate(get_owned_expense(db, user.id, expense.id))


@router.get("/{expense_id}", response_model=ExpenseResponse)
def get_expense(
    expense_id: int,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    return ExpenseResponse.model_validate(get_owned_expense(db, user.id, expense_id))


@router.put("/{expense_id}", response_model=ExpenseResponse)
def update_expense(
    expense_id: int,
    payload: ExpenseUpdate,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Partial update.

    ``remove_receipt`` deletes the attached receipt; otherwise ``receipt``
    updates it or attaches a new one.
    """
    expense = get_owned_expense(db, user.id, expense_id)
    updates = payload.model_dump(exclude_unset=True, exclude={"receipt", "remove_receipt"})

    if updates.get("category_id") is not None:
        ensure_category(db, user.id, updates["category_id"])
    else:
        updates.pop("category_id", None)
    if "amount" in updates and updates["amount"] is not None:
        updates["amount"] = round_money(updates["amount"])

    try:
        with atomic(db):
            for field, value in updates.items():
                if value is not None:
                    setattr(expense, field, value)
            if payload.remove_receipt:
                expense.receipt = None
            elif payload.receipt is not None:
                apply_receipt(expense, payload.receipt)
            expense.updated_at = utcnow()
    except SQLAlchemyError as e:
        logger.error(f"Failed to update expense {expense_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update expense")

    return ExpenseResponse.model_validate(get_owned_expense(db, user.id, expense_id))


@router.delete("/{expense_id}", status_code=status.HTTP_200_OK)
def delete_expense(
    expense_id: int,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    expense = get_owned_expense(db, user.id, expense_id)
    try:
        with atomic(db):
            db.delete(expense)
    except SQLAlchemyError as e:
        logger.error(f"Failed to delete expense {expense_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete expense")

    logger.info(f"Expense deleted: expense_id={expense_id}, user_id={user.id}")
    return {"message": "Expense deleted", "id": expense_id}
