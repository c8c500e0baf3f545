"""
Category endpoints.

Deleting a category only deactivates it; expenses keep pointing at it.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finance_api.core.auth_dependency import get_db, get_current_user_obj
from finance_api.db.models.category import Category
from finance_api.db.models.user import User
from finance_api.schemas.finance import CategoryCreate, CategoryUpdate, CategoryResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["Categories"])

_ACTIVE = {"true", "1", "ativo", "ativa", "active"}
_INACTIVE = {"false", "0", "inativo", "inativa", "inactive"}


def parse_status_filter(value: Optional[str]) -> Optional[bool]:
    """None means no filter ("all" or blank)."""
    key = (value or "").strip().lower()
    if key in ("", "all"):
        return None
    if key in _ACTIVE:
        return True
    if key in _INACTIVE:
        return False
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Invalid status (use true, false or all)"
    )


def get_owned_category(db: Session, user_id: int, category_id: int) -> Category:
    category = (
        db.query(Category)
        .filter(Category.id == category_id, Category.user_id == user_id)
        .first()
    )
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


@router.get("", response_model=List[CategoryResponse])
def list_categories(
    status_filter: Optional[str] = Query(None, alias="status", description="true, false or all"),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    active = parse_status_filter(status_filter)
    query = db.query(Category).filter(Category.user_id == user.id)
    if active is not None:
        query = query.filter(Category.active.is_(active))
    categories = query.order_by(Category.order, Category.name).all()
    return [CategoryResponse.model_validate(c) for c in categories]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CategoryResponse)
def create_category(
    payload: CategoryCreate,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    try:
        category = Category(user_id=user.id, **payload.model_dump())
        db.add(category)
        db.commit()
        db.refresh(category)
        logger.info(f"Category created: category_id={category.id}, user_id={user.id}")
        return CategoryResponse.model_validate(category)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to create category: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create category")


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    category = get_owned_category(db, user.id, category_id)
    try:
        for field, value in updates.items():
            setattr(category, field, value)
        db.commit()
        db.refresh(category)
        return CategoryResponse.model_validate(category)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update category {category_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update category")


@router.delete("/{category_id}", status_code=status.HTTP_200_OK)
def deactivate_category(
    category_id: int,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    category = get_owned_category(db, user.id, category_id)
    try:
        category.active = False
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to deactivate category {category_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to deactivate category")
    logger.info(f"Category deactivated: category_id={category_id}, user_id={user.id}")
    return {"message": "Category deactivated", "id": category_id}
