from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from finance_api.db.base import Base, utcnow


class MealPlan(Base):
    __tablename__ = "meal_plans"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    iso_week = Column(String(8), nullable=False)  # "YYYY-Www"
    calorie_goal = Column(Integer, default=2000, nullable=False)
    estimated_cost = Column(Float, default=0.0, nullable=False)
    generated_by_ai = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    items = relationship("MealItem", back_populates="meal_plan", cascade="all, delete-orphan",
                         order_by="MealItem.id")

    # One plan per user per week; regeneration replaces it
    __table_args__ = (
        UniqueConstraint("user_id", "iso_week", name="uq_meal_plan_user_week"),
    )


class MealItem(Base):
    __tablename__ = "meal_items"

    id = Column(Integer, primary_key=True, index=True)
    meal_plan_id = Column(Integer, ForeignKey("meal_plans.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(String(3), nullable=False)  # "seg".."dom"
    meal_type = Column(String(6), nullable=False)  # "cafe", "almoco", "janta", "lanche"
    title = Column(String(200), nullable=False)
    estimated_cost = Column(Float, default=0.0, nullable=False)
    ingredients = Column(JSON, nullable=False, default=list)
    instructions = Column(Text, nullable=True)

    meal_plan = relationship("MealPlan", back_populates="items")
