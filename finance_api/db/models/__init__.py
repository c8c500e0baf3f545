"""
Database models module.

Importing this package registers every model on Base.metadata, which
table creation and Alembic autogenerate rely on.
"""
from finance_api.db.models.user import User, UserConfig, UserSession
from finance_api.db.models.category import Category
from finance_api.db.models.expense import Expense, ExpenseItem, Receipt
from finance_api.db.models.tip import GeneratedTip
from finance_api.db.models.meal_plan import MealPlan, MealItem
from finance_api.db.models.sync_job import SyncJob
from finance_api.db.models.token_usage import TokenUsage

__all__ = [
    "User",
    "UserConfig",
    "UserSession",
    "Category",
    "Expense",
    "ExpenseItem",
    "Receipt",
    "GeneratedTip",
    "MealPlan",
    "MealItem",
    "SyncJob",
    "TokenUsage",
]
