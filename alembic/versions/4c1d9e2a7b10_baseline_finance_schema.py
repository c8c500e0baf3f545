"""baseline_finance_schema

Revision ID: 4c1d9e2a7b10
Revises:
Create Date: 2026-10-18 12:00:00.000000

Creates every table that does not exist yet, so databases first built with
``create_all`` can be brought under Alembic without errors.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '4c1d9e2a7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=120), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('password_hash', sa.String(), nullable=False),
            sa.Column('active', sa.Boolean(), nullable=False),
            sa.Column('last_login_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    if not table_exists('user_configs'):
        op.create_table('user_configs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('currency', sa.String(length=3), nullable=False),
            sa.Column('monthly_limit', sa.Float(), nullable=False),
            sa.Column('notifications_enabled', sa.Boolean(), nullable=False),
            sa.Column('language', sa.String(length=5), nullable=False),
            sa.Column('theme', sa.String(length=10), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id')
        )
        op.create_index(op.f('ix_user_configs_id'), 'user_configs', ['id'], unique=False)

    if not table_exists('sessions'):
        op.create_table('sessions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('token', sa.String(length=64), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('expires_at', sa.DateTime(), nullable=False),
            sa.Column('valid', sa.Boolean(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_sessions_id'), 'sessions', ['id'], unique=False)
        op.create_index(op.f('ix_sessions_token'), 'sessions', ['token'], unique=True)
        op.create_index(op.f('ix_sessions_user_id'), 'sessions', ['user_id'], unique=False)
        op.create_index('idx_sessions_user_valid', 'sessions', ['user_id', 'valid'], unique=False)

    if not table_exists('categories'):
        op.create_table('categories',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=60), nullable=False),
            sa.Column('icon', sa.String(length=40), nullable=True),
            sa.Column('color_hex', sa.String(length=7), nullable=True),
            sa.Column('type', sa.String(length=10), nullable=False),
            sa.Column('order', sa.Integer(), nullable=False),
            sa.Column('active', sa.Boolean(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_categories_id'), 'categories', ['id'], unique=False)
        op.create_index(op.f('ix_categories_user_id'), 'categories', ['user_id'], unique=False)
        op.create_index('idx_categories_user_active', 'categories', ['user_id', 'active'], unique=False)

    if not table_exists('expenses'):
        op.create_table('expenses',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('category_id', sa.Integer(), nullable=False),
            sa.Column('description', sa.String(length=255), nullable=False),
            sa.Column('amount', sa.Float(), nullable=False),
            sa.Column('date', sa.Date(), nullable=False),
            sa.Column('recurring', sa.Boolean(), nullable=False),
            sa.Column('origin', sa.String(length=10), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_expenses_id'), 'expenses', ['id'], unique=False)
        op.create_index(op.f('ix_expenses_user_id'), 'expenses', ['user_id'], unique=False)
        op.create_index(op.f('ix_expenses_category_id'), 'expenses', ['category_id'], unique=False)
        op.create_index(op.f('ix_expenses_date'), 'expenses', ['date'], unique=False)
        op.create_index('idx_expenses_user_date', 'expenses', ['user_id', 'date'], unique=False)

    if not table_exists('expense_items'):
        op.create_table('expense_items',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('expense_id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('quantity', sa.Float(), nullable=False),
            sa.Column('unit_price', sa.Float(), nullable=False),
            sa.Column('total_price', sa.Float(), nullable=False),
            sa.Column('category_tag', sa.String(length=60), nullable=True),
            sa.ForeignKeyConstraint(['expense_id'], ['expenses.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_expense_items_id'), 'expense_items', ['id'], unique=False)
        op.create_index(op.f('ix_expense_items_expense_id'), 'expense_items', ['expense_id'], unique=False)

    if not table_exists('receipts'):
        op.create_table('receipts',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('expense_id', sa.Integer(), nullable=False),
            sa.Column('file_path', sa.String(), nullable=True),
            sa.Column('extracted_text', sa.Text(), nullable=True),
            sa.Column('ocr_confidence', sa.Float(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['expense_id'], ['expenses.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('expense_id')
        )
        op.create_index(op.f('ix_receipts_id'), 'receipts', ['id'], unique=False)

    if not table_exists('generated_tips'):
        op.create_table('generated_tips',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('type', sa.String(length=15), nullable=False),
            sa.Column('text', sa.Text(), nullable=False),
            sa.Column('model_source', sa.String(length=80), nullable=False),
            sa.Column('relevance', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_generated_tips_id'), 'generated_tips', ['id'], unique=False)
        op.create_index(op.f('ix_generated_tips_user_id'), 'generated_tips', ['user_id'], unique=False)
        op.create_index('idx_tips_user_relevance', 'generated_tips', ['user_id', 'relevance'], unique=False)

    if not table_exists('meal_plans'):
        op.create_table('meal_plans',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('iso_week', sa.String(length=8), nullable=False),
            sa.Column('calorie_goal', sa.Integer(), nullable=False),
            sa.Column('estimated_cost', sa.Float(), nullable=False),
            sa.Column('generated_by_ai', sa.Boolean(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'iso_week', name='uq_meal_plan_user_week')
        )
        op.create_index(op.f('ix_meal_plans_id'), 'meal_plans', ['id'], unique=False)
        op.create_index(op.f('ix_meal_plans_user_id'), 'meal_plans', ['user_id'], unique=False)

    if not table_exists('meal_items'):
        op.create_table('meal_items',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('meal_plan_id', sa.Integer(), nullable=False),
            sa.Column('day_of_week', sa.String(length=3), nullable=False),
            sa.Column('meal_type', sa.String(length=6), nullable=False),
            sa.Column('title', sa.String(length=200), nullable=False),
            sa.Column('estimated_cost', sa.Float(), nullable=False),
            sa.Column('ingredients', sa.JSON(), nullable=False),
            sa.Column('instructions', sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(['meal_plan_id'], ['meal_plans.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_meal_items_id'), 'meal_items', ['id'], unique=False)
        op.create_index(op.f('ix_meal_items_meal_plan_id'), 'meal_items', ['meal_plan_id'], unique=False)

    if not table_exists('sync_jobs'):
        op.create_table('sync_jobs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('origin', sa.String(length=10), nullable=False),
            sa.Column('started_at', sa.DateTime(), nullable=False),
            sa.Column('finished_at', sa.DateTime(), nullable=True),
            sa.Column('status', sa.String(length=10), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_sync_jobs_id'), 'sync_jobs', ['id'], unique=False)
        op.create_index(op.f('ix_sync_jobs_user_id'), 'sync_jobs', ['user_id'], unique=False)

    if not table_exists('token_usage'):
        op.create_table('token_usage',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('request_type', sa.String(length=20), nullable=False),
            sa.Column('request_id', sa.String(length=36), nullable=False),
            sa.Column('prompt_tokens', sa.Integer(), nullable=False),
            sa.Column('response_tokens', sa.Integer(), nullable=False),
            sa.Column('total_tokens', sa.Integer(), nullable=False),
            sa.Column('cost_in_cents', sa.Integer(), nullable=False),
            sa.Column('metadata', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('request_id')
        )
        op.create_index(op.f('ix_token_usage_id'), 'token_usage', ['id'], unique=False)
        op.create_index(op.f('ix_token_usage_user_id'), 'token_usage', ['user_id'], unique=False)
        op.create_index('idx_token_usage_user_created', 'token_usage', ['user_id', 'created_at'], unique=False)


def downgrade() -> None:
    for table in (
        'token_usage', 'sync_jobs', 'meal_items', 'meal_plans', 'generated_tips',
        'receipts', 'expense_items', 'expenses', 'categories', 'sessions',
        'user_configs', 'users',
    ):
        if table_exists(table):
            op.drop_table(table)
