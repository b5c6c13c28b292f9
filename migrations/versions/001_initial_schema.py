"""Initial schema for ingredients, price history and recipes

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create ingredients table
    op.create_table(
        'ingredients',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('unit', sa.String(20), nullable=False, server_default='kg'),
        sa.Column('current_price', sa.Numeric(12, 4), nullable=False, server_default='0'),
        sa.Column('raw_price_kg', sa.Numeric(12, 4), nullable=True),
        sa.Column('brand', sa.String(255), nullable=True),
        sa.Column('supplier', sa.String(255), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('idx_ingredients_name', 'ingredients', ['name'])
    op.create_index('idx_ingredients_active', 'ingredients', ['active'])

    # Create price_history table (append-only)
    op.create_table(
        'price_history',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('ingredient_id', sa.String(64), sa.ForeignKey('ingredients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('old_price', sa.Numeric(12, 4), nullable=False),
        sa.Column('new_price', sa.Numeric(12, 4), nullable=False),
        sa.Column('old_raw_price_kg', sa.Numeric(12, 4), nullable=True),
        sa.Column('new_raw_price_kg', sa.Numeric(12, 4), nullable=True),
        sa.Column('change_date', sa.Date(), nullable=False),
        sa.Column('supplier', sa.String(255), nullable=True),
        sa.Column('brand', sa.String(255), nullable=True),
        sa.Column('change_source', sa.String(50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('idx_price_history_ingredient_date', 'price_history', ['ingredient_id', 'change_date'])

    # Create recipes table; preparations is the technical sheet document
    op.create_table(
        'recipes',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('prep_time', sa.Integer(), server_default='0'),
        sa.Column('portion_weight_kg', sa.Numeric(10, 4), nullable=True),
        sa.Column('preparations', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('total_weight', sa.Numeric(14, 4), server_default='0'),
        sa.Column('yield_weight', sa.Numeric(14, 4), server_default='0'),
        sa.Column('cost_per_kg_raw', sa.Numeric(14, 4), server_default='0'),
        sa.Column('cost_per_kg_yield', sa.Numeric(14, 4), server_default='0'),
        sa.Column('cuba_weight', sa.Numeric(14, 4), server_default='0'),
        sa.Column('cuba_cost', sa.Numeric(14, 4), server_default='0'),
        sa.Column('total_cost', sa.Numeric(14, 4), server_default='0'),
        sa.Column('portion_cost', sa.Numeric(14, 4), server_default='0'),
        sa.Column('metrics_updated_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('idx_recipes_name', 'recipes', ['name'])
    op.create_index('idx_recipes_category', 'recipes', ['category'])


def downgrade() -> None:
    op.drop_table('recipes')
    op.drop_table('price_history')
    op.drop_table('ingredients')
