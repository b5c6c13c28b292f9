"""
Recipe model (technical sheet).

The preparations are stored as a JSON document. The metric columns are a
cache of the recipe calculator's output over that document and are
rewritten whenever preparations or referenced prices change.
"""
import uuid
from sqlalchemy import Column, String, Integer, Numeric, DateTime, JSON, func, Index
from sqlalchemy.dialects.postgresql import JSONB

from kitchen_api.db.base import Base


JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class Recipe(Base):
    """A recipe with its preparation stages and derived cost metrics."""
    __tablename__ = "recipes"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    name = Column(String(255), nullable=False)
    category = Column(String(100))
    prep_time = Column(Integer, default=0)  # minutes
    portion_weight_kg = Column(Numeric(10, 4))

    preparations = Column(JSONDocument, nullable=False, default=list)

    # Derived metrics
    total_weight = Column(Numeric(14, 4), default=0)
    yield_weight = Column(Numeric(14, 4), default=0)
    cost_per_kg_raw = Column(Numeric(14, 4), default=0)
    cost_per_kg_yield = Column(Numeric(14, 4), default=0)
    cuba_weight = Column(Numeric(14, 4), default=0)
    cuba_cost = Column(Numeric(14, 4), default=0)
    total_cost = Column(Numeric(14, 4), default=0)
    portion_cost = Column(Numeric(14, 4), default=0)
    metrics_updated_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_recipes_name', 'name'),
        Index('idx_recipes_category', 'category'),
    )
