"""
Ingredient and price history models for costing.

Ingredient: purchasable raw material with its current price
PriceHistory: immutable log of every ingredient price change
"""
import uuid
from sqlalchemy import Column, String, Text, Boolean, Numeric, DateTime, Date, ForeignKey, func, Index
from sqlalchemy.orm import relationship

from kitchen_api.db.base import Base


def new_id() -> str:
    return uuid.uuid4().hex


class Ingredient(Base):
    """An ingredient used in recipe preparations."""
    __tablename__ = "ingredients"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    unit = Column(String(20), nullable=False, default="kg")  # kg, g, l, ml, unit
    current_price = Column(Numeric(12, 4), nullable=False, default=0)  # per kg or base unit
    raw_price_kg = Column(Numeric(12, 4))  # optional explicit price per raw kg
    brand = Column(String(255))
    supplier = Column(String(255))
    category = Column(String(100))

    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    price_history = relationship(
        "PriceHistory",
        back_populates="ingredient",
        order_by="PriceHistory.created_at",
    )

    __table_args__ = (
        Index('idx_ingredients_name', 'name'),
        Index('idx_ingredients_active', 'active'),
    )


class PriceHistory(Base):
    """
    One row per ingredient price change.

    Rows are written once, when the change is committed, and never updated.
    Supplier and brand are snapshotted so the record stays meaningful after
    the ingredient itself is edited.
    """
    __tablename__ = "price_history"

    id = Column(String(64), primary_key=True, default=new_id)
    ingredient_id = Column(String(64), ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False)
    old_price = Column(Numeric(12, 4), nullable=False)
    new_price = Column(Numeric(12, 4), nullable=False)
    old_raw_price_kg = Column(Numeric(12, 4))
    new_raw_price_kg = Column(Numeric(12, 4))
    change_date = Column(Date, nullable=False)
    supplier = Column(String(255))
    brand = Column(String(255))
    change_source = Column(String(50))  # "api", "price_editor", "import"
    notes = Column(Text)

    created_at = Column(DateTime, server_default=func.now())

    ingredient = relationship("Ingredient", back_populates="price_history")

    __table_args__ = (
        Index('idx_price_history_ingredient_date', 'ingredient_id', 'change_date'),
    )
