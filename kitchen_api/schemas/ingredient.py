"""
Ingredient Pydantic schemas for API request/response models.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


UNITS = {"kg", "g", "l", "ml", "unit"}


class IngredientBase(BaseModel):
    name: str
    unit: str = "kg"
    current_price: Decimal = Decimal(0)
    raw_price_kg: Optional[Decimal] = None
    brand: Optional[str] = None
    supplier: Optional[str] = None
    category: Optional[str] = None

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v):
        if not v.strip():
            raise ValueError('name cannot be blank')
        return v.strip()

    @field_validator('unit')
    @classmethod
    def unit_known(cls, v):
        unit = v.strip().lower()
        if unit not in UNITS:
            raise ValueError(f'unit must be one of {sorted(UNITS)}')
        return unit

    @field_validator('current_price', 'raw_price_kg')
    @classmethod
    def price_not_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError('prices cannot be negative')
        return v


class IngredientCreate(IngredientBase):
    """Request model for creating an ingredient."""
    pass


class IngredientUpdate(BaseModel):
    """Request model for updating an ingredient. Omitted fields are left unchanged."""
    name: Optional[str] = None
    unit: Optional[str] = None
    current_price: Optional[Decimal] = None
    raw_price_kg: Optional[Decimal] = None
    brand: Optional[str] = None
    supplier: Optional[str] = None
    category: Optional[str] = None
    active: Optional[bool] = None
    # Recorded on the price history entry when the price changes
    change_source: str = "api"
    notes: Optional[str] = None

    @field_validator('current_price', 'raw_price_kg')
    @classmethod
    def price_not_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError('prices cannot be negative')
        return v

    @field_validator('unit')
    @classmethod
    def unit_known(cls, v):
        if v is None:
            return v
        unit = v.strip().lower()
        if unit not in UNITS:
            raise ValueError(f'unit must be one of {sorted(UNITS)}')
        return unit


class IngredientResponse(BaseModel):
    id: str
    name: str
    unit: str
    current_price: Decimal
    raw_price_kg: Optional[Decimal] = None
    brand: Optional[str] = None
    supplier: Optional[str] = None
    category: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PriceHistoryResponse(BaseModel):
    id: str
    ingredient_id: str
    old_price: Decimal
    new_price: Decimal
    old_raw_price_kg: Optional[Decimal] = None
    new_raw_price_kg: Optional[Decimal] = None
    change_date: date
    supplier: Optional[str] = None
    brand: Optional[str] = None
    change_source: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PropagationFailureResponse(BaseModel):
    recipe_id: str
    error: str


class PropagationResponse(BaseModel):
    """Which recipes a price change touched."""
    affected_recipe_ids: List[str]
    updated_recipe_ids: List[str]
    failures: List[PropagationFailureResponse]
    summary: str


class IngredientUpdateResponse(BaseModel):
    ingredient: IngredientResponse
    price_changed: bool
    propagation: Optional[PropagationResponse] = None
