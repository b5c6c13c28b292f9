"""
Recipe Pydantic schemas for API request/response models.

Preparations travel as free-form documents: their numeric fields come from
form inputs and may hold strings like "12,5", which the engine's normalizer
handles.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class RecipeBase(BaseModel):
    name: str
    category: Optional[str] = None
    prep_time: int = 0
    portion_weight_kg: Optional[Decimal] = None
    preparations: List[Dict[str, Any]] = []


class RecipeCreate(RecipeBase):
    """Request model for creating a recipe."""
    pass


class RecipeUpdate(BaseModel):
    """Request model for updating a recipe. Omitted fields are left unchanged."""
    name: Optional[str] = None
    category: Optional[str] = None
    prep_time: Optional[int] = None
    portion_weight_kg: Optional[Decimal] = None
    preparations: Optional[List[Dict[str, Any]]] = None


class RecipeMetricsResponse(BaseModel):
    total_weight: Decimal
    yield_weight: Decimal
    cost_per_kg_raw: Decimal
    cost_per_kg_yield: Decimal
    cuba_weight: Decimal
    cuba_cost: Decimal
    total_cost: Decimal
    portion_cost: Decimal

    model_config = ConfigDict(from_attributes=True)


class RecipeResponse(RecipeMetricsResponse):
    id: str
    name: str
    category: Optional[str] = None
    prep_time: Optional[int] = None
    portion_weight_kg: Optional[Decimal] = None
    preparations: List[Dict[str, Any]]
    metrics_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RecipeSummaryResponse(RecipeMetricsResponse):
    """List entry: metadata and cached metrics, no preparation documents."""
    id: str
    name: str
    category: Optional[str] = None


class ValidationResponse(BaseModel):
    is_valid: bool
    errors: List[str]
    warnings: List[str]


class PreparationMetricsResponse(BaseModel):
    id: str
    title: str
    processes: List[str]
    total_weight: Decimal
    yield_weight: Decimal
    total_cost: Decimal
    cost_per_kg_yield: Decimal
    cuba_weight: Optional[Decimal] = None
    cuba_cost: Optional[Decimal] = None


class RecipeCalculationResponse(BaseModel):
    """Live calculation of an unsaved recipe."""
    metrics: RecipeMetricsResponse
    yield_percentage: Decimal
    preparations: List[PreparationMetricsResponse]
    validation: ValidationResponse
