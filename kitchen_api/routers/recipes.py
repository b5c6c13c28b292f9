"""
Recipe Router.

Provides API endpoints for:
- Recipe CRUD (metrics recomputed on every save)
- Live cost calculation of unsaved recipes
- Recipe validation
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from kitchen_api.core.config import get_settings
from kitchen_api.db.session import get_db
from kitchen_api.models.recipe import Recipe
from kitchen_api.schemas.recipe import (
    PreparationMetricsResponse,
    RecipeCalculationResponse,
    RecipeCreate,
    RecipeMetricsResponse,
    RecipeResponse,
    RecipeSummaryResponse,
    RecipeUpdate,
    ValidationResponse,
)
from kitchen_api.services.recipe_engine import RecipeCalculator, RecipeMetrics, ValidationEngine
from kitchen_api.services.recipe_repository import apply_metrics, link_ingredient_references

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recipes", tags=["recipes"])


def get_validation_engine() -> ValidationEngine:
    settings = get_settings()
    return ValidationEngine(
        price_ceiling=settings.PRICE_SANITY_CEILING,
        weight_ceiling=settings.WEIGHT_SANITY_CEILING,
        max_prep_time=settings.MAX_PREP_TIME_MINUTES,
    )


def get_recipe_or_404(db: Session, recipe_id: str) -> Recipe:
    recipe = db.get(Recipe, recipe_id)
    if not recipe:
        raise HTTPException(status_code=404, detail="Recipe not found")
    return recipe


def recompute(recipe: Recipe) -> RecipeMetrics:
    """Link ingredient references, then refresh the cached metrics."""
    recipe.preparations = link_ingredient_references(recipe.preparations)
    metrics = RecipeCalculator().calculate_recipe_metrics(recipe.preparations, recipe)
    apply_metrics(recipe, metrics)
    return metrics


def to_calculation_response(metrics: RecipeMetrics, validation) -> RecipeCalculationResponse:
    return RecipeCalculationResponse(
        metrics=RecipeMetricsResponse.model_validate(metrics),
        yield_percentage=metrics.yield_percentage,
        preparations=[
            PreparationMetricsResponse(
                id=prep.id,
                title=prep.title,
                processes=list(prep.processes),
                total_weight=prep.total_weight,
                yield_weight=prep.yield_weight,
                total_cost=prep.total_cost,
                cost_per_kg_yield=prep.cost_per_kg_yield,
                cuba_weight=prep.portion.cuba_weight if prep.portion else None,
                cuba_cost=prep.portion.cuba_cost if prep.portion else None,
            )
            for prep in metrics.preparations
        ],
        validation=ValidationResponse(
            is_valid=validation.is_valid,
            errors=validation.errors,
            warnings=validation.warnings,
        ),
    )


# ============ CRUD Endpoints ============

@router.get("", response_model=List[RecipeSummaryResponse])
def list_recipes(
    category: Optional[str] = Query(None, description="Filter by category"),
    db: Session = Depends(get_db),
):
    query = select(Recipe)
    if category:
        query = query.where(Recipe.category == category)
    return db.execute(query.order_by(Recipe.name)).scalars().all()


@router.post("", response_model=RecipeResponse, status_code=status.HTTP_201_CREATED)
def create_recipe(payload: RecipeCreate, db: Session = Depends(get_db)):
    """
    Create a recipe and compute its metrics.

    Validation is advisory here; use ``/recipes/validate`` to check a
    recipe before saving it.
    """
    recipe = Recipe(**payload.model_dump())
    recompute(recipe)

    db.add(recipe)
    db.commit()
    db.refresh(recipe)

    logger.info(f"Created recipe {recipe.id} ({recipe.name}), total cost {recipe.total_cost}")
    return recipe


@router.get("/{recipe_id}", response_model=RecipeResponse)
def get_recipe(recipe_id: str, db: Session = Depends(get_db)):
    return get_recipe_or_404(db, recipe_id)


@router.put("/{recipe_id}", response_model=RecipeResponse)
def update_recipe(recipe_id: str, payload: RecipeUpdate, db: Session = Depends(get_db)):
    recipe = get_recipe_or_404(db, recipe_id)

    for key, value in payload.model_dump(exclude_unset=True).items():
        if key == "name" and not (value or "").strip():
            raise HTTPException(status_code=422, detail="name cannot be blank")
        if key == "preparations" and value is None:
            value = []
        setattr(recipe, key, value)

    recompute(recipe)
    db.commit()
    db.refresh(recipe)
    return recipe


# ============ Engine Endpoints ============

@router.post("/calculate", response_model=RecipeCalculationResponse)
def calculate_recipe(payload: RecipeCreate):
    """
    Calculate an unsaved recipe.

    Returns the recipe metrics, a per-preparation breakdown and the
    validation messages. Nothing is persisted.
    """
    preparations = link_ingredient_references(payload.preparations)
    metrics = RecipeCalculator().calculate_recipe_metrics(preparations, payload)

    engine = get_validation_engine()
    validation = engine.validate(payload, preparations)
    validation.extend(engine.validate_metrics(metrics))

    return to_calculation_response(metrics, validation)


@router.post("/validate", response_model=ValidationResponse)
def validate_recipe(payload: RecipeCreate):
    result = get_validation_engine().validate(payload, payload.preparations)
    return ValidationResponse(is_valid=result.is_valid, errors=result.errors, warnings=result.warnings)
