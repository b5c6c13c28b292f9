"""
Ingredient endpoints.

Updating an ingredient's price records a price history entry and then
propagates the new price to every recipe that references the ingredient.
"""
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, or_
from sqlalchemy.orm import Session, sessionmaker

from kitchen_api.db.session import get_db, get_session_factory
from kitchen_api.models.ingredient import Ingredient, PriceHistory
from kitchen_api.schemas.ingredient import (
    IngredientCreate,
    IngredientResponse,
    IngredientUpdate,
    IngredientUpdateResponse,
    PriceHistoryResponse,
    PropagationFailureResponse,
    PropagationResponse,
)
from kitchen_api.services.price_propagation import PricePropagationService
from kitchen_api.services.recipe_repository import SqlRecipeRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ingredients", tags=["ingredients"])

# Columns an update may change but never clear
REQUIRED_FIELDS = {"name", "unit", "current_price", "active"}


def get_ingredient_or_404(db: Session, ingredient_id: str) -> Ingredient:
    ingredient = db.get(Ingredient, ingredient_id)
    if not ingredient:
        raise HTTPException(status_code=404, detail="Ingredient not found")
    return ingredient


@router.get("", response_model=List[IngredientResponse])
def list_ingredients(
    search: Optional[str] = Query(None, description="Match on name, brand or category"),
    active: Optional[bool] = Query(None, description="Only active (true) or inactive (false) ingredients"),
    db: Session = Depends(get_db),
):
    query = select(Ingredient)

    if active is not None:
        query = query.where(Ingredient.active == active)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(or_(
            Ingredient.name.ilike(pattern),
            Ingredient.brand.ilike(pattern),
            Ingredient.category.ilike(pattern),
        ))

    return db.execute(query.order_by(Ingredient.name)).scalars().all()


@router.post("", response_model=IngredientResponse, status_code=status.HTTP_201_CREATED)
def create_ingredient(payload: IngredientCreate, db: Session = Depends(get_db)):
    ingredient = Ingredient(**payload.model_dump())
    db.add(ingredient)
    db.commit()
    db.refresh(ingredient)
    return ingredient


@router.get("/{ingredient_id}", response_model=IngredientResponse)
def get_ingredient(ingredient_id: str, db: Session = Depends(get_db)):
    return get_ingredient_or_404(db, ingredient_id)


@router.put("/{ingredient_id}", response_model=IngredientUpdateResponse)
async def update_ingredient(
    ingredient_id: str,
    payload: IngredientUpdate,
    db: Session = Depends(get_db),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """
    Update an ingredient.

    When ``current_price`` or ``raw_price_kg`` changes:
    - a price history entry is written (old and new prices, supplier/brand snapshot)
    - every recipe referencing the ingredient gets both prices and
      recalculated metrics

    Recipes that fail to update are listed in the response; they do not
    fail the request.
    """
    ingredient = get_ingredient_or_404(db, ingredient_id)

    changes = payload.model_dump(exclude_unset=True, exclude={"change_source", "notes"})
    old_price = ingredient.current_price
    old_raw_price = ingredient.raw_price_kg

    for key, value in changes.items():
        if value is None and key in REQUIRED_FIELDS:
            raise HTTPException(status_code=422, detail=f"{key} cannot be null")
        if key == "name":
            value = value.strip()
            if not value:
                raise HTTPException(status_code=422, detail="name cannot be blank")
        setattr(ingredient, key, value)

    # Recipes cost from either price, so a change to either one propagates
    price_changed = (
        ingredient.current_price != old_price
        or ingredient.raw_price_kg != old_raw_price
    )

    if price_changed:
        db.add(PriceHistory(
            ingredient_id=ingredient.id,
            old_price=old_price,
            new_price=ingredient.current_price,
            old_raw_price_kg=old_raw_price,
            new_raw_price_kg=ingredient.raw_price_kg,
            change_date=date.today(),
            supplier=ingredient.supplier,
            brand=ingredient.brand,
            change_source=payload.change_source,
            notes=payload.notes,
        ))

    db.commit()
    db.refresh(ingredient)

    propagation = None
    if price_changed:
        service = PricePropagationService(SqlRecipeRepository(session_factory))
        result = await service.on_ingredient_price_change(
            ingredient.id, ingredient.current_price, ingredient.raw_price_kg
        )
        if result.failures:
            logger.warning(f"Price propagation for ingredient {ingredient.id}: {result.summary}")
        propagation = PropagationResponse(
            affected_recipe_ids=result.affected_recipe_ids,
            updated_recipe_ids=result.updated_recipe_ids,
            failures=[
                PropagationFailureResponse(recipe_id=f.recipe_id, error=f.error)
                for f in result.failures
            ],
            summary=result.summary,
        )

    return IngredientUpdateResponse(
        ingredient=IngredientResponse.model_validate(ingredient),
        price_changed=price_changed,
        propagation=propagation,
    )


@router.delete("/{ingredient_id}", response_model=IngredientResponse)
def deactivate_ingredient(ingredient_id: str, db: Session = Depends(get_db)):
    """Soft delete: the ingredient stays referenced by recipes and history."""
    ingredient = get_ingredient_or_404(db, ingredient_id)
    ingredient.active = False
    db.commit()
    db.refresh(ingredient)
    return ingredient


@router.get("/{ingredient_id}/price-history", response_model=List[PriceHistoryResponse])
def get_price_history(ingredient_id: str, db: Session = Depends(get_db)):
    get_ingredient_or_404(db, ingredient_id)
    return db.execute(
        select(PriceHistory)
        .where(PriceHistory.ingredient_id == ingredient_id)
        .order_by(PriceHistory.created_at, PriceHistory.change_date)
    ).scalars().all()
