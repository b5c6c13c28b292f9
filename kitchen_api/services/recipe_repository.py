"""
Recipe storage used by price propagation and bulk recalculation.

The propagation service only needs to list recipe documents and write back
preparations plus metrics, so it depends on this small interface rather
than on a session.
"""
import copy
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from kitchen_api.models.recipe import Recipe
from kitchen_api.services.recipe_engine.normalizer import resolve_ingredient_id
from kitchen_api.services.recipe_engine.recipe_calculator import RecipeMetrics


@dataclass
class RecipeDocument:
    """A snapshot of a stored recipe: metadata plus its preparation list."""
    id: str
    name: str
    category: Optional[str] = None
    prep_time: int = 0
    portion_weight_kg: Optional[Decimal] = None
    preparations: list = field(default_factory=list)


class RecipeRepository(ABC):
    """Storage collaborator of the costing engine."""

    @abstractmethod
    def list_recipes(self) -> list[RecipeDocument]:
        """Load every recipe."""
        pass

    @abstractmethod
    def get_recipe(self, recipe_id: str) -> Optional[RecipeDocument]:
        """Load one recipe, or None."""
        pass

    @abstractmethod
    def save_recipe_metrics(
        self,
        recipe_id: str,
        preparations: list,
        metrics: RecipeMetrics,
        deadline: Optional[float] = None,
    ) -> None:
        """
        Persist a recipe's preparations together with its recalculated metrics.

        ``deadline`` is a ``time.monotonic()`` value. A save that reaches it
        before committing must write nothing and raise ``TimeoutError``.
        """
        pass


def apply_metrics(recipe: Recipe, metrics: RecipeMetrics) -> None:
    """Copy calculated metrics onto a Recipe row."""
    for name, value in metrics.as_dict().items():
        setattr(recipe, name, value)
    recipe.metrics_updated_at = datetime.now(timezone.utc).replace(tzinfo=None)


def link_ingredient_references(preparations: list) -> list:
    """
    Copy of ``preparations`` where every ingredient-reference carries an
    explicit ``ingredient_id``.

    References saved before the foreign key existed only have a composite
    ``id``; the resolved id is written next to it.
    """
    linked = copy.deepcopy(preparations or [])
    for preparation in linked:
        if not isinstance(preparation, dict):
            continue
        for reference in preparation.get("ingredients") or []:
            if isinstance(reference, dict) and not reference.get("ingredient_id"):
                ingredient_id = resolve_ingredient_id(reference)
                if ingredient_id:
                    reference["ingredient_id"] = ingredient_id
    return linked


def to_document(recipe: Recipe) -> RecipeDocument:
    return RecipeDocument(
        id=recipe.id,
        name=recipe.name,
        category=recipe.category,
        prep_time=recipe.prep_time or 0,
        portion_weight_kg=recipe.portion_weight_kg,
        preparations=copy.deepcopy(recipe.preparations or []),
    )


class SqlRecipeRepository(RecipeRepository):
    """
    SQLAlchemy-backed repository.

    Every call opens its own session from the factory, so saves issued from
    several worker threads never share a session.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def list_recipes(self) -> list[RecipeDocument]:
        db: Session = self.session_factory()
        try:
            recipes = db.execute(select(Recipe).order_by(Recipe.name)).scalars().all()
            return [to_document(recipe) for recipe in recipes]
        finally:
            db.close()

    def get_recipe(self, recipe_id: str) -> Optional[RecipeDocument]:
        db: Session = self.session_factory()
        try:
            recipe = db.get(Recipe, recipe_id)
            return to_document(recipe) if recipe else None
        finally:
            db.close()

    def save_recipe_metrics(
        self,
        recipe_id: str,
        preparations: list,
        metrics: RecipeMetrics,
        deadline: Optional[float] = None,
    ) -> None:
        db: Session = self.session_factory()
        try:
            recipe = db.get(Recipe, recipe_id)
            if recipe is None:
                raise LookupError(f"Recipe {recipe_id} not found")

            # Assign a fresh list so the JSON column is flagged as modified
            recipe.preparations = copy.deepcopy(preparations)
            apply_metrics(recipe, metrics)
            db.flush()

            if deadline is not None and time.monotonic() > deadline:
                raise TimeoutError(f"Saving recipe {recipe_id} missed its deadline")
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
