"""
Price propagation: keep every recipe consistent with ingredient prices.

Recipes store a denormalized copy of each ingredient's price inside their
preparation documents. When an ingredient's price changes, every recipe
referencing it gets the new price written into its references, its metrics
recalculated, and both persisted.

Recipes share no state during recalculation, so saves run concurrently,
each in a worker thread with its own deadline. The repository checks the
deadline before committing and rolls back once it has passed, so a save
reported as timed out is never persisted. A recipe that fails or times out
is reported and the rest of the batch carries on. There is no locking:
two propagations racing on the same recipe resolve as last write wins.
"""
import asyncio
import copy
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from kitchen_api.core.config import get_settings
from kitchen_api.services.recipe_engine.normalizer import non_negative, resolve_ingredient_id
from kitchen_api.services.recipe_engine.recipe_calculator import RecipeCalculator, RecipeMetrics
from kitchen_api.services.recipe_repository import RecipeDocument, RecipeRepository

logger = logging.getLogger(__name__)


@dataclass
class PropagationFailure:
    recipe_id: str
    error: str


@dataclass
class PropagationResult:
    """Outcome of a propagation or recalculation batch."""
    affected_recipe_ids: list = field(default_factory=list)
    updated_recipe_ids: list = field(default_factory=list)
    failures: list = field(default_factory=list)
    metrics: dict = field(default_factory=dict)  # recipe_id -> RecipeMetrics

    @property
    def summary(self) -> str:
        return f"{len(self.updated_recipe_ids)} recipes updated, {len(self.failures)} failed"


def apply_price_change(
    preparations: list,
    ingredient_id: str,
    new_price: Decimal,
    raw_price_kg: Optional[Decimal] = None,
) -> int:
    """
    Overwrite the denormalized prices of every reference to ``ingredient_id``.

    References get the ingredient's ``current_price`` and ``raw_price_kg``;
    an ingredient without a raw price per kg passes its current price for
    both. References are matched on their resolved ingredient id, exactly.
    Matched references also get their ``ingredient_id`` filled in. Returns
    the number of references changed.
    """
    price = float(new_price)
    raw_price = float(non_negative(raw_price_kg)) if raw_price_kg is not None else price
    changed = 0

    for preparation in preparations or []:
        if not isinstance(preparation, dict):
            continue
        for reference in preparation.get("ingredients") or []:
            if not isinstance(reference, dict):
                continue
            if resolve_ingredient_id(reference) != ingredient_id:
                continue
            reference["ingredient_id"] = ingredient_id
            reference["current_price"] = price
            reference["raw_price_kg"] = raw_price
            changed += 1

    return changed


class PricePropagationService:
    """
    Re-costs recipes after ingredient price changes.

    Args:
        repository: where recipes are loaded from and saved to
        calculator: recipe calculator (a fresh one by default)
        timeout_seconds: bound on each recipe save
        max_concurrency: how many saves may run at once
    """

    def __init__(
        self,
        repository: RecipeRepository,
        calculator: Optional[RecipeCalculator] = None,
        timeout_seconds: Optional[float] = None,
        max_concurrency: Optional[int] = None,
    ):
        settings = get_settings()
        self.repository = repository
        self.calculator = calculator or RecipeCalculator()
        self.timeout_seconds = timeout_seconds or settings.PROPAGATION_TIMEOUT_SECONDS
        self.max_concurrency = max_concurrency or settings.PROPAGATION_MAX_CONCURRENCY

    async def on_ingredient_price_change(
        self,
        ingredient_id: str,
        new_price: Any,
        raw_price_kg: Any = None,
    ) -> PropagationResult:
        """
        Push new ingredient prices into every recipe that uses it.

        ``raw_price_kg`` is the ingredient's own raw price per kg, if it has
        one. Returns once every affected recipe has been attempted.
        """
        price = non_negative(new_price)
        raw_price = non_negative(raw_price_kg) if raw_price_kg is not None else None
        recipes = await asyncio.to_thread(self.repository.list_recipes)

        pending = []
        for recipe in recipes:
            preparations = copy.deepcopy(recipe.preparations)
            if apply_price_change(preparations, ingredient_id, price, raw_price):
                pending.append((recipe, preparations))

        logger.info(
            f"Price of ingredient {ingredient_id} changed to {price}: "
            f"{len(pending)} of {len(recipes)} recipes affected"
        )

        result = await self._recalculate_batch(pending)
        logger.info(f"Propagation for ingredient {ingredient_id} finished: {result.summary}")
        return result

    async def recalculate_recipes(self, recipe_id: Optional[str] = None, dry_run: bool = False) -> PropagationResult:
        """
        Recalculate stored metrics of every recipe, or of one recipe.

        With ``dry_run`` the metrics are computed and returned but nothing is
        written.
        """
        if recipe_id:
            recipe = await asyncio.to_thread(self.repository.get_recipe, recipe_id)
            recipes = [recipe] if recipe else []
        else:
            recipes = await asyncio.to_thread(self.repository.list_recipes)

        pending = [(recipe, copy.deepcopy(recipe.preparations)) for recipe in recipes]

        if dry_run:
            result = PropagationResult(affected_recipe_ids=[recipe.id for recipe, _ in pending])
            for recipe, preparations in pending:
                result.metrics[recipe.id] = self.calculator.calculate_recipe_metrics(preparations, recipe)
            return result

        result = await self._recalculate_batch(pending)
        logger.info(f"Recalculation finished: {result.summary}")
        return result

    async def _recalculate_batch(self, pending: list) -> PropagationResult:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        outcomes = await asyncio.gather(*(
            self._recalculate_and_save(semaphore, recipe, preparations)
            for recipe, preparations in pending
        ))

        result = PropagationResult(affected_recipe_ids=[recipe.id for recipe, _ in pending])
        for recipe_id, metrics, failure in outcomes:
            if failure is not None:
                result.failures.append(failure)
            else:
                result.updated_recipe_ids.append(recipe_id)
                result.metrics[recipe_id] = metrics
        return result

    async def _recalculate_and_save(
        self,
        semaphore: asyncio.Semaphore,
        recipe: RecipeDocument,
        preparations: list,
    ) -> tuple[str, Optional[RecipeMetrics], Optional[PropagationFailure]]:
        async with semaphore:
            metrics = self.calculator.calculate_recipe_metrics(preparations, recipe)
            deadline = time.monotonic() + self.timeout_seconds
            save = asyncio.ensure_future(asyncio.to_thread(
                self.repository.save_recipe_metrics, recipe.id, preparations, metrics, deadline
            ))

            try:
                await asyncio.wait_for(asyncio.shield(save), timeout=self.timeout_seconds)
                return recipe.id, metrics, None
            except asyncio.TimeoutError:
                pass
            except Exception as e:
                logger.warning(f"Failed to update recipe {recipe.id}: {e}")
                return recipe.id, None, PropagationFailure(recipe_id=recipe.id, error=str(e))

            # A worker thread cannot be cancelled. The slot stays taken until
            # the save has hit its deadline and rolled back.
            try:
                await save
            except Exception as e:
                logger.warning(f"Saving recipe {recipe.id} timed out after {self.timeout_seconds}s: {e}")
                return recipe.id, None, PropagationFailure(
                    recipe_id=recipe.id,
                    error=f"timed out after {self.timeout_seconds}s",
                )

            logger.warning(f"Recipe {recipe.id} was saved after its {self.timeout_seconds}s timeout")
            return recipe.id, metrics, None
