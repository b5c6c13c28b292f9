"""
Recipe calculator: runs every preparation of a recipe through the process
and assembly calculators and aggregates recipe-level metrics.

    total_weight      = Σ raw (pre-loss) weights
    yield_weight      = Σ yielded / assembled weights
    total_cost        = Σ raw weight × raw price per kg
    cost_per_kg_raw   = total_cost / total_weight
    cost_per_kg_yield = total_cost / yield_weight

Sub-components taken from an earlier preparation of the same recipe are
internal transfers: their weight and cost already sit in the source
preparation and are not counted again. The cuba (and portion) comes from the
last preparation tagged portioning or assembly.

The calculation is a pure function of its input and never raises; bad
numbers have already been turned into zeros by the normalizer.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from kitchen_api.services.recipe_engine.assembly_calculator import (
    AssemblyCalculator,
    AssemblyResult,
    PortionResult,
)
from kitchen_api.services.recipe_engine.normalizer import (
    HUNDRED,
    ZERO,
    NormalizedPreparation,
    field_value,
    non_negative,
    normalize_preparations,
    safe_divide,
)
from kitchen_api.services.recipe_engine.process_calculator import (
    FINISHING_PROCESSES,
    ProcessCalculator,
    ordered_stages,
)


METRIC_FIELDS = (
    "total_weight",
    "yield_weight",
    "cost_per_kg_raw",
    "cost_per_kg_yield",
    "cuba_weight",
    "cuba_cost",
    "total_cost",
    "portion_cost",
)


@dataclass(frozen=True)
class IngredientMetrics:
    """Cost and yield of one ingredient-reference within a preparation."""
    id: str
    ingredient_id: str
    name: str
    raw_weight: Decimal
    yield_weight: Decimal
    price_per_kg: Decimal
    raw_cost: Decimal
    clean_cost_per_kg: Decimal
    yield_percent: Decimal
    stages: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class PreparationMetrics:
    id: str
    title: str
    processes: tuple
    total_weight: Decimal
    yield_weight: Decimal
    total_cost: Decimal
    ingredients: tuple = field(default_factory=tuple)
    assembly: Optional[AssemblyResult] = None
    portion: Optional[PortionResult] = None
    # Share of the recipe totals, internal transfers excluded
    contributed_weight: Decimal = ZERO
    contributed_yield_weight: Decimal = ZERO
    contributed_cost: Decimal = ZERO

    @property
    def cost_per_kg_yield(self) -> Decimal:
        return safe_divide(self.total_cost, self.yield_weight)

    @property
    def is_finishing(self) -> bool:
        return bool(set(self.processes) & FINISHING_PROCESSES)


@dataclass(frozen=True)
class RecipeMetrics:
    total_weight: Decimal = ZERO
    yield_weight: Decimal = ZERO
    cost_per_kg_raw: Decimal = ZERO
    cost_per_kg_yield: Decimal = ZERO
    cuba_weight: Decimal = ZERO
    cuba_cost: Decimal = ZERO
    total_cost: Decimal = ZERO
    portion_cost: Decimal = ZERO
    yield_percentage: Decimal = ZERO
    has_finishing_stage: bool = False
    preparations: tuple = field(default_factory=tuple)

    def as_dict(self) -> dict:
        """The persisted aggregate fields."""
        return {name: getattr(self, name) for name in METRIC_FIELDS}


class RecipeCalculator:
    """
    Orchestrates the recipe costing pipeline.

    Holds no state between calls; the same preparations always produce the
    same metrics.
    """

    def __init__(
        self,
        process_calculator: Optional[ProcessCalculator] = None,
        assembly_calculator: Optional[AssemblyCalculator] = None,
    ):
        self.process_calculator = process_calculator or ProcessCalculator()
        self.assembly_calculator = assembly_calculator or AssemblyCalculator()

    def calculate_recipe_metrics(self, preparations: Any, recipe_context: Any = None) -> RecipeMetrics:
        computed: dict[str, PreparationMetrics] = {}
        breakdown = []

        for preparation in normalize_preparations(preparations):
            metrics = self.calculate_preparation_metrics(preparation, computed)
            computed[preparation.id] = metrics
            breakdown.append(metrics)

        total_weight = sum((p.contributed_weight for p in breakdown), ZERO)
        yield_weight = sum((p.contributed_yield_weight for p in breakdown), ZERO)
        total_cost = sum((p.contributed_cost for p in breakdown), ZERO)
        cost_per_kg_yield = safe_divide(total_cost, yield_weight)

        finishing = next((p for p in reversed(breakdown) if p.is_finishing), None)
        if finishing is not None and finishing.portion is not None:
            cuba_weight = finishing.portion.cuba_weight
            cuba_cost = finishing.portion.cuba_cost
            portion_cost = finishing.portion.portion_cost
        else:
            cuba_weight = ZERO
            cuba_cost = ZERO
            portion_weight = non_negative(field_value(recipe_context, "portion_weight_kg"))
            portion_cost = cost_per_kg_yield * portion_weight

        return RecipeMetrics(
            total_weight=_finite(total_weight),
            yield_weight=_finite(yield_weight),
            cost_per_kg_raw=_finite(safe_divide(total_cost, total_weight)),
            cost_per_kg_yield=_finite(cost_per_kg_yield),
            cuba_weight=_finite(cuba_weight),
            cuba_cost=_finite(cuba_cost),
            total_cost=_finite(total_cost),
            portion_cost=_finite(portion_cost),
            yield_percentage=_finite(safe_divide(yield_weight, total_weight) * HUNDRED),
            has_finishing_stage=finishing is not None,
            preparations=tuple(breakdown),
        )

    def calculate_preparation_metrics(
        self,
        preparation: NormalizedPreparation,
        computed_preparations: Optional[dict] = None,
    ) -> PreparationMetrics:
        """
        Metrics of a single preparation.

        ``computed_preparations`` holds the preparations that come before this
        one, keyed by id; sub-components sourced from them are priced from
        their results.
        """
        stages = ordered_stages(preparation.processes)

        ingredients = tuple(
            self._ingredient_metrics(ingredient, stages)
            for ingredient in preparation.ingredients
        )
        ingredient_weight = sum((i.raw_weight for i in ingredients), ZERO)
        ingredient_yield = sum((i.yield_weight for i in ingredients), ZERO)
        ingredient_cost = sum((i.raw_cost for i in ingredients), ZERO)

        assembly = None
        assembled_weight = external_weight = ZERO
        assembled_cost = external_cost = ZERO
        if preparation.sub_components:
            assembly = self.assembly_calculator.compute_assembly(
                preparation.sub_components, computed_preparations or {}
            )
            assembled_weight = assembly.total_weight
            assembled_cost = assembly.total_cost
            external = [c for c in assembly.components if not c.internal]
            external_weight = sum((c.quantity for c in external), ZERO)
            external_cost = sum((c.cost for c in external), ZERO)

        total_weight = ingredient_weight + assembled_weight
        yield_weight = ingredient_yield + assembled_weight
        total_cost = ingredient_cost + assembled_cost

        portion = None
        if set(preparation.processes) & FINISHING_PROCESSES:
            finished = AssemblyResult(
                total_weight=yield_weight,
                total_cost=total_cost,
                cost_per_kg=safe_divide(total_cost, yield_weight),
            )
            portion = self.assembly_calculator.portion(finished, preparation.assembly_config)

        return PreparationMetrics(
            id=preparation.id,
            title=preparation.title,
            processes=preparation.processes,
            total_weight=total_weight,
            yield_weight=yield_weight,
            total_cost=total_cost,
            ingredients=ingredients,
            assembly=assembly,
            portion=portion,
            contributed_weight=ingredient_weight + external_weight,
            contributed_yield_weight=ingredient_yield + external_weight,
            contributed_cost=ingredient_cost + external_cost,
        )

    def _ingredient_metrics(self, ingredient, stages) -> IngredientMetrics:
        analysis = self.process_calculator.analyze_sequence(ingredient, stages)
        price = ingredient.price_per_kg

        return IngredientMetrics(
            id=ingredient.id,
            ingredient_id=ingredient.ingredient_id,
            name=ingredient.name,
            raw_weight=analysis.initial_weight,
            yield_weight=analysis.final_weight,
            price_per_kg=price,
            raw_cost=analysis.initial_weight * price,
            clean_cost_per_kg=safe_divide(price, analysis.yield_fraction),
            yield_percent=analysis.overall_yield_percent,
            stages=tuple(analysis.stages),
        )


def _finite(value: Decimal) -> Decimal:
    # Outputs are not capped like inputs: large totals are real totals
    if not isinstance(value, Decimal) or not value.is_finite() or value <= 0:
        return ZERO
    return value


def calculate_recipe_metrics(preparations: Any, recipe_context: Any = None) -> RecipeMetrics:
    """Module-level shortcut for ``RecipeCalculator().calculate_recipe_metrics``."""
    return RecipeCalculator().calculate_recipe_metrics(preparations, recipe_context)
