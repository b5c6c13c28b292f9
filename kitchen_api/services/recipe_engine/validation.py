"""
Validation engine for recipe input and calculated metrics.

Validation is advisory. It collects every problem it finds into a list of
messages and leaves the decision to the caller (block a save, or just show
the messages). The calculators run on whatever the form holds regardless.

Errors are integrity violations (missing name, negative price). Warnings are
things worth a second look (a stage with no final weight yet, a loss far
outside the usual range).
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from kitchen_api.services.recipe_engine.normalizer import (
    WEIGHT_FIELDS,
    clean_string,
    field_value,
    is_populated,
    normalize_ingredient,
    normalize_processes,
    normalize_sub_component,
    to_number,
)
from kitchen_api.services.recipe_engine.process_calculator import (
    KNOWN_PROCESSES,
    ProcessCalculator,
    ordered_stages,
)


DEFAULT_PRICE_CEILING = Decimal("10000")
DEFAULT_WEIGHT_CEILING = Decimal("1000")
DEFAULT_MAX_PREP_TIME = 1440  # minutes
MIN_REASONABLE_YIELD = Decimal(10)  # percent

PRICE_FIELDS = ("current_price", "raw_price_kg")


@dataclass
class ValidationResult:
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def extend(self, other: "ValidationResult") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)


class ValidationEngine:
    """
    Checks recipes and their preparations before (and after) calculation.

    Ceilings are not hard limits: a price above ``price_ceiling`` is most
    likely a typo (per-gram price typed as per-kg) and is reported as
    suspicious.
    """

    def __init__(
        self,
        price_ceiling: Decimal = DEFAULT_PRICE_CEILING,
        weight_ceiling: Decimal = DEFAULT_WEIGHT_CEILING,
        max_prep_time: int = DEFAULT_MAX_PREP_TIME,
        process_calculator: Optional[ProcessCalculator] = None,
    ):
        self.price_ceiling = Decimal(price_ceiling)
        self.weight_ceiling = Decimal(weight_ceiling)
        self.max_prep_time = max_prep_time
        self.process_calculator = process_calculator or ProcessCalculator()

    def validate(self, recipe: Any, preparations: Any) -> ValidationResult:
        """Validate recipe metadata and every preparation; never stops at the first error."""
        result = self.validate_recipe(recipe)
        result.extend(self.validate_preparations(preparations))
        return result

    def validate_recipe(self, recipe: Any) -> ValidationResult:
        result = ValidationResult()

        if not clean_string(field_value(recipe, "name")):
            result.errors.append("Recipe name is required")

        if not clean_string(field_value(recipe, "category")):
            result.errors.append("Recipe category is required")

        prep_time = to_number(field_value(recipe, "prep_time"))
        if prep_time < 0 or prep_time > self.max_prep_time:
            result.errors.append(
                f"Preparation time must be between 0 and {self.max_prep_time} minutes (got {prep_time})"
            )

        return result

    def validate_preparations(self, preparations: Any) -> ValidationResult:
        result = ValidationResult()

        if preparations is not None and not isinstance(preparations, (list, tuple)):
            result.errors.append("Recipe preparations must be a list")
            return result

        preparations = [prep for prep in (preparations or []) if prep is not None]
        if not preparations:
            result.errors.append("Recipe has no preparations")
            result.errors.append("Recipe has no ingredients or sub-components")
            return result

        has_items = False
        for index, preparation in enumerate(preparations):
            result.extend(self.validate_preparation(preparation, index))
            if _items(preparation, "ingredients") or _items(preparation, "sub_components"):
                has_items = True

        if not has_items:
            result.errors.append("Recipe has no ingredients or sub-components")

        return result

    def validate_preparation(self, preparation: Any, index: int = 0) -> ValidationResult:
        result = ValidationResult()
        title = clean_string(field_value(preparation, "title"))
        label = f'"{title}"' if title else f"{index + 1}"

        if not title:
            result.errors.append(f"Preparation {index + 1} title is required")

        processes = normalize_processes(field_value(preparation, "processes"))
        if not processes:
            result.errors.append(f"Preparation {label} has no processes")
        for process in processes:
            if process not in KNOWN_PROCESSES:
                result.warnings.append(f'Preparation {label}: unknown process "{process}"')

        ingredients = _items(preparation, "ingredients")
        sub_components = _items(preparation, "sub_components")
        if not ingredients and not sub_components:
            result.warnings.append(f"Preparation {label} has no ingredients or sub-components")

        stages = ordered_stages(processes)
        for position, ingredient in enumerate(ingredients):
            result.extend(self.validate_ingredient(ingredient, position, stages))

        for position, sub_component in enumerate(sub_components):
            result.extend(self.validate_sub_component(sub_component, position))

        return result

    def validate_ingredient(self, ingredient: Any, index: int = 0, stages=()) -> ValidationResult:
        result = ValidationResult()
        name = clean_string(field_value(ingredient, "name"))
        label = name or f"#{index + 1}"

        if not name:
            result.errors.append(f"Ingredient {index + 1} has no name")

        for price_field in PRICE_FIELDS:
            price = to_number(field_value(ingredient, price_field))
            if price < 0:
                result.errors.append(f'{price_field} of ingredient "{label}" cannot be negative')
            elif price > self.price_ceiling:
                result.errors.append(
                    f'{price_field} of ingredient "{label}" looks suspicious: '
                    f"{price} is above {self.price_ceiling} per kg"
                )

        has_weight = False
        for weight_field in WEIGHT_FIELDS + ("quantity",):
            raw = field_value(ingredient, weight_field)
            if not is_populated(raw):
                continue
            weight = to_number(raw)
            if weight < 0:
                result.errors.append(f'{weight_field} of ingredient "{label}" cannot be negative')
            elif weight > self.weight_ceiling:
                result.errors.append(
                    f'{weight_field} of ingredient "{label}" looks suspicious: {weight} kg is above {self.weight_ceiling} kg'
                )
            if weight > 0:
                has_weight = True

        if not has_weight:
            result.warnings.append(f'Ingredient "{label}" has no weight in any field')

        if stages:
            normalized = normalize_ingredient(ingredient)
            result.warnings.extend(self.process_calculator.missing_stage_weights(normalized, stages))
            result.warnings.extend(self.process_calculator.check_expected_losses(normalized, stages))

        return result

    def validate_sub_component(self, sub_component: Any, index: int = 0) -> ValidationResult:
        result = ValidationResult()
        normalized = normalize_sub_component(sub_component)
        label = normalized.name or f"#{index + 1}"

        if not normalized.name:
            result.errors.append(f"Sub-component {index + 1} has no name")

        if normalized.quantity <= 0:
            result.errors.append(f'Sub-component "{label}" has no valid assembly weight')

        has_cost_basis = (
            normalized.source_id
            or normalized.cost_per_kg > 0
            or (normalized.input_total_cost > 0 and normalized.input_yield_weight > 0)
        )
        if not has_cost_basis:
            result.warnings.append(f'Sub-component "{label}" has no source data to compute its cost')

        return result

    def validate_metrics(self, metrics: Any) -> ValidationResult:
        """Sanity checks on calculated metrics."""
        result = ValidationResult()

        total_weight = to_number(field_value(metrics, "total_weight"))
        yield_weight = to_number(field_value(metrics, "yield_weight"))
        total_cost = to_number(field_value(metrics, "total_cost"))
        cost_per_kg_yield = to_number(field_value(metrics, "cost_per_kg_yield"))

        if yield_weight > total_weight:
            result.errors.append("Yield weight cannot be greater than total raw weight")
        if total_cost < 0:
            result.errors.append("Total cost cannot be negative")
        if cost_per_kg_yield < 0:
            result.errors.append("Cost per kg of yield cannot be negative")

        yield_percentage = to_number(field_value(metrics, "yield_percentage"))
        if total_weight > 0 and yield_percentage < MIN_REASONABLE_YIELD:
            result.warnings.append("Yield below 10% may indicate a data entry error")

        if field_value(metrics, "has_finishing_stage", False) and to_number(field_value(metrics, "cuba_weight")) == 0:
            result.warnings.append("Recipe has a finishing stage but the cuba weight is zero")

        return result


def _items(preparation: Any, key: str) -> list:
    value = field_value(preparation, key)
    if isinstance(value, (list, tuple)):
        return [item for item in value if item is not None]
    return []
