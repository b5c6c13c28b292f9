"""
Process calculator: weight loss and yield through preparation stages.

Each lossy stage turns an input weight into an output weight:

    loss_kg       = max(0, initial - final)
    loss_percent  = loss_kg / initial × 100
    yield_percent = 100 - loss_percent

Stages chain in a fixed order (defrosting → cleaning → cooking →
portioning). The clean cost of an ingredient is its raw price divided by the
cumulative yield fraction: the same money buys less usable mass.

Weight gain (rice absorbing water, meat taking brine) is clamped to zero
loss, so processing can never make an ingredient cheaper per kg.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Optional

from kitchen_api.services.recipe_engine.normalizer import (
    HUNDRED,
    INITIAL_WEIGHT_PRIORITY,
    ONE,
    ZERO,
    NormalizedIngredient,
    normalize_ingredient,
    normalize_processes,
    safe_divide,
    to_number,
)


@dataclass(frozen=True)
class ProcessDefinition:
    """Weight fields a stage reads and writes, and its usual loss band (%)."""
    key: str
    label: str
    input_fields: tuple
    output_field: str
    expected_loss_min: Decimal
    expected_loss_max: Decimal


PROCESS_DEFINITIONS = {
    "defrosting": ProcessDefinition(
        key="defrosting",
        label="Defrosting",
        input_fields=("weight_frozen",),
        output_field="weight_thawed",
        expected_loss_min=Decimal(0),
        expected_loss_max=Decimal(15),
    ),
    "cleaning": ProcessDefinition(
        key="cleaning",
        label="Cleaning",
        input_fields=("weight_thawed", "weight_raw"),
        output_field="weight_clean",
        expected_loss_min=Decimal(5),
        expected_loss_max=Decimal(40),
    ),
    "cooking": ProcessDefinition(
        key="cooking",
        label="Cooking",
        input_fields=("weight_pre_cooking", "weight_clean", "weight_thawed", "weight_raw"),
        output_field="weight_cooked",
        expected_loss_min=Decimal(0),
        expected_loss_max=Decimal(50),
    ),
    "portioning": ProcessDefinition(
        key="portioning",
        label="Portioning",
        input_fields=("weight_cooked", "weight_clean", "weight_thawed", "weight_raw"),
        output_field="weight_portioned",
        expected_loss_min=Decimal(0),
        expected_loss_max=Decimal(10),
    ),
}

CANONICAL_ORDER = ("defrosting", "cleaning", "cooking", "portioning")
LOSS_PROCESSES = frozenset({"defrosting", "cleaning", "cooking"})
FINISHING_PROCESSES = frozenset({"portioning", "assembly"})
KNOWN_PROCESSES = LOSS_PROCESSES | FINISHING_PROCESSES


@dataclass(frozen=True)
class StageResult:
    loss_kg: Decimal
    loss_percent: Decimal
    yield_percent: Decimal


@dataclass(frozen=True)
class StageBreakdown:
    """One stage of an ingredient's processing chain."""
    process: str
    label: str
    input_weight: Decimal
    output_weight: Decimal
    loss_percent: Decimal
    yield_percent: Decimal
    measured: bool  # False when the input or output weight is missing


@dataclass(frozen=True)
class SequenceAnalysis:
    stages: list = field(default_factory=list)
    initial_weight: Decimal = ZERO
    final_weight: Decimal = ZERO
    yield_fraction: Decimal = ONE

    @property
    def overall_yield_percent(self) -> Decimal:
        return self.yield_fraction * HUNDRED

    @property
    def total_loss_percent(self) -> Decimal:
        return HUNDRED - self.overall_yield_percent


def ordered_stages(processes: Iterable[str]) -> list[str]:
    """Active lossy stages in canonical order; empty if no loss stage is active."""
    active = set(normalize_processes(list(processes)))
    if not active & LOSS_PROCESSES:
        return []
    return [stage for stage in CANONICAL_ORDER if stage in active]


class ProcessCalculator:
    """Per-stage loss and yield, and the cascading clean cost built on top."""

    def compute_stage(self, initial_weight: Any, final_weight: Any) -> StageResult:
        initial = to_number(initial_weight)
        final = to_number(final_weight)

        if initial <= 0:
            return StageResult(loss_kg=ZERO, loss_percent=ZERO, yield_percent=HUNDRED)

        loss_kg = max(ZERO, initial - max(final, ZERO))
        loss_percent = min(HUNDRED, loss_kg / initial * HUNDRED)
        yield_percent = min(HUNDRED, max(ZERO, HUNDRED - loss_percent))
        return StageResult(loss_kg=loss_kg, loss_percent=loss_percent, yield_percent=yield_percent)

    def initial_weight(self, ingredient: Any, processes: Iterable[str] = ()) -> Decimal:
        """
        Starting weight of an ingredient: the first active stage's input,
        falling back to the first populated weight field.
        """
        ingredient = self._normalize(ingredient)
        for stage in ordered_stages(processes):
            weight = ingredient.first_weight(PROCESS_DEFINITIONS[stage].input_fields)
            if weight > 0:
                return weight
        return ingredient.first_weight(INITIAL_WEIGHT_PRIORITY)

    def analyze_sequence(self, ingredient: Any, processes: Iterable[str] = ()) -> SequenceAnalysis:
        ingredient = self._normalize(ingredient)
        stages = ordered_stages(processes)
        initial = self.initial_weight(ingredient, stages)

        breakdown = []
        fraction = ONE
        for stage in stages:
            definition = PROCESS_DEFINITIONS[stage]
            stage_input = ingredient.first_weight(definition.input_fields)
            stage_output = ingredient.weight(definition.output_field)
            measured = stage_input > 0 and stage_output > 0

            if measured:
                result = self.compute_stage(stage_input, stage_output)
                fraction = fraction * result.yield_percent / HUNDRED
            else:
                result = StageResult(loss_kg=ZERO, loss_percent=ZERO, yield_percent=HUNDRED)

            breakdown.append(StageBreakdown(
                process=stage,
                label=definition.label,
                input_weight=stage_input,
                output_weight=stage_output,
                loss_percent=result.loss_percent,
                yield_percent=result.yield_percent,
                measured=measured,
            ))

        return SequenceAnalysis(
            stages=breakdown,
            initial_weight=initial,
            final_weight=initial * fraction,
            yield_fraction=fraction,
        )

    def get_clean_cost(self, ingredient: Any, processes: Optional[Iterable[str]] = None) -> Decimal:
        """
        Cost per kg after all active stages.

        ``processes`` defaults to every stage the ingredient has weights for.
        A chain with zero cumulative yield returns 0.
        """
        ingredient = self._normalize(ingredient)
        if processes is None:
            processes = CANONICAL_ORDER
        analysis = self.analyze_sequence(ingredient, processes)
        return safe_divide(ingredient.price_per_kg, analysis.yield_fraction)

    def check_expected_losses(self, ingredient: Any, processes: Iterable[str]) -> list[str]:
        """Warnings for measured stages whose loss falls outside the usual band."""
        ingredient = self._normalize(ingredient)
        name = ingredient.name or ingredient.id or "unnamed"
        warnings = []

        for stage in self.analyze_sequence(ingredient, processes).stages:
            definition = PROCESS_DEFINITIONS[stage.process]
            if not stage.measured:
                continue
            band = f"expected {definition.expected_loss_min}-{definition.expected_loss_max}%"
            if stage.loss_percent < definition.expected_loss_min:
                warnings.append(
                    f'{definition.label} of ingredient "{name}": loss too low '
                    f"({stage.loss_percent:.1f}%, {band})"
                )
            elif stage.loss_percent > definition.expected_loss_max:
                warnings.append(
                    f'{definition.label} of ingredient "{name}": loss too high '
                    f"({stage.loss_percent:.1f}%, {band})"
                )
        return warnings

    def missing_stage_weights(self, ingredient: Any, processes: Iterable[str]) -> list[str]:
        """Warnings for active stages that cannot be measured yet."""
        ingredient = self._normalize(ingredient)
        name = ingredient.name or ingredient.id or "unnamed"
        warnings = []

        for stage in self.analyze_sequence(ingredient, processes).stages:
            if stage.input_weight <= 0:
                warnings.append(f'{stage.label} of ingredient "{name}": initial weight missing')
            if stage.output_weight <= 0:
                warnings.append(f'{stage.label} of ingredient "{name}": final weight missing')
        return warnings

    @staticmethod
    def _normalize(ingredient: Any) -> NormalizedIngredient:
        if isinstance(ingredient, NormalizedIngredient):
            return ingredient
        return normalize_ingredient(ingredient)
