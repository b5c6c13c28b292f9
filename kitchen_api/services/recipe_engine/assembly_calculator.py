"""
Assembly calculator: costs of preparations built from other preparations.

An assembly (or a portioning step with no lossy process) is not measured
through weight stages. It is the sum of its components, each carrying a
quantity in kg and a cost per kg computed earlier:

    total_weight = Σ quantity_i
    total_cost   = Σ quantity_i × cost_per_kg_i
    cost_per_kg  = total_cost / total_weight

A component whose source preparation has a yield and a cost always
contributes that cost; it never collapses to zero.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from kitchen_api.services.recipe_engine.normalizer import (
    ONE,
    ZERO,
    AssemblyConfig,
    NormalizedSubComponent,
    normalize_sub_component,
    safe_divide,
)


@dataclass(frozen=True)
class AssemblyComponent:
    name: str
    quantity: Decimal
    cost_per_kg: Decimal
    source_id: str = ""
    internal: bool = False  # sourced from a preparation of the same recipe

    @property
    def cost(self) -> Decimal:
        return self.quantity * self.cost_per_kg


@dataclass(frozen=True)
class AssemblyResult:
    total_weight: Decimal = ZERO
    total_cost: Decimal = ZERO
    cost_per_kg: Decimal = ZERO
    components: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class PortionResult:
    """The sellable unit defined by a finishing stage."""
    container_type: str
    cuba_weight: Decimal
    cuba_cost: Decimal
    units_quantity: Decimal
    portion_cost: Decimal


class AssemblyCalculator:

    def resolve_cost_per_kg(
        self,
        sub_component: NormalizedSubComponent,
        computed_preparations: Optional[Mapping[str, Any]] = None,
    ) -> Decimal:
        """
        Cost per kg of a sub-component.

        Order of precedence: the source preparation's computed cost over its
        yield, the component's own cost_per_kg, then its input_total_cost over
        input_yield_weight.
        """
        source = (computed_preparations or {}).get(sub_component.source_id) if sub_component.source_id else None
        if source is not None:
            source_cost = safe_divide(source.total_cost, source.yield_weight)
            if source_cost > 0:
                return source_cost

        if sub_component.cost_per_kg > 0:
            return sub_component.cost_per_kg

        return safe_divide(sub_component.input_total_cost, sub_component.input_yield_weight)

    def build_component(
        self,
        sub_component: Any,
        computed_preparations: Optional[Mapping[str, Any]] = None,
    ) -> AssemblyComponent:
        if isinstance(sub_component, AssemblyComponent):
            return sub_component
        if not isinstance(sub_component, NormalizedSubComponent):
            sub_component = normalize_sub_component(sub_component)

        computed_preparations = computed_preparations or {}
        return AssemblyComponent(
            name=sub_component.name,
            quantity=sub_component.quantity,
            cost_per_kg=self.resolve_cost_per_kg(sub_component, computed_preparations),
            source_id=sub_component.source_id,
            internal=bool(sub_component.source_id) and sub_component.source_id in computed_preparations,
        )

    def compute_assembly(
        self,
        sub_components: Iterable[Any],
        computed_preparations: Optional[Mapping[str, Any]] = None,
    ) -> AssemblyResult:
        components = tuple(
            self.build_component(sc, computed_preparations)
            for sc in (sub_components or ())
            if sc is not None
        )

        total_weight = sum((c.quantity for c in components), ZERO)
        total_cost = sum((c.cost for c in components), ZERO)

        return AssemblyResult(
            total_weight=total_weight,
            total_cost=total_cost,
            cost_per_kg=safe_divide(total_cost, total_weight),
            components=components,
        )

    def portion(self, assembly: AssemblyResult, config: Optional[AssemblyConfig] = None) -> PortionResult:
        """
        Split an assembled weight into its container and units.

        A configured container weight wins over the assembled weight; the
        container is priced at the assembly's cost per kg.
        """
        config = config or AssemblyConfig()
        cuba_weight = config.total_weight if config.total_weight > 0 else assembly.total_weight
        cuba_cost = assembly.cost_per_kg * cuba_weight
        units = config.units_quantity if config.units_quantity > 0 else ONE

        return PortionResult(
            container_type=config.container_type,
            cuba_weight=cuba_weight,
            cuba_cost=cuba_cost,
            units_quantity=units,
            portion_cost=safe_divide(cuba_cost, units),
        )
