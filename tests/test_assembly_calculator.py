"""
Tests for assemblies built from prepared components.
"""
from decimal import Decimal

import pytest

from kitchen_api.services.recipe_engine.assembly_calculator import AssemblyCalculator, AssemblyResult
from kitchen_api.services.recipe_engine.normalizer import AssemblyConfig


@pytest.fixture
def calculator():
    return AssemblyCalculator()


def test_weighted_cost_per_kg(calculator):
    result = calculator.compute_assembly([
        {"name": "Rice", "quantity": 2, "cost_per_kg": 10},
        {"name": "Beans", "quantity": 3, "cost_per_kg": 20},
    ])

    assert result.total_weight == Decimal(5)
    assert result.total_cost == Decimal(80)
    assert result.cost_per_kg == Decimal(16)


def test_zero_weight_gives_zero_cost_per_kg(calculator):
    result = calculator.compute_assembly([{"name": "Garnish", "quantity": 0, "cost_per_kg": 50}])

    assert result.total_weight == 0
    assert result.cost_per_kg == 0


def test_empty_assembly(calculator):
    result = calculator.compute_assembly([])

    assert result.total_weight == 0
    assert result.total_cost == 0
    assert result.components == ()


def test_cost_from_input_totals(calculator):
    result = calculator.compute_assembly([
        {"name": "Stock", "quantity": "1,5", "input_total_cost": 12, "input_yield_weight": 3},
    ])

    # 12 / 3 = 4 per kg
    assert result.components[0].cost_per_kg == Decimal(4)
    assert result.total_cost == Decimal(6)


class FakePreparation:
    def __init__(self, total_cost, yield_weight):
        self.total_cost = Decimal(total_cost)
        self.yield_weight = Decimal(yield_weight)


def test_source_preparation_cost_wins(calculator):
    computed = {"prep-1": FakePreparation(30, 2)}

    result = calculator.compute_assembly(
        [{"name": "Braised beef", "source_id": "prep-1", "quantity": 1, "cost_per_kg": 99}],
        computed,
    )

    component = result.components[0]
    assert component.cost_per_kg == Decimal(15)
    assert component.internal is True


def test_source_without_yield_falls_back_to_own_cost(calculator):
    computed = {"prep-1": FakePreparation(30, 0)}

    result = calculator.compute_assembly(
        [{"name": "Sauce", "source_id": "prep-1", "quantity": 1, "cost_per_kg": 7}],
        computed,
    )

    assert result.components[0].cost_per_kg == Decimal(7)


def test_unknown_source_is_external(calculator):
    result = calculator.compute_assembly([{"name": "Bread", "source_id": "elsewhere", "quantity": 1, "cost_per_kg": 3}])

    assert result.components[0].internal is False


class TestPortion:

    def test_uses_assembled_weight_by_default(self, calculator):
        assembly = AssemblyResult(total_weight=Decimal(5), total_cost=Decimal(80), cost_per_kg=Decimal(16))

        portion = calculator.portion(assembly, AssemblyConfig(units_quantity=Decimal(10)))

        assert portion.container_type == "cuba"
        assert portion.cuba_weight == Decimal(5)
        assert portion.cuba_cost == Decimal(80)
        assert portion.portion_cost == Decimal(8)

    def test_configured_container_weight(self, calculator):
        assembly = AssemblyResult(total_weight=Decimal(5), total_cost=Decimal(80), cost_per_kg=Decimal(16))

        portion = calculator.portion(assembly, AssemblyConfig(total_weight=Decimal(3), units_quantity=Decimal(4)))

        assert portion.cuba_weight == Decimal(3)
        assert portion.cuba_cost == Decimal(48)
        assert portion.portion_cost == Decimal(12)

    def test_no_config_is_one_unit(self, calculator):
        assembly = AssemblyResult(total_weight=Decimal(2), total_cost=Decimal(9), cost_per_kg=Decimal("4.5"))

        portion = calculator.portion(assembly)

        assert portion.units_quantity == 1
        assert portion.portion_cost == Decimal(9)
