"""
Tests for recipe validation.
"""
from decimal import Decimal

import pytest

from kitchen_api.services.recipe_engine import ValidationEngine, calculate_recipe_metrics


@pytest.fixture
def engine():
    return ValidationEngine()


def valid_recipe():
    return {"name": "Beef stew", "category": "mains", "prep_time": 90}


def valid_preparations():
    return [{
        "id": "prep-1",
        "title": "Braise",
        "processes": ["cooking"],
        "ingredients": [{
            "id": "ing1_169900000",
            "name": "Beef",
            "current_price": 10,
            "weight_raw": 2.0,
            "weight_cooked": 1.4,
        }],
    }]


def test_valid_recipe(engine):
    result = engine.validate(valid_recipe(), valid_preparations())

    assert result.is_valid
    assert result.errors == []


def test_empty_preparations_are_invalid(engine):
    result = engine.validate(valid_recipe(), [])

    assert not result.is_valid
    assert any("preparations" in error for error in result.errors)


def test_preparations_must_be_a_list(engine):
    result = engine.validate_preparations({"title": "Not a list"})

    assert result.errors == ["Recipe preparations must be a list"]


def test_recipe_metadata(engine):
    result = engine.validate_recipe({"name": " ", "category": None, "prep_time": 2000})

    assert "Recipe name is required" in result.errors
    assert "Recipe category is required" in result.errors
    assert any("between 0 and 1440" in error for error in result.errors)


def test_prep_time_limit_is_configurable():
    engine = ValidationEngine(max_prep_time=60)

    result = engine.validate_recipe({**valid_recipe(), "prep_time": 90})

    assert any("between 0 and 60" in error for error in result.errors)


def test_collects_every_problem(engine):
    preparations = [{
        "title": "",
        "processes": [],
        "ingredients": [{"name": "", "current_price": -1, "weight_raw": 1}],
    }]

    result = engine.validate({}, preparations)

    # name, category, title, processes, ingredient name, negative price
    assert len(result.errors) == 6


def test_suspicious_price(engine):
    preparations = valid_preparations()
    preparations[0]["ingredients"][0]["current_price"] = 25000

    result = engine.validate(valid_recipe(), preparations)

    assert any("looks suspicious" in error for error in result.errors)


def test_suspicious_weight():
    engine = ValidationEngine(weight_ceiling=Decimal(50))
    preparations = valid_preparations()
    preparations[0]["ingredients"][0]["weight_raw"] = 80

    result = engine.validate(valid_recipe(), preparations)

    assert any("weight_raw" in error and "looks suspicious" in error for error in result.errors)


def test_negative_weight(engine):
    preparations = valid_preparations()
    preparations[0]["ingredients"][0]["weight_cooked"] = "-0,5"

    result = engine.validate(valid_recipe(), preparations)

    assert any("weight_cooked" in error and "negative" in error for error in result.errors)


def test_unknown_process_is_a_warning(engine):
    preparations = valid_preparations()
    preparations[0]["processes"].append("smoking")

    result = engine.validate(valid_recipe(), preparations)

    assert result.is_valid
    assert any('unknown process "smoking"' in warning for warning in result.warnings)


def test_stage_warnings(engine):
    preparations = valid_preparations()
    del preparations[0]["ingredients"][0]["weight_cooked"]

    result = engine.validate(valid_recipe(), preparations)

    assert result.is_valid
    assert any("final weight missing" in warning for warning in result.warnings)


def test_sub_component_needs_weight(engine):
    result = engine.validate_sub_component({"name": "Sauce", "cost_per_kg": 5})

    assert result.errors == ['Sub-component "Sauce" has no valid assembly weight']


def test_sub_component_without_cost_basis(engine):
    result = engine.validate_sub_component({"name": "Sauce", "quantity": 1})

    assert result.is_valid
    assert len(result.warnings) == 1


class TestValidateMetrics:

    def test_calculated_metrics_pass(self, engine):
        metrics = calculate_recipe_metrics(valid_preparations())

        result = engine.validate_metrics(metrics)

        assert result.is_valid
        assert result.warnings == []

    def test_yield_above_total(self, engine):
        result = engine.validate_metrics({"total_weight": 1, "yield_weight": 2})

        assert "Yield weight cannot be greater than total raw weight" in result.errors

    def test_low_yield_warning(self, engine):
        result = engine.validate_metrics({"total_weight": 10, "yield_weight": "0,5", "yield_percentage": 5})

        assert result.is_valid
        assert len(result.warnings) == 1


def test_negative_raw_price(engine):
    preparations = valid_preparations()
    preparations[0]["ingredients"][0]["raw_price_kg"] = -1

    result = engine.validate(valid_recipe(), preparations)

    assert any("raw_price_kg" in error and "negative" in error for error in result.errors)


def test_suspicious_raw_price(engine):
    preparations = valid_preparations()
    preparations[0]["ingredients"][0]["raw_price_kg"] = 25000

    result = engine.validate(valid_recipe(), preparations)

    assert any("raw_price_kg" in error and "looks suspicious" in error for error in result.errors)
