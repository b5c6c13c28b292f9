import copy
from decimal import Decimal

from kitchen_api.services.recipe_engine import METRIC_FIELDS, RecipeCalculator, calculate_recipe_metrics


def defrosted_beef_recipe():
    return [{
        "id": "prep-1",
        "title": "Thaw beef",
        "processes": ["defrosting"],
        "ingredients": [{
            "id": "ing1_169900000",
            "ingredient_id": "ing1",
            "name": "Beef",
            "current_price": 10,
            "weight_frozen": 1.0,
            "weight_thawed": 0.9,
        }],
    }]


def assembled_rice_recipe(extra_components=()):
    return [
        {
            "id": "prep-1",
            "title": "Cook rice",
            "processes": ["cooking"],
            "ingredients": [{
                "id": "rice",
                "name": "Rice",
                "current_price": 10,
                "weight_raw": 1.0,
                "weight_cooked": 0.8,
            }],
        },
        {
            "id": "prep-2",
            "title": "Fill cuba",
            "processes": ["assembly"],
            "sub_components": [
                {"name": "Cooked rice", "source_id": "prep-1", "quantity": 0.8},
                *extra_components,
            ],
            "assembly_config": {"container_type": "cuba", "units_quantity": 4},
        },
    ]


def test_defrosting_only_recipe():
    metrics = calculate_recipe_metrics(defrosted_beef_recipe())

    assert metrics.total_weight == Decimal("1.0")
    assert abs(metrics.yield_weight - Decimal("0.9")) < Decimal("0.0001")
    assert metrics.total_cost == Decimal(10)
    assert metrics.cost_per_kg_raw == Decimal(10)
    assert abs(metrics.cost_per_kg_yield - Decimal("11.11")) < Decimal("0.01")
    assert abs(metrics.yield_percentage - Decimal(90)) < Decimal("0.01")

    # No finishing stage and no portion weight
    assert metrics.cuba_weight == 0
    assert metrics.cuba_cost == 0
    assert metrics.portion_cost == 0


def test_portion_cost_from_portion_weight():
    metrics = calculate_recipe_metrics(defrosted_beef_recipe(), {"portion_weight_kg": "0,2"})

    # 11.11/kg × 0.2 kg
    assert abs(metrics.portion_cost - Decimal("2.22")) < Decimal("0.01")


def test_empty_recipe_is_all_zeros():
    for preparations in ([], None, "garbage", [None]):
        metrics = calculate_recipe_metrics(preparations)

        for name in METRIC_FIELDS:
            assert getattr(metrics, name) == 0, (preparations, name)


def test_calculation_is_idempotent():
    preparations = assembled_rice_recipe()
    snapshot = copy.deepcopy(preparations)
    calculator = RecipeCalculator()

    first = calculator.calculate_recipe_metrics(preparations)
    second = calculator.calculate_recipe_metrics(preparations)

    assert first == second
    assert preparations == snapshot


def test_metrics_are_never_negative():
    preparations = [{
        "title": "Broken",
        "processes": ["cleaning"],
        "ingredients": [{"name": "X", "current_price": -5, "weight_raw": "-1", "weight_clean": "abc"}],
    }]

    metrics = calculate_recipe_metrics(preparations)

    assert all(value >= 0 for value in metrics.as_dict().values())


def test_assembly_sets_cuba_and_portion():
    metrics = calculate_recipe_metrics(assembled_rice_recipe())

    # The rice cooked in prep-1 is moved into the cuba, not bought twice
    assert metrics.total_weight == Decimal("1.0")
    assert abs(metrics.yield_weight - Decimal("0.8")) < Decimal("0.0001")
    assert metrics.total_cost == Decimal(10)

    assert abs(metrics.cuba_weight - Decimal("0.8")) < Decimal("0.0001")
    assert abs(metrics.cuba_cost - Decimal(10)) < Decimal("0.0001")
    assert abs(metrics.portion_cost - Decimal("2.5")) < Decimal("0.0001")
    assert metrics.has_finishing_stage is True


def test_external_sub_component_adds_to_totals():
    bread = {"name": "Bread", "quantity": 0.2, "cost_per_kg": 5}

    metrics = calculate_recipe_metrics(assembled_rice_recipe([bread]))

    assert abs(metrics.total_weight - Decimal("1.2")) < Decimal("0.0001")
    assert abs(metrics.yield_weight - Decimal("1.0")) < Decimal("0.0001")
    assert abs(metrics.total_cost - Decimal(11)) < Decimal("0.0001")
    assert abs(metrics.cuba_cost - Decimal(11)) < Decimal("0.0001")
    assert abs(metrics.portion_cost - Decimal("2.75")) < Decimal("0.0001")


def test_preparation_breakdown():
    metrics = calculate_recipe_metrics(assembled_rice_recipe())

    rice, cuba = metrics.preparations
    assert rice.title == "Cook rice"
    assert abs(rice.cost_per_kg_yield - Decimal("12.5")) < Decimal("0.0001")
    assert rice.portion is None

    assert cuba.is_finishing
    assert cuba.assembly.components[0].internal is True
    assert cuba.contributed_cost == 0


def test_last_finishing_preparation_defines_the_cuba():
    preparations = assembled_rice_recipe() + [{
        "id": "prep-3",
        "title": "Portion",
        "processes": ["portioning"],
        "sub_components": [{"name": "Rice cuba", "source_id": "prep-2", "quantity": 0.4}],
        "assembly_config": {"units_quantity": 2},
    }]

    metrics = calculate_recipe_metrics(preparations)

    # 0.4 kg at 12.5/kg, split in two
    assert abs(metrics.cuba_weight - Decimal("0.4")) < Decimal("0.0001")
    assert abs(metrics.cuba_cost - Decimal(5)) < Decimal("0.0001")
    assert abs(metrics.portion_cost - Decimal("2.5")) < Decimal("0.0001")


def test_string_numbers_from_forms():
    preparations = defrosted_beef_recipe()
    preparations[0]["ingredients"][0].update({
        "current_price": "10,00",
        "weight_frozen": "1,0",
        "weight_thawed": "0,9",
    })

    metrics = calculate_recipe_metrics(preparations)

    assert abs(metrics.cost_per_kg_yield - Decimal("11.11")) < Decimal("0.01")


def test_large_totals_are_kept():
    preparations = [{
        "title": "Bulk order",
        "processes": ["cleaning"],
        "ingredients": [{
            "name": "Saffron",
            "current_price": "1000000000",
            "weight_raw": 5000,
            "weight_clean": 5000,
        }],
    }]

    metrics = calculate_recipe_metrics(preparations)

    # Inputs stay under the coercion cap; the product is above it
    assert metrics.total_cost == Decimal("5e12")
    assert metrics.cost_per_kg_yield == Decimal(1000000000)
