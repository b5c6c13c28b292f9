"""
Tests for the SQL recipe repository.
"""
import asyncio
import time
from decimal import Decimal

import pytest

from kitchen_api.models import Recipe
from kitchen_api.services.price_propagation import PricePropagationService
from kitchen_api.services.recipe_engine import calculate_recipe_metrics
from kitchen_api.services.recipe_repository import SqlRecipeRepository


class SlowSqlRecipeRepository(SqlRecipeRepository):

    def __init__(self, session_factory, slow_on=(), delay=0.0):
        super().__init__(session_factory)
        self.slow_on = set(slow_on)
        self.delay = delay

    def save_recipe_metrics(self, recipe_id, preparations, metrics, deadline=None):
        if recipe_id in self.slow_on:
            time.sleep(self.delay)
        super().save_recipe_metrics(recipe_id, preparations, metrics, deadline)


def test_list_and_get(session_factory, stored_recipes):
    repository = SqlRecipeRepository(session_factory)

    assert [r.id for r in repository.list_recipes()] == ["stew", "burger", "salad"]
    assert repository.get_recipe("stew").name == "Beef stew"
    assert repository.get_recipe("missing") is None


def test_save_past_deadline_writes_nothing(db, session_factory, stored_recipes):
    repository = SqlRecipeRepository(session_factory)
    preparations = repository.get_recipe("stew").preparations
    preparations[0]["ingredients"][0]["current_price"] = 99.0
    metrics = calculate_recipe_metrics(preparations)

    with pytest.raises(TimeoutError):
        repository.save_recipe_metrics("stew", preparations, metrics, deadline=time.monotonic() - 1)

    db.expire_all()
    stew = db.get(Recipe, "stew")
    assert stew.metrics_updated_at is None
    assert stew.preparations[0]["ingredients"][0]["current_price"] == 10.0


def test_save_unknown_recipe(session_factory):
    repository = SqlRecipeRepository(session_factory)

    with pytest.raises(LookupError):
        repository.save_recipe_metrics("missing", [], calculate_recipe_metrics([]))


def test_timed_out_propagation_is_not_persisted(db, session_factory, stored_recipes):
    repository = SlowSqlRecipeRepository(session_factory, slow_on={"burger"}, delay=0.3)
    service = PricePropagationService(repository, timeout_seconds=0.05)

    result = asyncio.run(service.on_ingredient_price_change("ing1", Decimal(15)))

    assert result.updated_recipe_ids == ["stew"]
    assert [f.recipe_id for f in result.failures] == ["burger"]
    assert "timed out" in result.failures[0].error

    db.expire_all()
    burger = db.get(Recipe, "burger")
    assert burger.metrics_updated_at is None
    assert burger.preparations[0]["ingredients"][0]["current_price"] == 10.0

    stew = db.get(Recipe, "stew")
    assert stew.metrics_updated_at is not None
    assert stew.preparations[0]["ingredients"][0]["current_price"] == 15.0
