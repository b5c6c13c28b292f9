"""
SQLAlchemy models for the kitchen costing API.
"""
# Ingredients & pricing
from kitchen_api.models.ingredient import Ingredient, PriceHistory

# Recipes
from kitchen_api.models.recipe import Recipe


__all__ = [
    "Ingredient",
    "PriceHistory",
    "Recipe",
]
