"""
Recipe costing and yield engine.

normalizer → validation (advisory) → process calculator (per stage)
→ assembly calculator (finishing stages) → recipe calculator (aggregation).
"""
from kitchen_api.services.recipe_engine.normalizer import (
    clean_string,
    normalize_preparations,
    resolve_ingredient_id,
    to_number,
)
from kitchen_api.services.recipe_engine.process_calculator import (
    PROCESS_DEFINITIONS,
    ProcessCalculator,
    StageResult,
)
from kitchen_api.services.recipe_engine.assembly_calculator import (
    AssemblyCalculator,
    AssemblyResult,
    PortionResult,
)
from kitchen_api.services.recipe_engine.validation import (
    ValidationEngine,
    ValidationResult,
)
from kitchen_api.services.recipe_engine.recipe_calculator import (
    METRIC_FIELDS,
    PreparationMetrics,
    RecipeCalculator,
    RecipeMetrics,
    calculate_recipe_metrics,
)


__all__ = [
    "clean_string",
    "normalize_preparations",
    "resolve_ingredient_id",
    "to_number",
    "PROCESS_DEFINITIONS",
    "ProcessCalculator",
    "StageResult",
    "AssemblyCalculator",
    "AssemblyResult",
    "PortionResult",
    "ValidationEngine",
    "ValidationResult",
    "METRIC_FIELDS",
    "PreparationMetrics",
    "RecipeCalculator",
    "RecipeMetrics",
    "calculate_recipe_metrics",
]
