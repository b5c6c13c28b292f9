"""
Recalculate the cached metrics of stored recipes.

Run after changing costing rules, or to repair recipes whose metrics drifted
from their preparations:

    kitchen-recalculate --dry-run          # show what would change
    kitchen-recalculate                    # recalculate and save every recipe
    kitchen-recalculate --id <recipe id>   # one recipe only
"""
import argparse
import asyncio
import logging
import sys

from kitchen_api.core.config import get_settings
from kitchen_api.services.price_propagation import PricePropagationService
from kitchen_api.services.recipe_repository import SqlRecipeRepository

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kitchen-recalculate",
        description="Recalculate cost and yield metrics of stored recipes.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="compute metrics without saving them",
    )
    parser.add_argument(
        "--id",
        dest="recipe_id",
        default=None,
        help="only recalculate this recipe",
    )
    return parser


def print_report(result, dry_run: bool) -> None:
    mode = "DRY RUN" if dry_run else "EXECUTE"
    print(f"Mode: {mode}")
    print(f"Recipes processed: {len(result.affected_recipe_ids)}")

    for recipe_id, metrics in result.metrics.items():
        print(
            f"  {recipe_id}: total_cost={metrics.total_cost:.2f} "
            f"yield_weight={metrics.yield_weight:.3f} "
            f"cost_per_kg_yield={metrics.cost_per_kg_yield:.2f} "
            f"portion_cost={metrics.portion_cost:.2f}"
        )

    for failure in result.failures:
        print(f"  FAILED {failure.recipe_id}: {failure.error}")

    if not dry_run:
        print(result.summary)


def main(argv=None, repository=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=get_settings().LOG_LEVEL)

    if repository is None:
        from kitchen_api.db.session import get_session_factory
        repository = SqlRecipeRepository(get_session_factory())

    service = PricePropagationService(repository)
    result = asyncio.run(service.recalculate_recipes(recipe_id=args.recipe_id, dry_run=args.dry_run))

    if args.recipe_id and not result.affected_recipe_ids:
        print(f"Recipe {args.recipe_id} not found")
        return 1

    print_report(result, args.dry_run)
    return 1 if result.failures else 0


if __name__ == "__main__":
    sys.exit(main())
