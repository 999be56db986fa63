"""
Command line entry point for Restaurant POS.

Each subcommand calls one service operation and prints its result as JSON
on stdout. Service errors are reported on stderr and mapped to a non-zero
exit code.

Usage Examples:
    # Create the database
    restaurant-pos init-db

    # Stock and recipes
    restaurant-pos add-ingredient Flour --quantity 1000 --unit g --cost-per-unit 0.002
    restaurant-pos add-recipe Bread --ingredient 1:500
    restaurant-pos prepare 1 2

    # Sell and refund
    restaurant-pos add-product 1 "Bread loaf" 5
    restaurant-pos sell 1 2
    restaurant-pos refund 1

    # Reports
    restaurant-pos report 2024-01-01 2024-01-31 --period week
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from restaurant_pos.services import (
    analytics_service,
    ingredient_service,
    product_service,
    production_service,
    recipe_service,
    sale_service,
)
from restaurant_pos.services.database import initialize_app_database, verify_database
from restaurant_pos.services.exceptions import ValidationError
from restaurant_pos.utils.config import get_config
from restaurant_pos.utils.constants import (
    APP_NAME,
    APP_VERSION,
    DEFAULT_BEST_SELLER_DAYS,
    DEFAULT_BEST_SELLER_LIMIT,
    REPORT_PERIODS,
)
from restaurant_pos.utils.error_handler import handle_error

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _emit(result) -> int:
    print(json.dumps(result, indent=2, default=str))
    return 0


def _parse_line(value: str) -> dict:
    """Parse an "INGREDIENT_ID:QUANTITY" recipe line."""
    ingredient_id, sep, quantity = value.partition(":")
    if not sep:
        raise ValidationError([f"Ingredient line '{value}' must look like ID:QUANTITY"])
    try:
        return {"ingredient_id": int(ingredient_id), "quantity": float(quantity)}
    except ValueError:
        raise ValidationError([f"Ingredient line '{value}' must look like ID:QUANTITY"])


# ============================================================================
# Commands
# ============================================================================


def cmd_init_db(args) -> int:
    return _emit({"database": get_config().database_url, "verified": verify_database()})


def cmd_add_ingredient(args) -> int:
    ingredient = ingredient_service.create_ingredient(
        {
            "name": args.name,
            "quantity": args.quantity,
            "unit": args.unit,
            "min_threshold": args.min_threshold,
            "cost_per_unit": args.cost_per_unit,
        }
    )
    return _emit(ingredient.to_dict())


def cmd_restock(args) -> int:
    return _emit(ingredient_service.restock_ingredient(args.ingredient_id, args.amount))


def cmd_add_recipe(args) -> int:
    recipe = recipe_service.create_recipe(
        {
            "name": args.name,
            "instructions": args.instructions,
            "preparation_time": args.preparation_time,
            "ingredients": [_parse_line(line) for line in args.ingredient],
        }
    )
    return _emit(recipe_service.get_recipe_details(recipe.id))


def cmd_prepare(args) -> int:
    return _emit(
        production_service.prepare_recipe(args.recipe_id, args.quantity, notes=args.notes)
    )


def cmd_add_product(args) -> int:
    product = product_service.create_product(
        {
            "recipe_id": args.recipe_id,
            "name": args.name,
            "price": args.price,
            "is_active": not args.inactive,
        }
    )
    return _emit(product_service.get_product_details(product.id))


def cmd_sell(args) -> int:
    return _emit(
        sale_service.sell_product(
            args.product_id, args.quantity, unit_price=args.unit_price, notes=args.notes
        )
    )


def cmd_refund(args) -> int:
    return _emit(sale_service.refund_sale(args.sale_id))


def cmd_low_stock(args) -> int:
    return _emit(product_service.get_low_stock_alerts())


def cmd_capacity(args) -> int:
    return _emit(product_service.get_production_capacity())


def cmd_dashboard(args) -> int:
    return _emit(analytics_service.get_dashboard())


def cmd_report(args) -> int:
    return _emit(
        analytics_service.get_sales_report(
            args.start_date, args.end_date, period=args.period, product_id=args.product_id
        )
    )


def cmd_best_sellers(args) -> int:
    return _emit(analytics_service.get_best_sellers(days=args.days, limit=args.limit))


# ============================================================================
# Parser
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="restaurant-pos",
        description=f"{APP_NAME} {APP_VERSION} - inventory, recipes and point of sale",
    )
    parser.add_argument("--database-url", help="SQLAlchemy database URL (overrides config)")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    p = subparsers.add_parser("init-db", help="Create database tables")
    p.set_defaults(func=cmd_init_db, operation="Initialize database")

    p = subparsers.add_parser("add-ingredient", help="Add an ingredient")
    p.add_argument("name")
    p.add_argument("--quantity", type=float, required=True)
    p.add_argument("--unit", required=True)
    p.add_argument("--min-threshold", type=float, default=0.0)
    p.add_argument("--cost-per-unit", type=float, default=0.0)
    p.set_defaults(func=cmd_add_ingredient, operation="Add ingredient")

    p = subparsers.add_parser("restock", help="Add stock to an ingredient")
    p.add_argument("ingredient_id", type=int)
    p.add_argument("amount", type=float)
    p.set_defaults(func=cmd_restock, operation="Restock ingredient")

    p = subparsers.add_parser("add-recipe", help="Add a recipe")
    p.add_argument("name")
    p.add_argument(
        "--ingredient",
        action="append",
        default=[],
        metavar="ID:QUANTITY",
        help="Ingredient line, quantity per portion (repeatable)",
    )
    p.add_argument("--instructions", default="")
    p.add_argument("--preparation-time", type=int, default=0)
    p.set_defaults(func=cmd_add_recipe, operation="Add recipe")

    p = subparsers.add_parser("prepare", help="Prepare portions of a recipe")
    p.add_argument("recipe_id", type=int)
    p.add_argument("quantity", type=float)
    p.add_argument("--notes", default="")
    p.set_defaults(func=cmd_prepare, operation="Prepare recipe")

    p = subparsers.add_parser("add-product", help="Add a product")
    p.add_argument("recipe_id", type=int)
    p.add_argument("name")
    p.add_argument("price", type=float)
    p.add_argument("--inactive", action="store_true")
    p.set_defaults(func=cmd_add_product, operation="Add product")

    p = subparsers.add_parser("sell", help="Sell a product")
    p.add_argument("product_id", type=int)
    p.add_argument("quantity", type=int)
    p.add_argument("--unit-price", type=float)
    p.add_argument("--notes")
    p.set_defaults(func=cmd_sell, operation="Sell product")

    p = subparsers.add_parser("refund", help="Refund a sale")
    p.add_argument("sale_id", type=int)
    p.set_defaults(func=cmd_refund, operation="Refund sale")

    p = subparsers.add_parser("low-stock", help="List low stock ingredients")
    p.set_defaults(func=cmd_low_stock, operation="Low stock alerts")

    p = subparsers.add_parser("capacity", help="Show production capacity")
    p.set_defaults(func=cmd_capacity, operation="Production capacity")

    p = subparsers.add_parser("dashboard", help="Show dashboard figures")
    p.set_defaults(func=cmd_dashboard, operation="Dashboard")

    p = subparsers.add_parser("report", help="Sales report by period")
    p.add_argument("start_date")
    p.add_argument("end_date")
    p.add_argument("--period", default="day", choices=list(REPORT_PERIODS))
    p.add_argument("--product-id", type=int)
    p.set_defaults(func=cmd_report, operation="Sales report")

    p = subparsers.add_parser("best-sellers", help="Best selling products")
    p.add_argument("--days", type=int, default=DEFAULT_BEST_SELLER_DAYS)
    p.add_argument("--limit", type=int, default=DEFAULT_BEST_SELLER_LIMIT)
    p.set_defaults(func=cmd_best_sellers, operation="Best sellers")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run one command and return its exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    try:
        get_config(database_url=args.database_url)
        initialize_app_database()
        return args.func(args)
    except Exception as e:
        return handle_error(e, operation=args.operation)


if __name__ == "__main__":
    sys.exit(main())
