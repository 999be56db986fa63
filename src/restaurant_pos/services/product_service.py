"""
Product Service - Sellable menu items built on recipes.

This service provides:
- CRUD operations for products
- Active/inactive toggling and the list of products available for sale
- Production capacity per active product
- Bulk price updates (explicit prices or percentage/fixed adjustments)
- Low stock alerts and per-product sales analytics

Cost, profit and margin are always derived from the current recipe.
"""

from contextlib import nullcontext
from datetime import datetime
import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from restaurant_pos.models import Ingredient, Product, Recipe, Sale
from restaurant_pos.services import analytics_service, costing_service
from restaurant_pos.services.database import session_scope
from restaurant_pos.services.dto import BulkItemResult, PaginatedResult, PaginationParams
from restaurant_pos.services.exceptions import (
    DatabaseError,
    ProductInUse,
    ProductNotFound,
    RecipeNotFound,
    ServiceError,
    ValidationError,
)
from restaurant_pos.services.listing import apply_sort, paginate
from restaurant_pos.services.logging_utils import get_service_logger, log_operation
from restaurant_pos.utils.constants import (
    ADJUSTMENT_FIXED,
    ADJUSTMENT_PERCENTAGE,
    ADJUSTMENT_TYPES,
    DEFAULT_ANALYTICS_DAYS,
    ERROR_INVALID_POSITIVE,
    REPORT_PERIODS,
)
from restaurant_pos.utils.datetime_utils import as_utc, days_ago, end_of_day, utc_now
from restaurant_pos.utils.validators import (
    is_number,
    validate_non_negative_integer,
    validate_product_data,
)

logger = get_service_logger(__name__)


def _load(session, product_id: int) -> Product:
    product = session.query(Product).filter_by(id=product_id).first()
    if not product:
        raise ProductNotFound(product_id)
    return product


def _require_recipe(session, recipe_id: int) -> None:
    if session.query(Recipe.id).filter(Recipe.id == recipe_id).first() is None:
        raise RecipeNotFound(recipe_id)


# ============================================================================
# CRUD Operations
# ============================================================================


def create_product(data: Dict, session=None) -> Product:
    """
    Create a new product.

    Args:
        data: Dictionary with recipe_id, name, price and optional is_active
        session: Optional database session

    Returns:
        Created Product with its recipe loaded

    Raises:
        ValidationError: If data validation fails
        RecipeNotFound: If the recipe doesn't exist
        DatabaseError: If database operation fails
    """
    is_valid, errors = validate_product_data(data)
    if not is_valid:
        raise ValidationError(errors)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            _require_recipe(session, data["recipe_id"])

            product = Product(
                recipe_id=data["recipe_id"],
                name=data["name"].strip(),
                price=float(data["price"]),
                is_active=data.get("is_active", True),
            )
            session.add(product)
            session.flush()
            session.refresh(product)

            log_operation(
                logger,
                operation="create_product",
                outcome="success",
                level=logging.DEBUG,
                product_id=product.id,
                recipe_id=product.recipe_id,
            )
            return product

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create product", e)


def get_product(product_id: int, session=None) -> Product:
    """
    Retrieve a product by ID.

    Raises:
        ProductNotFound: If product doesn't exist
        DatabaseError: If database operation fails
    """
    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            return _load(session, product_id)

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to retrieve product {product_id}", e)


def get_product_details(product_id: int) -> Dict[str, Any]:
    """Product dict with recipe name, cost, profit, margin and availability."""
    with session_scope() as session:
        return costing_service.product_details(_load(session, product_id))


def list_products(
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    include_inactive: bool = False,
    sort_by: str = "name",
    sort_order: str = "asc",
    pagination: Optional[PaginationParams] = None,
) -> PaginatedResult:
    """
    List products with derived economics.

    Args:
        search: Case-insensitive partial match on name
        is_active: Filter on the active flag; takes precedence over include_inactive
        include_inactive: When is_active is None, also list inactive products
        sort_by: One of the product sortable fields
        sort_order: "asc" or "desc"
        pagination: Page to fetch; None returns everything

    Returns:
        PaginatedResult of product detail dicts

    Raises:
        ValidationError: If the sort field or order is not allowed
        DatabaseError: If database operation fails
    """
    try:
        with session_scope() as session:
            query = session.query(Product)
            if search:
                query = query.filter(Product.name.ilike(f"%{search}%"))
            if is_active is not None:
                query = query.filter(Product.is_active == is_active)
            elif not include_inactive:
                query = query.filter(Product.is_active.is_(True))

            query = apply_sort(query, Product, "product", sort_by, sort_order)
            page = paginate(query, pagination)
            page.items = [costing_service.product_details(p) for p in page.items]
            return page

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to retrieve products", e)


def update_product(product_id: int, data: Dict, session=None) -> Product:
    """
    Update a product.

    Args:
        product_id: Product ID
        data: Fields to update (recipe_id, name, price, is_active)
        session: Optional database session

    Returns:
        Updated Product

    Raises:
        ProductNotFound: If product doesn't exist
        ValidationError: If data validation fails
        RecipeNotFound: If the new recipe doesn't exist
        DatabaseError: If database operation fails
    """
    is_valid, errors = validate_product_data(data, partial=True)
    if not is_valid:
        raise ValidationError(errors)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            product = _load(session, product_id)

            if "recipe_id" in data and data["recipe_id"] != product.recipe_id:
                _require_recipe(session, data["recipe_id"])
                product.recipe_id = data["recipe_id"]
            if "name" in data:
                product.name = data["name"].strip()
            if "price" in data:
                product.price = float(data["price"])
            if "is_active" in data:
                product.is_active = data["is_active"]

            session.flush()
            session.refresh(product)
            return product

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update product {product_id}", e)


def delete_product(product_id: int) -> bool:
    """
    Delete a product with no recorded sales.

    Returns:
        True if deleted

    Raises:
        ProductNotFound: If product doesn't exist
        ProductInUse: If sales reference the product
    """
    try:
        with session_scope() as session:
            product = _load(session, product_id)

            sale_count = session.query(Sale).filter(Sale.product_id == product_id).count()
            if sale_count > 0:
                raise ProductInUse(product_id, {"sales": sale_count})

            session.delete(product)
            return True

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete product {product_id}", e)


def toggle_product_status(product_id: int) -> Dict[str, Any]:
    """
    Flip a product between active and inactive.

    Returns:
        Dict with the product details and a message
    """
    try:
        with session_scope() as session:
            product = _load(session, product_id)
            product.is_active = not product.is_active
            session.flush()

            state = "activated" if product.is_active else "deactivated"
            log_operation(
                logger,
                operation="toggle_product_status",
                outcome=state,
                product_id=product_id,
            )
            return {
                "product": costing_service.product_details(product),
                "message": f"Product {state} successfully",
            }

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to toggle product {product_id}", e)


# ============================================================================
# Availability and capacity
# ============================================================================


def get_available_products() -> List[Dict[str, Any]]:
    """Active products with prepared portions, ordered by name."""
    try:
        with session_scope() as session:
            products = (
                session.query(Product)
                .filter(Product.is_active.is_(True))
                .order_by(Product.name)
                .all()
            )
            return [costing_service.product_details(p) for p in products if p.prepared_quantity > 0]

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to retrieve available products", e)


def get_production_capacity() -> List[Dict[str, Any]]:
    """
    How many more portions each active product's recipe could be prepared.

    Returns:
        One dict per active product, ordered by name:
        {"product": {id, name, price},
         "recipe": {id, name, prepared_quantity},
         "capacity": {can_make, max_portions (whole portions), available_for_sale}}
    """
    try:
        with session_scope() as session:
            products = (
                session.query(Product)
                .filter(Product.is_active.is_(True))
                .order_by(Product.name)
                .all()
            )

            report = []
            for product in products:
                recipe = product.recipe
                report.append(
                    {
                        "product": {"id": product.id, "name": product.name, "price": product.price},
                        "recipe": {
                            "id": recipe.id,
                            "name": recipe.name,
                            "prepared_quantity": recipe.prepared_quantity,
                        },
                        "capacity": {
                            "can_make": costing_service.can_make(recipe),
                            "max_portions": math.floor(costing_service.max_portions(recipe)),
                            "available_for_sale": recipe.prepared_quantity,
                        },
                    }
                )
            return report

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to compute production capacity", e)


def get_low_stock_alerts() -> Dict[str, Any]:
    """
    Ingredients at or below their threshold, lowest stock first.

    Returns:
        {"count": int, "ingredients": [ingredient dicts]}
    """
    try:
        with session_scope() as session:
            ingredients = (
                session.query(Ingredient)
                .filter(Ingredient.quantity <= Ingredient.min_threshold)
                .order_by(Ingredient.quantity.asc(), Ingredient.name.asc())
                .all()
            )
            return {
                "count": len(ingredients),
                "ingredients": [ingredient.to_dict() for ingredient in ingredients],
            }

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to retrieve low stock alerts", e)


# ============================================================================
# Bulk Operations
# ============================================================================


def _adjusted_price(price: float, adjustment_type: str, adjustment_value: float) -> float:
    if adjustment_type == ADJUSTMENT_PERCENTAGE:
        new_price = price * (1 + adjustment_value / 100)
    elif adjustment_type == ADJUSTMENT_FIXED:
        new_price = price + adjustment_value
    else:
        raise ValidationError([f"Invalid adjustment type '{adjustment_type}'"])
    if new_price < 0:
        raise ValidationError(["Price cannot be negative"])
    return new_price


def bulk_update_prices(
    updates: Optional[List[Dict]] = None,
    adjustment_type: Optional[str] = None,
    adjustment_value=None,
) -> List[BulkItemResult]:
    """
    Update many product prices, each in its own transaction.

    Either pass ``updates`` as a list of {"id": product_id, "price": new_price},
    or pass ``adjustment_type`` ("percentage" or "fixed") and
    ``adjustment_value`` to adjust every active product.

    Returns:
        One BulkItemResult per product, in input (or name) order

    Raises:
        ValidationError: If neither form of arguments is usable
    """
    results = []

    if updates is not None:
        if not isinstance(updates, list):
            raise ValidationError(["Updates must be a list"])
        for update in updates:
            item_id = update.get("id") if isinstance(update, dict) else None
            try:
                if item_id is None:
                    raise ValidationError(["Each update needs an id"])
                product = update_product(item_id, {"price": update.get("price")})
                results.append(
                    BulkItemResult(
                        id=item_id, success=True, data=costing_service.product_details(product)
                    )
                )
            except ServiceError as e:
                results.append(BulkItemResult(id=item_id, success=False, error=str(e)))

    elif adjustment_type is not None and adjustment_value is not None:
        if adjustment_type not in ADJUSTMENT_TYPES:
            raise ValidationError(
                [f"Invalid adjustment type. Choose from: {', '.join(ADJUSTMENT_TYPES)}"]
            )
        if not is_number(adjustment_value):
            raise ValidationError(["Adjustment value must be a number"])
        adjustment_value = float(adjustment_value)

        with session_scope() as session:
            targets = [
                (p.id, p.price)
                for p in session.query(Product)
                .filter(Product.is_active.is_(True))
                .order_by(Product.name)
                .all()
            ]

        for product_id, price in targets:
            try:
                new_price = _adjusted_price(price, adjustment_type, adjustment_value)
                product = update_product(product_id, {"price": new_price})
                results.append(
                    BulkItemResult(
                        id=product_id, success=True, data=costing_service.product_details(product)
                    )
                )
            except ServiceError as e:
                results.append(BulkItemResult(id=product_id, success=False, error=str(e)))

    else:
        raise ValidationError(["Invalid bulk update parameters"])

    log_operation(
        logger,
        operation="bulk_update_prices",
        outcome="complete",
        total=len(results),
        failed=sum(1 for r in results if not r.success),
    )
    return results


# ============================================================================
# Analytics
# ============================================================================


def get_product_analytics(
    product_id: int,
    days: int = DEFAULT_ANALYTICS_DAYS,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Sales performance of one product over the last ``days`` days.

    The window runs from UTC midnight ``days`` days before ``now`` to the end
    of ``now``'s day, the same calendar-day window get_best_sellers uses.

    Args:
        product_id: Product ID
        days: Window length in whole days (> 0)
        now: Reference time; defaults to the current time

    Returns:
        Dict with product (unit economics), period (days, start_date,
        end_date), summary (totals and average_daily_sales) and chart_data
        (one entry per day with sales, oldest first)

    Raises:
        ValidationError: If days is not a positive whole number
        ProductNotFound: If product doesn't exist
    """
    is_valid, error = validate_non_negative_integer(days, "Days")
    if is_valid and float(days) == 0:
        is_valid, error = False, f"Days: {ERROR_INVALID_POSITIVE}"
    if not is_valid:
        raise ValidationError([error])
    days = int(float(days))

    now = as_utc(now or utc_now())
    start = days_ago(days, now)

    try:
        with session_scope() as session:
            product = _load(session, product_id)
            cost = costing_service.product_cost(product)
            product_info = {
                "id": product.id,
                "name": product.name,
                "price": product.price,
                "cost": cost,
                "profit_per_unit": product.price - cost,
                "profit_margin_per_unit": costing_service.profit_margin(product.price, cost),
            }
            lines = analytics_service.load_sale_lines(
                session, start=start, end=end_of_day(now), product_id=product_id
            )

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load analytics for product {product_id}", e)

    totals = analytics_service.summarize(lines)
    chart_data = [
        {
            "date": bucket["period"],
            "quantity": bucket["items_sold"],
            "revenue": bucket["total_sales"],
            "profit": bucket["profit"],
        }
        for bucket in analytics_service.bucket_by_period(lines, "day")
    ]

    return {
        "product": product_info,
        "period": {
            "days": days,
            "start_date": start.strftime(REPORT_PERIODS["day"]),
            "end_date": now.strftime(REPORT_PERIODS["day"]),
        },
        "summary": {
            "total_sales": totals["items_sold"],
            "total_revenue": totals["revenue"],
            "total_cost": totals["cost"],
            "total_profit": totals["profit"],
            "profit_margin": totals["profit_margin"],
            "average_daily_sales": totals["items_sold"] / days,
        },
        "chart_data": chart_data,
    }
