"""
Recipe Costing Service - derived feasibility, capacity and cost figures.

Every function here is a pure function of already-loaded model objects.
Nothing is persisted; callers compute these on demand so stored and
derived values can never drift apart.

A recipe line whose ingredient is missing contributes cost 0 and makes the
recipe infeasible. Recipe writes reject missing ingredients, so this only
matters for rows edited outside the service layer.
"""

from typing import Any, Dict, Iterable, List, Optional

from restaurant_pos.models import Product, Recipe, RecipeIngredient


def _lines(recipe: Optional[Recipe]) -> List[RecipeIngredient]:
    if recipe is None:
        return []
    return list(recipe.recipe_ingredients or [])


def can_make(recipe: Recipe) -> bool:
    """
    Check whether at least one portion can be made from current stock.

    Args:
        recipe: Recipe with ingredient lines loaded

    Returns:
        True iff every line's ingredient exists and has stock >= the line quantity
    """
    for line in _lines(recipe):
        ingredient = line.ingredient
        if ingredient is None or ingredient.quantity < line.quantity:
            return False
    return True


def portions_per_line(lines: Iterable[RecipeIngredient]) -> List[float]:
    """Portions each positive-quantity line alone would allow."""
    portions = []
    for line in lines:
        if not line.quantity or line.quantity <= 0:
            continue
        stock = line.ingredient.quantity if line.ingredient is not None else 0.0
        portions.append(stock / line.quantity)
    return portions


def max_portions(recipe: Recipe) -> float:
    """
    Largest (fractional) portion count producible from current stock.

    Args:
        recipe: Recipe with ingredient lines loaded

    Returns:
        Minimum over positive lines of ingredient stock / line quantity,
        or 0.0 when the recipe has no lines or no positive line
    """
    portions = portions_per_line(_lines(recipe))
    if not portions:
        return 0.0
    return min(portions)


def calculate_cost(recipe: Optional[Recipe]) -> float:
    """
    Cost to produce ONE portion of a recipe.

    Returns:
        Sum of line quantity × ingredient cost_per_unit
    """
    total = 0.0
    for line in _lines(recipe):
        if line.ingredient is None:
            continue
        total += (line.quantity or 0.0) * (line.ingredient.cost_per_unit or 0.0)
    return total


def missing_ingredients(recipe: Recipe, portions: float) -> List[Dict[str, Any]]:
    """
    List the lines that cannot cover ``portions`` portions.

    Args:
        recipe: Recipe with ingredient lines loaded
        portions: Number of portions requested

    Returns:
        One dict per short line with ingredient_id, ingredient_name, needed,
        available and unit
    """
    missing = []
    for line in _lines(recipe):
        ingredient = line.ingredient
        needed = line.quantity * portions
        available = ingredient.quantity if ingredient is not None else 0.0
        if available < needed:
            missing.append(
                {
                    "ingredient_id": line.ingredient_id,
                    "ingredient_name": ingredient.name if ingredient is not None else None,
                    "needed": needed,
                    "available": available,
                    "unit": ingredient.unit if ingredient is not None else None,
                }
            )
    return missing


# ============================================================================
# Product economics
# ============================================================================


def product_cost(product: Product) -> float:
    """Cost of one unit of a product (one portion of its recipe)."""
    return calculate_cost(product.recipe)


def product_profit(product: Product) -> float:
    """Price minus cost for one unit."""
    return (product.price or 0.0) - product_cost(product)


def profit_margin(price: float, cost: float) -> float:
    """
    Profit margin percentage of a price over a cost.

    Returns:
        100.0 when cost is 0; (price - cost) / price × 100 otherwise;
        -100.0 when price is 0 and cost is positive
    """
    if cost == 0:
        return 100.0
    if price == 0:
        return -100.0
    return (price - cost) / price * 100


def product_margin(product: Product) -> float:
    """Profit margin percentage of a product."""
    return profit_margin(product.price or 0.0, product_cost(product))


def sales_margin(revenue: float, profit: float) -> float:
    """Profit over revenue as a percentage; 0 when there is no revenue."""
    if revenue == 0:
        return 0.0
    return profit / revenue * 100


# ============================================================================
# Serialization helpers
# ============================================================================


def recipe_details(recipe: Recipe) -> Dict[str, Any]:
    """Recipe dict with can_make, max_portions and cost added."""
    result = recipe.to_dict()
    result["can_make"] = can_make(recipe)
    result["max_portions"] = max_portions(recipe)
    result["cost"] = calculate_cost(recipe)
    return result


def product_details(product: Product) -> Dict[str, Any]:
    """Product dict with cost, profit, margin and sale availability added."""
    result = product.to_dict()
    cost = product_cost(product)
    result["recipe_name"] = product.recipe.name if product.recipe is not None else None
    result["cost"] = cost
    result["profit"] = (product.price or 0.0) - cost
    result["profit_margin"] = profit_margin(product.price or 0.0, cost)
    result["prepared_quantity"] = product.prepared_quantity
    result["can_sell"] = product.can_sell
    return result
