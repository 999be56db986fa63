"""Tests for recipe costing: feasibility, capacity, cost and margins.

These work on unsaved model objects; no database is needed.
"""

import pytest

from restaurant_pos.models import Ingredient, Product, Recipe, RecipeIngredient
from restaurant_pos.services import costing_service


def make_recipe(*lines):
    """Build a recipe from (stock, cost_per_unit, per_portion) tuples."""
    recipe = Recipe(name="Test", prepared_quantity=0.0)
    recipe.recipe_ingredients = [
        RecipeIngredient(
            ingredient=Ingredient(name=f"I{i}", quantity=stock, unit="g", cost_per_unit=cost),
            quantity=per_portion,
            position=i,
        )
        for i, (stock, cost, per_portion) in enumerate(lines)
    ]
    return recipe


class TestFeasibility:
    def test_bread_scenario(self):
        recipe = make_recipe((1000, 0.002, 500))

        assert costing_service.can_make(recipe) is True
        assert costing_service.max_portions(recipe) == 2
        assert costing_service.calculate_cost(recipe) == pytest.approx(1.0)

    def test_cannot_make_when_any_line_short(self):
        recipe = make_recipe((1000, 0, 500), (10, 0, 20))

        assert costing_service.can_make(recipe) is False
        assert costing_service.max_portions(recipe) == pytest.approx(0.5)

    def test_max_portions_is_fractional(self):
        recipe = make_recipe((750, 0, 500))
        assert costing_service.max_portions(recipe) == pytest.approx(1.5)

    def test_max_portions_zero_stock(self):
        recipe = make_recipe((0, 0, 500), (1000, 0, 1))
        assert costing_service.max_portions(recipe) == 0.0

    def test_empty_recipe(self):
        recipe = Recipe(name="Air")
        recipe.recipe_ingredients = []

        assert costing_service.can_make(recipe) is True
        assert costing_service.max_portions(recipe) == 0.0
        assert costing_service.calculate_cost(recipe) == 0.0

    def test_max_portions_invariant_under_line_order(self):
        lines = [(1000, 0.002, 500), (90, 0.1, 30), (5000, 0.0, 700)]
        forward = costing_service.max_portions(make_recipe(*lines))
        backward = costing_service.max_portions(make_recipe(*reversed(lines)))

        assert forward == backward == pytest.approx(2.0)

    def test_missing_ingredients(self):
        recipe = make_recipe((1000, 0, 500), (10, 0, 20))

        missing = costing_service.missing_ingredients(recipe, 1)

        assert len(missing) == 1
        assert missing[0]["ingredient_name"] == "I1"
        assert missing[0]["needed"] == 20
        assert missing[0]["available"] == 10


class TestCost:
    def test_cost_sums_lines(self):
        recipe = make_recipe((1000, 0.002, 500), (100, 0.5, 2))
        assert costing_service.calculate_cost(recipe) == pytest.approx(2.0)

    def test_cost_is_independent_of_stock(self):
        recipe = make_recipe((0, 0.002, 500))
        assert costing_service.calculate_cost(recipe) == pytest.approx(1.0)


class TestMargins:
    def test_zero_cost_gives_full_margin(self):
        assert costing_service.profit_margin(5.0, 0.0) == 100.0
        assert costing_service.profit_margin(0.0, 0.0) == 100.0

    def test_zero_price_with_cost_is_negative_hundred(self):
        assert costing_service.profit_margin(0.0, 1.0) == -100.0

    def test_regular_margin(self):
        assert costing_service.profit_margin(5.0, 1.0) == pytest.approx(80.0)

    def test_sales_margin_without_revenue(self):
        assert costing_service.sales_margin(0.0, -3.0) == 0.0
        assert costing_service.sales_margin(10.0, 8.0) == pytest.approx(80.0)

    def test_product_economics(self):
        product = Product(name="Loaf", price=5.0, is_active=True)
        product.recipe = make_recipe((1000, 0.002, 500))

        assert costing_service.product_cost(product) == pytest.approx(1.0)
        assert costing_service.product_profit(product) == pytest.approx(4.0)
        assert costing_service.product_margin(product) == pytest.approx(80.0)

    def test_product_details(self):
        product = Product(name="Loaf", price=5.0, is_active=True)
        product.recipe = make_recipe((1000, 0.002, 500))
        product.recipe.prepared_quantity = 2.0

        details = costing_service.product_details(product)

        assert details["recipe_name"] == "Test"
        assert details["cost"] == pytest.approx(1.0)
        assert details["profit"] == pytest.approx(4.0)
        assert details["profit_margin"] == pytest.approx(80.0)
        assert details["prepared_quantity"] == 2.0
        assert details["can_sell"] is True
