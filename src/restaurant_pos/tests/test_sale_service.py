"""Tests for the point-of-sale ledger."""

from datetime import datetime, timezone

import pytest

from restaurant_pos.services import ingredient_service, product_service, recipe_service, sale_service
from restaurant_pos.services.exceptions import (
    InsufficientStock,
    InvalidState,
    SaleNotFound,
    ValidationError,
)


def _prepared(product):
    return recipe_service.get_recipe(product.recipe_id).prepared_quantity


class TestSellProduct:
    def test_sell_consumes_prepared_portions(self, prepared_bread):
        sale = sale_service.sell_product(prepared_bread.id, 1, notes="Table 4")

        assert sale["product_name"] == "Bread loaf"
        assert sale["quantity"] == 1
        assert sale["unit_price"] == 5
        assert sale["total_price"] == 5
        assert sale["profit"] == pytest.approx(4.0)
        assert sale["notes"] == "Table 4"
        assert _prepared(prepared_bread) == 1

    def test_unit_price_override(self, prepared_bread):
        sale = sale_service.sell_product(prepared_bread.id, 2, unit_price=4.5)

        assert sale["unit_price"] == 4.5
        assert sale["total_price"] == 9.0
        assert _prepared(prepared_bread) == 0

    def test_selling_leaves_ingredients_alone(self, prepared_bread, flour):
        sale_service.sell_product(prepared_bread.id, 2)
        assert ingredient_service.get_ingredient(flour.id).quantity == 0

    def test_sell_more_than_prepared(self, prepared_bread):
        with pytest.raises(InsufficientStock) as exc_info:
            sale_service.sell_product(prepared_bread.id, 3)

        assert exc_info.value.available == 2
        assert _prepared(prepared_bread) == 2
        assert sale_service.list_sales().total == 0

    def test_nothing_prepared(self, bread_product):
        with pytest.raises(InsufficientStock):
            sale_service.sell_product(bread_product.id, 1)

    def test_inactive_product(self, prepared_bread):
        product_service.toggle_product_status(prepared_bread.id)

        with pytest.raises(InvalidState):
            sale_service.sell_product(prepared_bread.id, 1)
        assert _prepared(prepared_bread) == 2

    def test_missing_product(self, test_db):
        with pytest.raises(InvalidState):
            sale_service.sell_product(404, 1)

    @pytest.mark.parametrize("quantity", [1.5, "one", float("inf"), "inf"])
    def test_quantity_must_be_whole(self, prepared_bread, quantity):
        with pytest.raises(ValidationError):
            sale_service.sell_product(prepared_bread.id, quantity)

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_quantity_must_be_positive(self, prepared_bread, quantity):
        with pytest.raises(InvalidState):
            sale_service.sell_product(prepared_bread.id, quantity)

    def test_negative_unit_price(self, prepared_bread):
        with pytest.raises(ValidationError):
            sale_service.sell_product(prepared_bread.id, 1, unit_price=-1)

    def test_bad_timestamp(self, prepared_bread):
        with pytest.raises(ValidationError):
            sale_service.sell_product(prepared_bread.id, 1, timestamp="yesterday")


class TestRefundSale:
    def test_refund_restores_portions_only(self, prepared_bread, flour):
        sale = sale_service.sell_product(prepared_bread.id, 2)

        result = sale_service.refund_sale(sale["id"])

        assert result["restored_quantity"] == 2
        assert result["prepared_quantity"] == 2
        assert result["product_name"] == "Bread loaf"
        assert _prepared(prepared_bread) == 2
        assert ingredient_service.get_ingredient(flour.id).quantity == 0
        with pytest.raises(SaleNotFound):
            sale_service.get_sale(sale["id"])

    def test_refund_missing(self, test_db):
        with pytest.raises(SaleNotFound):
            sale_service.refund_sale(1)


class TestSaleQueries:
    def test_list_by_date_range(self, prepared_bread):
        sale_service.sell_product(
            prepared_bread.id, 1, timestamp=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
        )
        sale_service.sell_product(
            prepared_bread.id, 1, unit_price=3, timestamp=datetime(2024, 5, 3, 18, 0, tzinfo=timezone.utc)
        )

        may_first = sale_service.list_sales(start_date="2024-05-01", end_date="2024-05-01")
        everything = sale_service.list_sales()

        assert may_first.total == 1
        assert may_first.summary == {
            "page_revenue": 5.0,
            "page_profit": pytest.approx(4.0),
            "page_transactions": 1,
        }
        assert [s["unit_price"] for s in everything.items] == [3, 5]

    def test_list_invalid_date(self, test_db):
        with pytest.raises(ValidationError):
            sale_service.list_sales(start_date="May first")

    def test_update_notes_and_timestamp(self, prepared_bread):
        sale = sale_service.sell_product(prepared_bread.id, 1)

        updated = sale_service.update_sale(
            sale["id"], {"notes": "Comped", "timestamp": "2024-01-02T12:00:00+00:00"}
        )

        assert updated["notes"] == "Comped"
        assert updated["timestamp"].startswith("2024-01-02T12:00:00")

    def test_update_rejects_fixed_fields(self, prepared_bread):
        sale = sale_service.sell_product(prepared_bread.id, 1)

        with pytest.raises(ValidationError):
            sale_service.update_sale(sale["id"], {"quantity": 2})
        assert sale_service.get_sale(sale["id"])["quantity"] == 1

    def test_update_missing(self, test_db):
        with pytest.raises(SaleNotFound):
            sale_service.update_sale(9, {"notes": "x"})
