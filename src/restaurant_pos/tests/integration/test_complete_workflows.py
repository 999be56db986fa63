"""
Complete workflow integration tests.

Tests end-to-end journeys across the ingredient, recipe, production,
product, sale and analytics services: stocking a kitchen, preparing
portions, selling them and reporting on the result.
"""

import logging
from datetime import datetime, timezone

import pytest
from sqlalchemy import event, text
from sqlalchemy.orm import sessionmaker

import restaurant_pos.services.database as db_module
from restaurant_pos.services import (
    analytics_service,
    ingredient_service,
    product_service,
    production_service,
    recipe_service,
    sale_service,
)
from restaurant_pos.services.database import create_database_engine, init_database
from restaurant_pos.services.exceptions import (
    InsufficientStock,
    InvalidState,
    RecipeInUse,
    TransactionFailure,
)


def _stock(ingredient_id):
    return ingredient_service.get_ingredient(ingredient_id).quantity


def _prepared(recipe_id):
    return recipe_service.get_recipe(recipe_id).prepared_quantity


class TestBreadScenario:
    """Stock flour, prepare bread, sell it out and report."""

    def test_prepare_sell_and_run_out(self, bread_product, flour):
        details = recipe_service.get_recipe_details(bread_product.recipe_id)
        assert details["max_portions"] == 2
        assert details["cost"] == pytest.approx(1.0)

        production_service.prepare_recipe(bread_product.recipe_id, 2)
        assert _stock(flour.id) == 0
        assert _prepared(bread_product.recipe_id) == 2
        assert recipe_service.get_recipe_details(bread_product.recipe_id)["can_make"] is False

        sold_at = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        sale = sale_service.sell_product(bread_product.id, 2, timestamp=sold_at)
        assert sale["total_price"] == 10
        assert sale["profit"] == pytest.approx(8.0)
        assert _prepared(bread_product.recipe_id) == 0

        with pytest.raises(InsufficientStock):
            sale_service.sell_product(bread_product.id, 1)
        with pytest.raises(InsufficientStock):
            production_service.prepare_recipe(bread_product.recipe_id, 1)

        report = analytics_service.get_sales_report("2024-06-01", "2024-06-01")
        assert report["summary"]["revenue"] == 10
        assert report["summary"]["profit"] == pytest.approx(8.0)
        assert product_service.get_low_stock_alerts()["count"] == 1

    def test_restock_refund_and_sell_again(self, prepared_bread, flour):
        sale = sale_service.sell_product(prepared_bread.id, 2)
        sale_service.refund_sale(sale["id"])

        assert _prepared(prepared_bread.recipe_id) == 2
        assert _stock(flour.id) == 0

        ingredient_service.restock_ingredient(flour.id, 500)
        production_service.prepare_recipe(prepared_bread.recipe_id, 1)
        sale_service.sell_product(prepared_bread.id, 3)

        assert _prepared(prepared_bread.recipe_id) == 0
        assert _stock(flour.id) == 0
        assert sale_service.list_sales().total == 1

    def test_deactivated_product_keeps_its_portions(self, prepared_bread):
        product_service.toggle_product_status(prepared_bread.id)

        with pytest.raises(InvalidState):
            sale_service.sell_product(prepared_bread.id, 1)
        assert product_service.get_available_products() == []
        assert _prepared(prepared_bread.recipe_id) == 2

    def test_history_blocks_recipe_delete(self, prepared_bread):
        with pytest.raises(RecipeInUse) as exc_info:
            recipe_service.delete_recipe(prepared_bread.recipe_id)

        assert exc_info.value.dependencies == {"products": 1, "production records": 1}


class TestAtomicity:
    """Failed ledger operations leave no trace."""

    def test_over_max_by_a_hair_changes_nothing(self, bread, flour):
        with pytest.raises(InsufficientStock):
            production_service.prepare_recipe(bread.id, 2 + 1e-6)

        assert _stock(flour.id) == 1000
        assert _prepared(bread.id) == 0
        assert production_service.get_production_history(bread.id).total == 0


class TestConcurrentWrites:
    """A ledger write that loses a race against another connection persists nothing."""

    @pytest.fixture
    def file_db(self, tmp_path, monkeypatch):
        engine = create_database_engine(f"sqlite:///{(tmp_path / 'pos.db').as_posix()}")
        init_database(engine)
        factory = sessionmaker(bind=engine, expire_on_commit=False)
        monkeypatch.setattr(db_module, "get_session_factory", lambda: factory)
        yield engine
        engine.dispose()

    @pytest.fixture
    def bread_loaf(self, file_db):
        flour = ingredient_service.create_ingredient(
            {"name": "Flour", "quantity": 1000, "unit": "g", "cost_per_unit": 0.002}
        )
        bread = recipe_service.create_recipe(
            {"name": "Bread", "ingredients": [{"ingredient_id": flour.id, "quantity": 250}]}
        )
        product = product_service.create_product({"recipe_id": bread.id, "name": "Bread loaf", "price": 5})
        production_service.prepare_recipe(bread.id, 2)
        return flour, bread, product

    @staticmethod
    def _commit_before_flush(session, engine, statement, params):
        """Commit ``statement`` on another connection right before ``session`` first flushes."""
        fired = []

        @event.listens_for(session, "before_flush")
        def competing_write(session, flush_context, instances):
            if fired:
                return
            fired.append(True)
            with engine.begin() as conn:
                conn.execute(text(statement), params)

    def test_stock_change_fails_prepare(self, file_db, bread_loaf):
        flour, bread, _ = bread_loaf
        session = db_module.get_session_factory()()
        self._commit_before_flush(
            session,
            file_db,
            "UPDATE ingredients SET quantity = 0, version_id = version_id + 1 WHERE id = :id",
            {"id": flour.id},
        )

        try:
            with pytest.raises(TransactionFailure):
                production_service.prepare_recipe(bread.id, 1, session=session)
        finally:
            session.rollback()
            session.close()

        assert _stock(flour.id) == 0
        assert _prepared(bread.id) == 2
        assert production_service.get_production_history(bread.id).total == 1

    def test_prepared_change_fails_sale(self, file_db, bread_loaf):
        _, bread, product = bread_loaf
        session = db_module.get_session_factory()()
        self._commit_before_flush(
            session,
            file_db,
            "UPDATE recipes SET prepared_quantity = 0, version_id = version_id + 1 WHERE id = :id",
            {"id": bread.id},
        )

        try:
            with pytest.raises(TransactionFailure):
                sale_service.sell_product(product.id, 1, session=session)
        finally:
            session.rollback()
            session.close()

        assert _prepared(bread.id) == 0
        assert sale_service.list_sales().total == 0

    def test_conflict_is_logged(self, file_db, bread_loaf, caplog):
        flour, bread, _ = bread_loaf
        session = db_module.get_session_factory()()
        self._commit_before_flush(
            session,
            file_db,
            "UPDATE ingredients SET version_id = version_id + 1 WHERE id = :id",
            {"id": flour.id},
        )

        try:
            with caplog.at_level(logging.WARNING), pytest.raises(TransactionFailure):
                production_service.prepare_recipe(bread.id, 1, session=session)
        finally:
            session.rollback()
            session.close()

        outcomes = [getattr(r, "outcome", None) for r in caplog.records]
        assert "transaction_failed" in outcomes
        assert _stock(flour.id) == 500


class TestMenuWorkflow:
    """A two-item menu priced, adjusted and reported on."""

    def test_bulk_repricing_feeds_reports(self, bread_product, water, flour):
        soup = recipe_service.create_recipe(
            {"name": "Soup", "ingredients": [{"ingredient_id": water.id, "quantity": 250}]}
        )
        soup_bowl = product_service.create_product({"recipe_id": soup.id, "name": "Soup bowl", "price": 2})

        results = product_service.bulk_update_prices(adjustment_type="percentage", adjustment_value=50)
        assert all(r.success for r in results)

        production_service.prepare_recipe(soup.id, 4)
        sale_service.sell_product(soup_bowl.id, 4)

        ranked = analytics_service.get_best_sellers(days=1)
        assert ranked[0]["product_name"] == "Soup bowl"
        assert ranked[0]["price"] == pytest.approx(3.0)
        assert ranked[0]["total_revenue"] == pytest.approx(12.0)

        capacity = {c["product"]["name"]: c["capacity"] for c in product_service.get_production_capacity()}
        assert capacity["Soup bowl"]["max_portions"] == 36
        assert capacity["Bread loaf"]["max_portions"] == 2
