"""Shared fixtures: an in-memory database per test and a small bakery menu."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

import restaurant_pos.models  # noqa: F401
import restaurant_pos.services.database as db_module
from restaurant_pos.models.base import Base
from restaurant_pos.services import (
    ingredient_service,
    product_service,
    production_service,
    recipe_service,
)


@pytest.fixture(scope="function")
def test_db(monkeypatch):
    """Empty in-memory schema, wired in as the services' session factory.

    Yields the scoped session class so tests can open their own sessions on
    the same database. Tables are dropped afterwards.
    """
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)

    Session = scoped_session(sessionmaker(bind=engine, expire_on_commit=False))
    monkeypatch.setattr(db_module, "get_session_factory", lambda: Session)

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def flour(test_db):
    """1000 g of flour at 0.002 per gram, low below 100 g."""
    return ingredient_service.create_ingredient(
        {
            "name": "Flour",
            "quantity": 1000,
            "unit": "g",
            "min_threshold": 100,
            "cost_per_unit": 0.002,
        }
    )


@pytest.fixture
def water(test_db):
    """Plenty of free water."""
    return ingredient_service.create_ingredient(
        {"name": "Water", "quantity": 10000, "unit": "ml", "cost_per_unit": 0}
    )


@pytest.fixture
def bread(test_db, flour):
    """Bread recipe using 500 g of flour per portion."""
    return recipe_service.create_recipe(
        {
            "name": "Bread",
            "instructions": "Knead and bake",
            "preparation_time": 90,
            "ingredients": [{"ingredient_id": flour.id, "quantity": 500}],
        }
    )


@pytest.fixture
def bread_product(test_db, bread):
    """Active Bread loaf product priced at 5."""
    return product_service.create_product({"recipe_id": bread.id, "name": "Bread loaf", "price": 5})


@pytest.fixture
def prepared_bread(test_db, bread_product):
    """Bread loaf with two portions prepared (all of the flour)."""
    production_service.prepare_recipe(bread_product.recipe_id, 2)
    return bread_product
