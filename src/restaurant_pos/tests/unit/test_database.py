"""Tests for engine setup and the transactional session scope."""

import sqlite3

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from restaurant_pos.models import Ingredient
from restaurant_pos.services.database import (
    create_database_engine,
    init_database,
    is_concurrency_conflict,
    reset_database,
    session_scope,
)


def test_memory_engine_gets_tables_and_foreign_keys():
    engine = create_database_engine("sqlite:///:memory:")
    try:
        init_database(engine)

        tables = inspect(engine).get_table_names()
        assert {"ingredients", "recipes", "recipe_ingredients", "products", "sales", "production_records"} <= set(tables)

        with engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
    finally:
        engine.dispose()


def test_session_scope_commits(test_db):
    with session_scope() as session:
        session.add(Ingredient(name="Salt", quantity=10, unit="g"))

    with session_scope() as session:
        assert session.query(Ingredient).count() == 1


def test_session_scope_rolls_back_on_error(test_db):
    with pytest.raises(RuntimeError):
        with session_scope() as session:
            session.add(Ingredient(name="Salt", quantity=10, unit="g"))
            session.flush()
            raise RuntimeError("abort")

    with session_scope() as session:
        assert session.query(Ingredient).count() == 0


def test_reset_requires_confirmation():
    with pytest.raises(ValueError):
        reset_database()


class TestConcurrencyConflict:
    def test_stale_version_is_conflict(self):
        assert is_concurrency_conflict(StaleDataError("version mismatch"))

    def test_locked_database_is_conflict(self):
        error = OperationalError("UPDATE ingredients", {}, sqlite3.OperationalError("database is locked"))
        assert is_concurrency_conflict(error)

    def test_other_operational_error_is_not(self):
        error = OperationalError("SELECT 1", {}, sqlite3.OperationalError("no such table: sales"))
        assert not is_concurrency_conflict(error)

    def test_unrelated_error_is_not(self):
        assert not is_concurrency_conflict(IntegrityError("INSERT", {}, Exception("UNIQUE")))
        assert not is_concurrency_conflict(ValueError("nope"))
