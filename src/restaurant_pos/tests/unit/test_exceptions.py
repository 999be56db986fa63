"""Tests for the service exception hierarchy."""

import pytest

from restaurant_pos.services.exceptions import (
    Conflict,
    DatabaseError,
    DuplicateName,
    IngredientInUse,
    IngredientNotFound,
    InsufficientStock,
    InvalidState,
    NotFound,
    ProductInUse,
    ProductNotFound,
    ProductionRecordNotFound,
    RecipeInUse,
    RecipeNotFound,
    SaleNotFound,
    ServiceError,
    TransactionFailure,
    ValidationError,
)


@pytest.mark.parametrize(
    "exc_class,entity",
    [
        (IngredientNotFound, "Ingredient"),
        (RecipeNotFound, "Recipe"),
        (ProductNotFound, "Product"),
        (SaleNotFound, "Sale"),
        (ProductionRecordNotFound, "Production record"),
    ],
)
def test_not_found_messages(exc_class, entity):
    exc = exc_class(12)

    assert isinstance(exc, NotFound)
    assert exc.http_status_code == 404
    assert str(exc) == f"{entity} with ID 12 not found"


def test_validation_error_accepts_string():
    exc = ValidationError("Name is required")

    assert exc.errors == ["Name is required"]
    assert str(exc) == "Validation failed: Name is required"
    assert exc.http_status_code == 400


def test_validation_error_joins_errors():
    exc = ValidationError(["a", "b"])
    assert str(exc) == "Validation failed: a; b"


def test_insufficient_stock():
    exc = InsufficientStock("Bread", required=3, available=2)

    assert exc.http_status_code == 422
    assert str(exc) == "Insufficient stock for Bread: required 3, available 2"


def test_invalid_state_keeps_context():
    exc = InvalidState("Product is not active", product_id=4)

    assert exc.http_status_code == 422
    assert exc.context == {"product_id": 4}
    assert exc.message == "Product is not active"


def test_duplicate_name():
    exc = DuplicateName("Ingredient", "Flour")

    assert isinstance(exc, Conflict)
    assert str(exc) == "Ingredient name 'Flour' already exists"


@pytest.mark.parametrize(
    "exc_class,entity",
    [(IngredientInUse, "ingredient"), (RecipeInUse, "recipe"), (ProductInUse, "product")],
)
def test_in_use_lists_non_zero_dependencies(exc_class, entity):
    exc = exc_class(7, {"products": 2, "production records": 0})

    assert exc.http_status_code == 409
    assert str(exc) == f"Cannot delete {entity} 7: used in 2 products"


def test_transaction_failure_is_retryable():
    original = RuntimeError("stale")
    exc = TransactionFailure("sell_product", original)

    assert exc.retryable is True
    assert exc.original_error is original
    assert exc.http_status_code == 409
    assert "sell_product" in str(exc)


def test_database_error():
    exc = DatabaseError("boom")

    assert isinstance(exc, ServiceError)
    assert exc.http_status_code == 500
    assert str(exc) == "Database error: boom"
