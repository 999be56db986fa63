"""Tests for the CLI error handler."""

import io
import logging

import pytest

from restaurant_pos.services.exceptions import (
    DatabaseError,
    DuplicateName,
    IngredientNotFound,
    InsufficientStock,
    InvalidState,
    RecipeInUse,
    ServiceError,
    TransactionFailure,
    ValidationError,
)
from restaurant_pos.utils.error_handler import exit_code_for, get_user_message, handle_error


@pytest.mark.parametrize(
    "exception,title",
    [
        (IngredientNotFound(3), "Not Found"),
        (ValidationError(["Price: must be a number"]), "Validation Error"),
        (DuplicateName("Recipe", "Bread"), "Duplicate"),
        (RecipeInUse(1, {"products": 1}), "Cannot Delete"),
        (TransactionFailure("prepare_recipe"), "Try Again"),
        (InsufficientStock("Bread", 3, 2), "Insufficient Stock"),
        (InvalidState("Product is not active"), "Cannot Complete"),
        (DatabaseError("locked"), "Database Error"),
        (ServiceError("odd"), "Error"),
        (KeyError("x"), "Unexpected Error"),
    ],
)
def test_titles(exception, title):
    assert get_user_message(exception, "Sell product")[0] == title


def test_messages_carry_details():
    _, message = get_user_message(InsufficientStock("Bread", 3, 2.5))
    assert message == "Not enough Bread. Need 3, have 2.5."

    _, message = get_user_message(RecipeInUse(1, {"products": 2, "production records": 0}))
    assert message == "This recipe is used in 2 products."

    _, message = get_user_message(InvalidState("Product is not active"), "Sell product")
    assert message == "Sell product failed: Product is not active"


@pytest.mark.parametrize(
    "exception,code",
    [
        (ValidationError("bad"), 2),
        (IngredientNotFound(1), 3),
        (DuplicateName("Ingredient", "Salt"), 4),
        (TransactionFailure("sell_product"), 4),
        (InsufficientStock("Bread", 1, 0), 5),
        (DatabaseError("x"), 1),
        (ValueError("x"), 1),
    ],
)
def test_exit_codes(exception, code):
    assert exit_code_for(exception) == code


def test_handle_error_prints_and_logs(caplog):
    stream = io.StringIO()

    with caplog.at_level(logging.ERROR):
        code = handle_error(IngredientNotFound(9), operation="Restock ingredient", stream=stream)

    assert code == 3
    assert stream.getvalue() == "Not Found: Ingredient 9 not found.\n"
    record = caplog.records[0]
    assert record.error_data["exception_type"] == "IngredientNotFound"
    assert record.error_data["http_status_code"] == 404


def test_unexpected_error_logs_traceback(caplog):
    stream = io.StringIO()

    with caplog.at_level(logging.ERROR):
        try:
            raise RuntimeError("kaboom")
        except RuntimeError as e:
            code = handle_error(e, stream=stream)

    assert code == 1
    assert stream.getvalue().startswith("Unexpected Error:")
    assert caplog.records[0].exc_info is not None
