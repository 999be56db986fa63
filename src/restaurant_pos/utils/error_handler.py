"""Turns exceptions from CLI commands into one stderr line and an exit code.

The user sees ``"<title>: <message>"``; the log gets the exception type,
status and context. ServiceError subclasses are grouped into exit codes by
their ``http_status_code``; anything else is a bug and logs a traceback.
"""

import logging
import sys
from typing import Optional, TextIO, Tuple

from restaurant_pos.services.exceptions import (
    ServiceError,
    IngredientNotFound,
    RecipeNotFound,
    ProductNotFound,
    SaleNotFound,
    ProductionRecordNotFound,
    ValidationError,
    InsufficientStock,
    InvalidState,
    DuplicateName,
    IngredientInUse,
    RecipeInUse,
    ProductInUse,
    TransactionFailure,
    DatabaseError,
)

logger = logging.getLogger(__name__)

EXIT_CODES = {
    400: 2,
    404: 3,
    409: 4,
    422: 5,
}
EXIT_UNEXPECTED = 1

# Label and id attribute for each not-found error
_NOT_FOUND_LABELS = (
    (IngredientNotFound, "Ingredient", "ingredient_id"),
    (RecipeNotFound, "Recipe", "recipe_id"),
    (ProductNotFound, "Product", "product_id"),
    (SaleNotFound, "Sale", "sale_id"),
    (ProductionRecordNotFound, "Production record", "production_id"),
)


def handle_error(
    exception: Exception,
    operation: str = "Operation",
    stream: Optional[TextIO] = None,
) -> int:
    """Report a failed command and return the exit code to use.

    Args:
        exception: What the command raised
        operation: Human name of the command, e.g. "Sell product"
        stream: Output for the user-facing line; stderr when None

        try:
            sell_product(product_id, 2)
        except Exception as e:
            return handle_error(e, operation="Sell product")
    """
    title, message = get_user_message(exception, operation)
    _log_error(exception, operation)
    print(f"{title}: {message}", file=stream or sys.stderr)
    return exit_code_for(exception)


def exit_code_for(exception: Exception) -> int:
    if isinstance(exception, ServiceError):
        return EXIT_CODES.get(exception.http_status_code, EXIT_UNEXPECTED)
    return EXIT_UNEXPECTED


def _dependency_summary(dependencies) -> str:
    parts = [f"{count} {name}" for name, count in dependencies.items() if count > 0]
    return ", ".join(parts) or "other items"


def get_user_message(exception: Exception, operation: str = "Operation") -> Tuple[str, str]:
    """(title, message) for showing ``exception`` to the person at the till.

    Known error types get a tailored message. Other ServiceErrors fall back
    on their status code, and foreign exceptions get a generic line so no
    internals leak out.
    """
    for error_type, label, id_attr in _NOT_FOUND_LABELS:
        if isinstance(exception, error_type):
            return "Not Found", f"{label} {getattr(exception, id_attr)} not found."

    if isinstance(exception, ValidationError):
        if exception.errors:
            return "Validation Error", "Validation failed: " + "; ".join(exception.errors)
        return "Validation Error", str(exception)

    if isinstance(exception, DuplicateName):
        return "Duplicate", f"{exception.entity} '{exception.name}' already exists."

    if isinstance(exception, (IngredientInUse, RecipeInUse, ProductInUse)):
        used_in = _dependency_summary(exception.dependencies)
        return "Cannot Delete", f"This {exception.entity} is used in {used_in}."

    if isinstance(exception, TransactionFailure):
        return (
            "Try Again",
            f"{operation} was interrupted by another change to the same items. "
            "Nothing was saved; please retry.",
        )

    if isinstance(exception, InsufficientStock):
        return (
            "Insufficient Stock",
            f"Not enough {exception.item_name}. "
            f"Need {exception.required:g}, have {exception.available:g}.",
        )

    if isinstance(exception, InvalidState):
        return "Cannot Complete", f"{operation} failed: {exception.message}"

    if isinstance(exception, DatabaseError):
        # Driver text stays in the log
        return "Database Error", "Could not reach the database. Please try again."

    if isinstance(exception, ServiceError):
        detail = exception.message
        if exception.http_status_code == 404:
            return "Not Found", f"{operation} failed: the requested item was not found."
        if exception.http_status_code == 409:
            return "Conflict", f"{operation} failed: {detail or 'resource conflict'}"
        return "Error", f"{operation} failed: {detail or 'an error occurred'}"

    return "Unexpected Error", "An unexpected error occurred."


def _log_error(exception: Exception, operation: str) -> None:
    if not isinstance(exception, ServiceError):
        logger.exception(f"{operation} crashed: {exception.__class__.__name__}")
        return

    error_data = {
        "operation": operation,
        "exception_type": type(exception).__name__,
        "message": str(exception),
        "http_status_code": exception.http_status_code,
    }
    if getattr(exception, "context", None):
        error_data["context"] = exception.context

    logger.error(
        f"{operation} failed: {type(exception).__name__}: {exception}",
        extra={"error_data": error_data},
    )
