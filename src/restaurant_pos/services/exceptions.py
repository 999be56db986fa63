"""Service layer exception classes for Restaurant POS.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application. Each exception carries an
``http_status_code`` the boundary layer uses to pick a message and exit code.

Exception Hierarchy:
    ServiceError (base)
    ├── NotFound
    │   ├── IngredientNotFound
    │   ├── RecipeNotFound
    │   ├── ProductNotFound
    │   ├── SaleNotFound
    │   └── ProductionRecordNotFound
    ├── ValidationError
    ├── InsufficientStock
    ├── InvalidState
    ├── Conflict
    │   ├── DuplicateName
    │   ├── IngredientInUse
    │   ├── RecipeInUse
    │   └── ProductInUse
    ├── TransactionFailure
    └── DatabaseError
"""

from typing import Dict, List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions inherit from this class.
    """

    http_status_code = 500

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


# ============================================================================
# Not Found (404)
# ============================================================================


class NotFound(ServiceError):
    """Raised when an entity cannot be found by ID."""

    http_status_code = 404
    entity = "Record"

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} with ID {entity_id} not found")


class IngredientNotFound(NotFound):
    """Raised when an ingredient cannot be found by ID.

    Example:
        >>> raise IngredientNotFound(123)
        IngredientNotFound: Ingredient with ID 123 not found
    """

    entity = "Ingredient"

    def __init__(self, ingredient_id: int):
        self.ingredient_id = ingredient_id
        super().__init__(ingredient_id)


class RecipeNotFound(NotFound):
    """Raised when a recipe cannot be found by ID."""

    entity = "Recipe"

    def __init__(self, recipe_id: int):
        self.recipe_id = recipe_id
        super().__init__(recipe_id)


class ProductNotFound(NotFound):
    """Raised when a product cannot be found by ID."""

    entity = "Product"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(product_id)


class SaleNotFound(NotFound):
    """Raised when a sale cannot be found by ID."""

    entity = "Sale"

    def __init__(self, sale_id: int):
        self.sale_id = sale_id
        super().__init__(sale_id)


class ProductionRecordNotFound(NotFound):
    """Raised when a production record cannot be found by ID."""

    entity = "Production record"

    def __init__(self, production_id: int):
        self.production_id = production_id
        super().__init__(production_id)


# ============================================================================
# Validation (400)
# ============================================================================


class ValidationError(ServiceError):
    """Raised when input is malformed or out of range.

    Args:
        errors: List of human-readable error strings
    """

    http_status_code = 400

    def __init__(self, errors: List[str]):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        error_msg = "; ".join(self.errors)
        super().__init__(f"Validation failed: {error_msg}")


# ============================================================================
# Business rules (422)
# ============================================================================


class InsufficientStock(ServiceError):
    """Raised when a prepare or sell request exceeds what is available.

    Args:
        item_name: Recipe or ingredient the request ran short on
        required: Amount requested
        available: Amount actually available (max portions for prepare,
            prepared quantity for sell)

    Example:
        >>> raise InsufficientStock("Bread", required=3, available=2)
        InsufficientStock: Insufficient stock for Bread: required 3, available 2
    """

    http_status_code = 422

    def __init__(self, item_name: str, required: float, available: float):
        self.item_name = item_name
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient stock for {item_name}: required {required}, available {available}"
        )


class InvalidState(ServiceError):
    """Raised when an operation is not allowed in the current state.

    Covers selling an inactive or missing product and non-positive quantities.
    """

    http_status_code = 422

    def __init__(self, message: str, **context):
        self.context = context
        super().__init__(message)


# ============================================================================
# Conflicts (409)
# ============================================================================


class Conflict(ServiceError):
    """Raised when a write conflicts with existing data."""

    http_status_code = 409


class DuplicateName(Conflict):
    """Raised when a unique name is already taken.

    Example:
        >>> raise DuplicateName("Ingredient", "Flour")
        DuplicateName: Ingredient name 'Flour' already exists
    """

    def __init__(self, entity: str, name: str):
        self.entity = entity
        self.name = name
        super().__init__(f"{entity} name '{name}' already exists")


class _InUse(Conflict):
    """Shared formatting for delete-while-referenced conflicts."""

    entity = "record"

    def __init__(self, identifier, dependencies: Dict[str, int]):
        self.identifier = identifier
        self.dependencies = dependencies
        details = ", ".join(
            f"{count} {name}" for name, count in dependencies.items() if count > 0
        )
        super().__init__(f"Cannot delete {self.entity} {identifier}: used in {details}")


class IngredientInUse(_InUse):
    """Raised when deleting an ingredient still used by recipe lines.

    Example:
        >>> raise IngredientInUse(7, {"recipes": 2})
        IngredientInUse: Cannot delete ingredient 7: used in 2 recipes
    """

    entity = "ingredient"


class RecipeInUse(_InUse):
    """Raised when deleting a recipe still referenced by products or production records."""

    entity = "recipe"


class ProductInUse(_InUse):
    """Raised when deleting a product that has recorded sales."""

    entity = "product"


class TransactionFailure(ServiceError):
    """Raised when a ledger transaction lost a commit race.

    The row read for the feasibility check was changed by another
    transaction before this one committed. Nothing was persisted; the
    caller may retry.
    """

    http_status_code = 409
    retryable = True

    def __init__(self, operation: str, original_error: Optional[Exception] = None):
        self.operation = operation
        self.original_error = original_error
        super().__init__(f"{operation} lost a concurrent update; retry the operation")


# ============================================================================
# Infrastructure (500)
# ============================================================================


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
