"""Services package - Business logic layer for Restaurant POS.

Architecture:
- Services: Stateless functions organized by domain
- Transactions: Managed via session_scope() context manager, or a
  caller-supplied session passed as ``session=``
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Input validation before database operations

Service Modules:
- ingredient_service: Ingredient store CRUD and restocking
- recipe_service: Recipe management
- costing_service: Derived feasibility, capacity and cost (pure functions)
- production_service: Production ledger (prepare_recipe)
- product_service: Products, capacity, bulk pricing and product analytics
- sale_service: Sale ledger (sell_product, refund_sale)
- analytics_service: Dashboard, reports and best sellers

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- dto: Pagination and bulk result containers
- listing: Shared sorting and pagination
- logging_utils: Structured operation logging

Service modules are imported directly (``from restaurant_pos.services import
sale_service``); only the exceptions are re-exported here.
"""

from .exceptions import (
    ServiceError,
    NotFound,
    IngredientNotFound,
    RecipeNotFound,
    ProductNotFound,
    SaleNotFound,
    ProductionRecordNotFound,
    ValidationError,
    InsufficientStock,
    InvalidState,
    Conflict,
    DuplicateName,
    IngredientInUse,
    RecipeInUse,
    ProductInUse,
    TransactionFailure,
    DatabaseError,
)

__all__ = [
    "ServiceError",
    "NotFound",
    "IngredientNotFound",
    "RecipeNotFound",
    "ProductNotFound",
    "SaleNotFound",
    "ProductionRecordNotFound",
    "ValidationError",
    "InsufficientStock",
    "InvalidState",
    "Conflict",
    "DuplicateName",
    "IngredientInUse",
    "RecipeInUse",
    "ProductInUse",
    "TransactionFailure",
    "DatabaseError",
]
