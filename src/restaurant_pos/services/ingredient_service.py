"""
Ingredient Service - Ingredient store management.

This service provides:
- CRUD operations with validation and unique names
- Search, low-stock filtering, sorting and pagination
- Restocking (the only stock increase outside of creation)
- Dependency checking before deletion
- Bulk updates with per-item results

Stock decreases happen only in production_service.prepare_recipe.
"""

from contextlib import nullcontext
import logging
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from restaurant_pos.models import Ingredient, RecipeIngredient
from restaurant_pos.services.database import is_concurrency_conflict, session_scope
from restaurant_pos.services.dto import BulkItemResult, PaginatedResult, PaginationParams
from restaurant_pos.services.exceptions import (
    DatabaseError,
    DuplicateName,
    IngredientInUse,
    IngredientNotFound,
    ServiceError,
    TransactionFailure,
    ValidationError,
)
from restaurant_pos.services.listing import apply_sort, paginate
from restaurant_pos.services.logging_utils import get_service_logger, log_operation
from restaurant_pos.utils.validators import require_positive_quantity, validate_ingredient_data

logger = get_service_logger(__name__)


def _ensure_unique_name(session, name: str, exclude_id: Optional[int] = None) -> None:
    query = session.query(Ingredient.id).filter(Ingredient.name == name)
    if exclude_id is not None:
        query = query.filter(Ingredient.id != exclude_id)
    if query.first() is not None:
        raise DuplicateName("Ingredient", name)


def _load(session, ingredient_id: int) -> Ingredient:
    ingredient = session.query(Ingredient).filter_by(id=ingredient_id).first()
    if not ingredient:
        raise IngredientNotFound(ingredient_id)
    return ingredient


def _integrity_error(e: IntegrityError, name: Optional[str], action: str) -> ServiceError:
    if "UNIQUE" in str(e.orig).upper() and name is not None:
        return DuplicateName("Ingredient", name)
    return DatabaseError(f"Failed to {action} ingredient", e)


# ============================================================================
# CRUD Operations
# ============================================================================


def create_ingredient(data: Dict, session=None) -> Ingredient:
    """
    Create a new ingredient.

    Args:
        data: Dictionary with name, quantity, unit and optional
            min_threshold and cost_per_unit
        session: Optional database session

    Returns:
        Created Ingredient instance

    Raises:
        ValidationError: If data validation fails
        DuplicateName: If the name is taken
        DatabaseError: If database operation fails
    """
    is_valid, errors = validate_ingredient_data(data)
    if not is_valid:
        raise ValidationError(errors)

    name = data["name"].strip()

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            _ensure_unique_name(session, name)

            ingredient = Ingredient(
                name=name,
                quantity=float(data["quantity"]),
                unit=data["unit"].strip(),
                min_threshold=float(data.get("min_threshold") or 0.0),
                cost_per_unit=float(data.get("cost_per_unit") or 0.0),
            )
            session.add(ingredient)
            session.flush()
            session.refresh(ingredient)

            log_operation(
                logger,
                operation="create_ingredient",
                outcome="success",
                level=logging.DEBUG,
                ingredient_id=ingredient.id,
            )
            return ingredient

    except IntegrityError as e:
        raise _integrity_error(e, name, "create")
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create ingredient", e)


def get_ingredient(ingredient_id: int, session=None) -> Ingredient:
    """
    Retrieve an ingredient by ID.

    Raises:
        IngredientNotFound: If ingredient doesn't exist
        DatabaseError: If database operation fails
    """
    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            return _load(session, ingredient_id)

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to retrieve ingredient {ingredient_id}", e)


def list_ingredients(
    search: Optional[str] = None,
    low_stock: bool = False,
    sort_by: str = "name",
    sort_order: str = "asc",
    pagination: Optional[PaginationParams] = None,
) -> PaginatedResult:
    """
    List ingredients with optional filtering, sorting and pagination.

    Args:
        search: Case-insensitive partial match on name or unit
        low_stock: Only ingredients with quantity <= min_threshold
        sort_by: One of the ingredient sortable fields
        sort_order: "asc" or "desc"
        pagination: Page to fetch; None returns everything

    Returns:
        PaginatedResult[Ingredient]

    Raises:
        ValidationError: If the sort field or order is not allowed
        DatabaseError: If database operation fails
    """
    try:
        with session_scope() as session:
            query = session.query(Ingredient)

            if search:
                query = query.filter(
                    or_(
                        Ingredient.name.ilike(f"%{search}%"),
                        Ingredient.unit.ilike(f"%{search}%"),
                    )
                )

            if low_stock:
                query = query.filter(Ingredient.quantity <= Ingredient.min_threshold)

            query = apply_sort(query, Ingredient, "ingredient", sort_by, sort_order)
            return paginate(query, pagination)

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to retrieve ingredients", e)


def update_ingredient(ingredient_id: int, data: Dict, session=None) -> Ingredient:
    """
    Update an ingredient's descriptive fields.

    ``quantity`` cannot be set here; use restock_ingredient.

    Args:
        ingredient_id: Ingredient ID
        data: Fields to update (name, unit, min_threshold, cost_per_unit)
        session: Optional database session

    Returns:
        Updated Ingredient instance

    Raises:
        IngredientNotFound: If ingredient doesn't exist
        ValidationError: If data validation fails
        DuplicateName: If the new name is taken
        TransactionFailure: If the row changed concurrently
        DatabaseError: If database operation fails
    """
    is_valid, errors = validate_ingredient_data(data, partial=True)
    if not is_valid:
        raise ValidationError(errors)

    name = data["name"].strip() if "name" in data else None

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            ingredient = _load(session, ingredient_id)

            if name is not None:
                _ensure_unique_name(session, name, exclude_id=ingredient_id)
                ingredient.name = name
            if "unit" in data:
                ingredient.unit = data["unit"].strip()
            if "min_threshold" in data:
                ingredient.min_threshold = float(data["min_threshold"] or 0.0)
            if "cost_per_unit" in data:
                ingredient.cost_per_unit = float(data["cost_per_unit"] or 0.0)

            session.flush()
            return ingredient

    except StaleDataError as e:
        raise TransactionFailure("update_ingredient", e)
    except IntegrityError as e:
        raise _integrity_error(e, name, "update")
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update ingredient {ingredient_id}", e)


def delete_ingredient(ingredient_id: int) -> bool:
    """
    Delete an ingredient that no recipe uses.

    Returns:
        True if deleted

    Raises:
        IngredientNotFound: If ingredient doesn't exist
        IngredientInUse: If recipe lines reference the ingredient
        DatabaseError: If database operation fails
    """
    try:
        with session_scope() as session:
            ingredient = _load(session, ingredient_id)

            recipe_count = (
                session.query(RecipeIngredient.recipe_id)
                .filter(RecipeIngredient.ingredient_id == ingredient_id)
                .distinct()
                .count()
            )
            if recipe_count > 0:
                raise IngredientInUse(ingredient_id, {"recipes": recipe_count})

            session.delete(ingredient)
            return True

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete ingredient {ingredient_id}", e)


# ============================================================================
# Stock
# ============================================================================


def restock_ingredient(ingredient_id: int, amount, session=None) -> Dict:
    """
    Add stock to an ingredient.

    Args:
        ingredient_id: Ingredient ID
        amount: Amount to add, in the ingredient's unit (> 0)
        session: Optional database session

    Returns:
        Dict with ingredient (dict), amount and message

    Raises:
        ValidationError: If amount is not a number
        InvalidState: If amount is zero or negative
        IngredientNotFound: If ingredient doesn't exist
        TransactionFailure: If the row changed concurrently
    """
    amount = require_positive_quantity(amount, "Amount")

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            ingredient = _load(session, ingredient_id)
            ingredient.quantity = ingredient.quantity + amount
            session.flush()

            result = {
                "ingredient": ingredient.to_dict(),
                "amount": amount,
                "message": (
                    f"Successfully restocked {amount:g} {ingredient.unit} of {ingredient.name}"
                ),
            }

        log_operation(
            logger,
            operation="restock_ingredient",
            outcome="success",
            ingredient_id=ingredient_id,
            amount=amount,
        )
        return result

    except SQLAlchemyError as e:
        if not is_concurrency_conflict(e):
            raise DatabaseError(f"Failed to restock ingredient {ingredient_id}", e)
        log_operation(
            logger,
            operation="restock_ingredient",
            outcome="transaction_failed",
            level=logging.WARNING,
            ingredient_id=ingredient_id,
            error=str(e),
        )
        raise TransactionFailure("restock_ingredient", e)


def get_low_stock_ingredients() -> List[Ingredient]:
    """
    Ingredients at or below their minimum threshold, ordered by name.

    Raises:
        DatabaseError: If database operation fails
    """
    try:
        with session_scope() as session:
            return (
                session.query(Ingredient)
                .filter(Ingredient.quantity <= Ingredient.min_threshold)
                .order_by(Ingredient.name)
                .all()
            )
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to retrieve low stock ingredients", e)


# ============================================================================
# Bulk Operations
# ============================================================================


def bulk_update_ingredients(updates: List[Dict]) -> List[BulkItemResult]:
    """
    Apply several ingredient updates, each in its own transaction.

    A failing item is reported in its result and does not stop the others.

    Args:
        updates: List of {"id": ingredient_id, "data": {...fields...}}

    Returns:
        One BulkItemResult per input item, in input order

    Raises:
        ValidationError: If updates is not a list
    """
    if not isinstance(updates, list):
        raise ValidationError(["Updates must be a list"])

    results = []
    for update in updates:
        item_id = update.get("id") if isinstance(update, dict) else None
        try:
            if item_id is None:
                raise ValidationError(["Each update needs an id"])
            data = update.get("data")
            ingredient = update_ingredient(item_id, {} if data is None else data)
            results.append(BulkItemResult(id=item_id, success=True, data=ingredient.to_dict()))
        except ServiceError as e:
            results.append(BulkItemResult(id=item_id, success=False, error=str(e)))

    log_operation(
        logger,
        operation="bulk_update_ingredients",
        outcome="complete",
        total=len(results),
        failed=sum(1 for r in results if not r.success),
    )
    return results
