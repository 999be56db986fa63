"""
Production Service - Recipe preparation with atomic stock deduction.

This module provides the production ledger:
- prepare_recipe: turn ingredient stock into prepared portions
- check_can_prepare: dry run of the same feasibility check
- Production history queries

Every successful prepare writes, in one transaction:
1. A ProductionRecord
2. Ingredient deductions of line quantity × portions
3. An increment of the recipe's prepared_quantity

Feasibility is computed from rows read inside that transaction. Ingredient
and recipe rows are version-counted, so if another transaction changes one
of them before commit, the flush fails with StaleDataError and nothing is
persisted.
"""

from contextlib import nullcontext
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from restaurant_pos.models import ProductionRecord, Recipe
from restaurant_pos.services import costing_service
from restaurant_pos.services.database import is_concurrency_conflict, session_scope
from restaurant_pos.services.dto import PaginatedResult, PaginationParams
from restaurant_pos.services.exceptions import (
    DatabaseError,
    InsufficientStock,
    ProductionRecordNotFound,
    RecipeNotFound,
    TransactionFailure,
    ValidationError,
)
from restaurant_pos.services.listing import paginate
from restaurant_pos.services.logging_utils import get_service_logger, log_operation
from restaurant_pos.utils.constants import PRODUCTION_HISTORY_PAGE_SIZE, STOCK_EPSILON
from restaurant_pos.utils.validators import require_positive_quantity, validate_notes

logger = get_service_logger(__name__)


def _load_recipe(session, recipe_id: int) -> Recipe:
    recipe = session.query(Recipe).filter_by(id=recipe_id).first()
    if not recipe:
        raise RecipeNotFound(recipe_id)
    return recipe


def check_can_prepare(recipe_id: int, quantity, session=None) -> Dict[str, Any]:
    """
    Check whether a quantity of a recipe can be prepared, without changing anything.

    Args:
        recipe_id: ID of recipe to check
        quantity: Portions requested
        session: Optional database session

    Returns:
        Dict with keys:
        - "can_prepare": bool
        - "max_portions": float, unrounded
        - "missing": list of {ingredient_id, ingredient_name, needed, available, unit}

    Raises:
        ValidationError: If quantity is not a number
        InvalidState: If quantity is zero or negative
        RecipeNotFound: If recipe doesn't exist
    """
    quantity = require_positive_quantity(quantity)

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        recipe = _load_recipe(session, recipe_id)
        portions = costing_service.max_portions(recipe)
        return {
            "recipe_id": recipe.id,
            "recipe_name": recipe.name,
            "quantity": quantity,
            "can_prepare": quantity <= portions,
            "max_portions": portions,
            "missing": costing_service.missing_ingredients(recipe, quantity),
        }


def prepare_recipe(recipe_id: int, quantity, notes: str = "", session=None) -> Dict[str, Any]:
    """
    Prepare portions of a recipe, consuming ingredient stock.

    Args:
        recipe_id: ID of recipe to prepare
        quantity: Portions to prepare (> 0, may be fractional)
        notes: Optional production notes
        session: Optional database session. When given, the caller owns the
            transaction and must roll back on error.

    Returns:
        Dict with keys:
        - "production_id": int
        - "recipe_id": int
        - "recipe_name": str
        - "quantity": float
        - "prepared_quantity": float, after the increment
        - "consumed": list of {ingredient_id, ingredient_name, quantity, unit, remaining}
        - "cost": unit cost × quantity

    Raises:
        ValidationError: If quantity is not a number or notes are too long
        InvalidState: If quantity is zero or negative
        RecipeNotFound: If recipe doesn't exist
        InsufficientStock: If quantity exceeds the maximum portions
        TransactionFailure: If a touched row changed concurrently
        DatabaseError: If database operation fails
    """
    quantity = require_positive_quantity(quantity)
    is_valid, error = validate_notes(notes)
    if not is_valid:
        raise ValidationError([error])

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            recipe = _load_recipe(session, recipe_id)

            available = costing_service.max_portions(recipe)
            if quantity > available:
                log_operation(
                    logger,
                    operation="prepare_recipe",
                    outcome="insufficient_stock",
                    level=logging.WARNING,
                    recipe_id=recipe_id,
                    quantity=quantity,
                    max_portions=available,
                )
                raise InsufficientStock(recipe.name, quantity, available)

            consumed = []
            for line in recipe.recipe_ingredients:
                ingredient = line.ingredient
                needed = line.quantity * quantity
                remaining = ingredient.quantity - needed
                if remaining < 0:
                    if remaining < -STOCK_EPSILON:
                        raise InsufficientStock(ingredient.name, needed, ingredient.quantity)
                    remaining = 0.0
                elif remaining < STOCK_EPSILON:
                    remaining = 0.0
                ingredient.quantity = remaining
                consumed.append(
                    {
                        "ingredient_id": ingredient.id,
                        "ingredient_name": ingredient.name,
                        "quantity": needed,
                        "unit": ingredient.unit,
                        "remaining": remaining,
                    }
                )

            record = ProductionRecord(recipe_id=recipe.id, quantity=quantity, notes=notes or "")
            session.add(record)
            recipe.prepared_quantity = (recipe.prepared_quantity or 0.0) + quantity

            session.flush()

            result = {
                "production_id": record.id,
                "recipe_id": recipe.id,
                "recipe_name": recipe.name,
                "quantity": quantity,
                "prepared_quantity": recipe.prepared_quantity,
                "consumed": consumed,
                "cost": costing_service.calculate_cost(recipe) * quantity,
            }

        log_operation(
            logger,
            operation="prepare_recipe",
            outcome="success",
            production_id=result["production_id"],
            recipe_id=recipe_id,
            quantity=quantity,
            prepared_quantity=result["prepared_quantity"],
        )
        return result

    except SQLAlchemyError as e:
        if not is_concurrency_conflict(e):
            raise DatabaseError(f"Failed to prepare recipe {recipe_id}", e)
        log_operation(
            logger,
            operation="prepare_recipe",
            outcome="transaction_failed",
            level=logging.WARNING,
            recipe_id=recipe_id,
            quantity=quantity,
            error=str(e),
        )
        raise TransactionFailure("prepare_recipe", e)


# ============================================================================
# History
# ============================================================================


def get_production_history(
    recipe_id: int, pagination: Optional[PaginationParams] = None
) -> PaginatedResult:
    """
    Production records for one recipe, newest first.

    Args:
        recipe_id: Recipe ID
        pagination: Page to fetch; defaults to the first page of 20

    Returns:
        PaginatedResult of production record dicts (with recipe_name)

    Raises:
        RecipeNotFound: If recipe doesn't exist
        DatabaseError: If database operation fails
    """
    if pagination is None:
        pagination = PaginationParams(page=1, per_page=PRODUCTION_HISTORY_PAGE_SIZE)

    try:
        with session_scope() as session:
            _load_recipe(session, recipe_id)
            query = (
                session.query(ProductionRecord)
                .filter(ProductionRecord.recipe_id == recipe_id)
                .order_by(ProductionRecord.created_at.desc(), ProductionRecord.id.desc())
            )
            page = paginate(query, pagination)
            page.items = [record.to_dict(include_relationships=True) for record in page.items]
            return page

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to retrieve production history for recipe {recipe_id}", e)


def get_production_record(production_id: int) -> Dict[str, Any]:
    """
    Retrieve a single production record.

    Raises:
        ProductionRecordNotFound: If the record doesn't exist
    """
    with session_scope() as session:
        record = session.query(ProductionRecord).filter_by(id=production_id).first()
        if not record:
            raise ProductionRecordNotFound(production_id)
        return record.to_dict(include_relationships=True)
