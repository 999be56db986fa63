"""
Recipe Service - Recipe management.

This service provides:
- CRUD operations for recipes and their ordered ingredient lines
- Write-time checking that every referenced ingredient exists
- Listing with search, "can make" filtering, sorting and pagination
- Recipe duplication
- Recipes makeable from current stock

``prepared_quantity`` is never written here; see production_service and
sale_service.
"""

from contextlib import nullcontext
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from restaurant_pos.models import Ingredient, Product, ProductionRecord, Recipe, RecipeIngredient
from restaurant_pos.services import costing_service
from restaurant_pos.services.database import session_scope
from restaurant_pos.services.dto import PaginatedResult, PaginationParams
from restaurant_pos.services.exceptions import (
    DatabaseError,
    DuplicateName,
    RecipeInUse,
    RecipeNotFound,
    TransactionFailure,
    ValidationError,
)
from restaurant_pos.services.listing import apply_sort, paginate
from restaurant_pos.services.logging_utils import get_service_logger, log_operation
from restaurant_pos.utils.constants import RECIPE_COPY_SUFFIX
from restaurant_pos.utils.validators import validate_recipe_data

logger = get_service_logger(__name__)


# ============================================================================
# Helpers
# ============================================================================


def _ensure_unique_name(session, name: str, exclude_id: Optional[int] = None) -> None:
    query = session.query(Recipe.id).filter(Recipe.name == name)
    if exclude_id is not None:
        query = query.filter(Recipe.id != exclude_id)
    if query.first() is not None:
        raise DuplicateName("Recipe", name)


def _build_lines(session, lines: List[Dict[str, Any]]) -> List[RecipeIngredient]:
    """Turn line payloads into RecipeIngredient rows, rejecting unknown ingredients."""
    ids = [line["ingredient_id"] for line in lines]
    found = {
        row.id
        for row in session.query(Ingredient.id).filter(Ingredient.id.in_(ids)).all()
    } if ids else set()
    missing = [ingredient_id for ingredient_id in ids if ingredient_id not in found]
    if missing:
        raise ValidationError(
            [f"Ingredients not found: {', '.join(str(i) for i in missing)}"]
        )

    return [
        RecipeIngredient(
            ingredient_id=line["ingredient_id"],
            quantity=float(line["quantity"]),
            position=position,
        )
        for position, line in enumerate(lines)
    ]


def _load(session, recipe_id: int) -> Recipe:
    recipe = session.query(Recipe).filter_by(id=recipe_id).first()
    if not recipe:
        raise RecipeNotFound(recipe_id)
    return recipe


# ============================================================================
# CRUD Operations
# ============================================================================


def create_recipe(data: Dict, session=None) -> Recipe:
    """
    Create a new recipe.

    Args:
        data: Dictionary with:
            - name (required, unique)
            - instructions (optional)
            - preparation_time (optional, minutes)
            - image (optional)
            - ingredients: list of {"ingredient_id": int, "quantity": float},
              quantity per ONE portion
        session: Optional database session

    Returns:
        Created Recipe with ingredient lines loaded

    Raises:
        ValidationError: If data is invalid or an ingredient doesn't exist
        DuplicateName: If the name is taken
        DatabaseError: If database operation fails
    """
    is_valid, errors = validate_recipe_data(data)
    if not is_valid:
        raise ValidationError(errors)

    name = data["name"].strip()

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            _ensure_unique_name(session, name)

            recipe = Recipe(
                name=name,
                instructions=data.get("instructions") or "",
                preparation_time=int(data.get("preparation_time") or 0),
                image=data.get("image"),
                prepared_quantity=0.0,
            )
            recipe.recipe_ingredients = _build_lines(session, data.get("ingredients") or [])

            session.add(recipe)
            session.flush()
            session.refresh(recipe)

            log_operation(
                logger,
                operation="create_recipe",
                outcome="success",
                recipe_id=recipe.id,
                line_count=len(recipe.recipe_ingredients),
            )
            return recipe

    except IntegrityError as e:
        if "UNIQUE" in str(e.orig).upper():
            raise DuplicateName("Recipe", name)
        raise DatabaseError("Failed to create recipe", e)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create recipe", e)


def get_recipe(recipe_id: int, session=None) -> Recipe:
    """
    Retrieve a recipe by ID, with ingredient lines loaded.

    Raises:
        RecipeNotFound: If recipe doesn't exist
        DatabaseError: If database operation fails
    """
    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            return _load(session, recipe_id)

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to retrieve recipe {recipe_id}", e)


def get_recipe_details(recipe_id: int) -> Dict[str, Any]:
    """
    Recipe as a dict with derived can_make, max_portions and cost.

    Raises:
        RecipeNotFound: If recipe doesn't exist
    """
    with session_scope() as session:
        return costing_service.recipe_details(_load(session, recipe_id))


def list_recipes(
    search: Optional[str] = None,
    can_make: bool = False,
    sort_by: str = "name",
    sort_order: str = "asc",
    pagination: Optional[PaginationParams] = None,
) -> PaginatedResult:
    """
    List recipes with derived fields.

    Args:
        search: Case-insensitive partial match on name
        can_make: Only recipes makeable from current stock. Applied before
            paging, so pages and totals reflect the filtered set.
        sort_by: One of the recipe sortable fields
        sort_order: "asc" or "desc"
        pagination: Page to fetch; None returns everything

    Returns:
        PaginatedResult of recipe detail dicts

    Raises:
        ValidationError: If the sort field or order is not allowed
        DatabaseError: If database operation fails
    """
    try:
        with session_scope() as session:
            query = session.query(Recipe)
            if search:
                query = query.filter(Recipe.name.ilike(f"%{search}%"))
            query = apply_sort(query, Recipe, "recipe", sort_by, sort_order)

            if not can_make:
                page = paginate(query, pagination)
                page.items = [costing_service.recipe_details(r) for r in page.items]
                return page

            makeable = [r for r in query.all() if costing_service.can_make(r)]
            if pagination is None:
                items, page_number, per_page = makeable, 1, len(makeable) or 1
            else:
                start = pagination.offset()
                items = makeable[start:start + pagination.per_page]
                page_number, per_page = pagination.page, pagination.per_page
            return PaginatedResult(
                items=[costing_service.recipe_details(r) for r in items],
                total=len(makeable),
                page=page_number,
                per_page=per_page,
            )

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to retrieve recipes", e)


def update_recipe(recipe_id: int, data: Dict, session=None) -> Recipe:
    """
    Update a recipe.

    When ``ingredients`` is supplied it replaces the whole line list.

    Args:
        recipe_id: Recipe ID
        data: Fields to update (name, instructions, preparation_time, image,
            ingredients)
        session: Optional database session

    Returns:
        Updated Recipe

    Raises:
        RecipeNotFound: If recipe doesn't exist
        ValidationError: If data is invalid or an ingredient doesn't exist
        DuplicateName: If the new name is taken
        TransactionFailure: If the recipe changed concurrently
        DatabaseError: If database operation fails
    """
    is_valid, errors = validate_recipe_data(data, partial=True)
    if not is_valid:
        raise ValidationError(errors)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            recipe = _load(session, recipe_id)

            if "name" in data:
                name = data["name"].strip()
                _ensure_unique_name(session, name, exclude_id=recipe_id)
                recipe.name = name
            if "instructions" in data:
                recipe.instructions = data["instructions"] or ""
            if "preparation_time" in data:
                recipe.preparation_time = int(data["preparation_time"] or 0)
            if "image" in data:
                recipe.image = data["image"]
            if data.get("ingredients") is not None:
                new_lines = _build_lines(session, data["ingredients"])
                recipe.recipe_ingredients.clear()
                session.flush()
                recipe.recipe_ingredients.extend(new_lines)

            session.flush()
            session.refresh(recipe)
            return recipe

    except StaleDataError as e:
        raise TransactionFailure("update_recipe", e)
    except IntegrityError as e:
        raise DatabaseError(f"Failed to update recipe {recipe_id}", e)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update recipe {recipe_id}", e)


def delete_recipe(recipe_id: int) -> bool:
    """
    Delete a recipe that no product or production record references.

    Returns:
        True if deleted

    Raises:
        RecipeNotFound: If recipe doesn't exist
        RecipeInUse: If products or production records reference it
        DatabaseError: If database operation fails
    """
    try:
        with session_scope() as session:
            recipe = _load(session, recipe_id)

            dependencies = {
                "products": session.query(Product).filter(Product.recipe_id == recipe_id).count(),
                "production records": (
                    session.query(ProductionRecord)
                    .filter(ProductionRecord.recipe_id == recipe_id)
                    .count()
                ),
            }
            if any(dependencies.values()):
                raise RecipeInUse(recipe_id, dependencies)

            session.delete(recipe)
            log_operation(logger, operation="delete_recipe", outcome="success", recipe_id=recipe_id)
            return True

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete recipe {recipe_id}", e)


def duplicate_recipe(recipe_id: int) -> Recipe:
    """
    Copy a recipe under the name "<name> (Copy)".

    The copy keeps instructions, preparation time, image and ingredient
    lines; its prepared quantity starts at 0.

    Raises:
        RecipeNotFound: If recipe doesn't exist
        DuplicateName: If the copy's name is taken
        ValidationError: If the copy's name would be too long
    """
    with session_scope() as session:
        original = _load(session, recipe_id)
        data = {
            "name": f"{original.name}{RECIPE_COPY_SUFFIX}",
            "instructions": original.instructions,
            "preparation_time": original.preparation_time,
            "image": original.image,
            "ingredients": [
                {"ingredient_id": line.ingredient_id, "quantity": line.quantity}
                for line in original.recipe_ingredients
            ],
        }
        return create_recipe(data, session=session)


def get_available_recipes() -> List[Dict[str, Any]]:
    """
    Recipes makeable from current stock, ordered by name, with derived fields.

    Raises:
        DatabaseError: If database operation fails
    """
    try:
        with session_scope() as session:
            recipes = session.query(Recipe).order_by(Recipe.name).all()
            return [
                costing_service.recipe_details(recipe)
                for recipe in recipes
                if costing_service.can_make(recipe)
            ]
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to retrieve available recipes", e)
