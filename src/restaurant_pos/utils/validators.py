"""
Input validation functions for Restaurant POS.

This module provides validation functions for all service inputs including:
- Numeric validation (positive, non-negative, integer)
- String validation (length, required fields)
- Entity payload validation (ingredient, recipe, product)
- Ledger quantity checks used by prepare, sell and restock

Payload validators return ``(is_valid, errors)``; services raise
``ValidationError(errors)`` when ``is_valid`` is False.
"""

import math
from typing import Any, Dict, List, Optional, Tuple

from restaurant_pos.services.exceptions import InvalidState, ValidationError

from .constants import (
    MAX_IMAGE_LENGTH,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_UNIT_LENGTH,
    ERROR_REQUIRED_FIELD,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_INTEGER,
    ERROR_INVALID_POSITIVE,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_BOOLEAN,
    ERROR_PROTECTED_FIELD,
    ERROR_INVALID_PAYLOAD,
)


def is_number(value: Any) -> bool:
    """True for finite int/float values (bool excluded) and finite numeric strings."""
    if isinstance(value, bool) or value is None:
        return False
    try:
        return math.isfinite(float(value))
    except (ValueError, TypeError, OverflowError):
        return False


def validate_required_string(value: Optional[str], field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a string field is not empty.

    Args:
        value: The string value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None or not isinstance(value, str) or value.strip() == "":
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""


def validate_string_length(
    value: Optional[str], max_length: int, field_name: str = "Field"
) -> Tuple[bool, str]:
    """
    Validate that a string doesn't exceed maximum length.

    Args:
        value: The string value to validate
        max_length: Maximum allowed length
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value and len(value) > max_length:
        return False, f"{field_name}: Must be {max_length} characters or less"
    return True, ""


def validate_positive_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a positive number (> 0).

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not is_number(value):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if float(value) <= 0:
        return False, f"{field_name}: {ERROR_INVALID_POSITIVE}"
    return True, ""


def validate_non_negative_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a non-negative number (>= 0).

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not is_number(value):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if float(value) < 0:
        return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE}"
    return True, ""


def validate_non_negative_integer(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """Validate that a value is a whole number >= 0."""
    if not is_number(value):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if float(value) != int(float(value)):
        return False, f"{field_name}: {ERROR_INVALID_INTEGER}"
    if float(value) < 0:
        return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE}"
    return True, ""


def _check(errors: List[str], result: Tuple[bool, str]) -> None:
    is_valid, message = result
    if not is_valid:
        errors.append(message)


def _require_mapping(data: Any) -> List[str]:
    return [] if isinstance(data, dict) else [ERROR_INVALID_PAYLOAD]


def _reject_protected(data: Dict, fields: List[str], errors: List[str]) -> None:
    for field_name in fields:
        if field_name in data:
            errors.append(f"{field_name}: {ERROR_PROTECTED_FIELD}")


# ============================================================================
# Entity payloads
# ============================================================================


def validate_ingredient_data(data: Dict, partial: bool = False) -> Tuple[bool, List[str]]:
    """
    Validate ingredient data.

    Args:
        data: Ingredient fields
        partial: True for updates, where only supplied fields are checked and
            ``quantity`` may not be supplied (stock changes go through restock)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = _require_mapping(data)
    if errors:
        return False, errors

    if not partial or "name" in data:
        _check(errors, validate_required_string(data.get("name"), "Name"))
        _check(errors, validate_string_length(data.get("name"), MAX_NAME_LENGTH, "Name"))

    if not partial or "unit" in data:
        _check(errors, validate_required_string(data.get("unit"), "Unit"))
        _check(errors, validate_string_length(data.get("unit"), MAX_UNIT_LENGTH, "Unit"))

    if partial:
        _reject_protected(data, ["quantity"], errors)
    else:
        _check(errors, validate_non_negative_number(data.get("quantity"), "Quantity"))

    for key, label in (("min_threshold", "Minimum threshold"), ("cost_per_unit", "Cost per unit")):
        if data.get(key) is not None:
            _check(errors, validate_non_negative_number(data[key], label))

    return len(errors) == 0, errors


def validate_recipe_data(data: Dict, partial: bool = False) -> Tuple[bool, List[str]]:
    """
    Validate recipe data.

    Ingredient lines must each name an ingredient and a positive
    per-portion quantity; an ingredient may appear only once per recipe.

    Args:
        data: Recipe fields, with ``ingredients`` as a list of
            ``{"ingredient_id": int, "quantity": float}``
        partial: True for updates

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = _require_mapping(data)
    if errors:
        return False, errors

    if not partial or "name" in data:
        _check(errors, validate_required_string(data.get("name"), "Name"))
        _check(errors, validate_string_length(data.get("name"), MAX_NAME_LENGTH, "Name"))

    if data.get("preparation_time") is not None:
        _check(errors, validate_non_negative_integer(data["preparation_time"], "Preparation time"))

    if data.get("image") is not None:
        _check(errors, validate_string_length(data["image"], MAX_IMAGE_LENGTH, "Image"))

    if partial:
        _reject_protected(data, ["prepared_quantity"], errors)

    lines = data.get("ingredients")
    if lines is not None:
        if not isinstance(lines, list):
            errors.append("Ingredients: Must be a list")
        else:
            seen = set()
            for index, line in enumerate(lines, start=1):
                label = f"Ingredient line {index}"
                if not isinstance(line, dict) or line.get("ingredient_id") is None:
                    errors.append(f"{label}: ingredient_id {ERROR_REQUIRED_FIELD.lower()}")
                    continue
                _check(errors, validate_positive_number(line.get("quantity"), f"{label} quantity"))
                if line["ingredient_id"] in seen:
                    errors.append(f"{label}: ingredient {line['ingredient_id']} listed twice")
                seen.add(line["ingredient_id"])

    return len(errors) == 0, errors


def validate_product_data(data: Dict, partial: bool = False) -> Tuple[bool, List[str]]:
    """
    Validate product data.

    Args:
        data: Product fields (recipe_id, name, price, is_active)
        partial: True for updates

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = _require_mapping(data)
    if errors:
        return False, errors

    if not partial or "name" in data:
        _check(errors, validate_required_string(data.get("name"), "Name"))
        _check(errors, validate_string_length(data.get("name"), MAX_NAME_LENGTH, "Name"))

    if not partial or "recipe_id" in data:
        if data.get("recipe_id") is None:
            errors.append(f"Recipe: {ERROR_REQUIRED_FIELD}")

    if not partial or "price" in data:
        _check(errors, validate_non_negative_number(data.get("price"), "Price"))

    if "is_active" in data and not isinstance(data["is_active"], bool):
        errors.append(f"Active: {ERROR_INVALID_BOOLEAN}")

    return len(errors) == 0, errors


def validate_notes(notes: Optional[str]) -> Tuple[bool, str]:
    """Notes are optional but bounded."""
    return validate_string_length(notes, MAX_NOTES_LENGTH, "Notes")


# ============================================================================
# Ledger quantities
# ============================================================================


def require_positive_quantity(value: Any, field_name: str = "Quantity", integer: bool = False):
    """
    Check a ledger quantity and return it as a number.

    Malformed values are a ``ValidationError``; zero or negative values are
    an ``InvalidState``.

    Args:
        value: Requested quantity
        field_name: Name used in error messages
        integer: Require a whole number (sales)

    Returns:
        float, or int when ``integer`` is True

    Raises:
        ValidationError: If value is not a number (or not whole when required)
        InvalidState: If value is zero or negative
    """
    if not is_number(value):
        raise ValidationError([f"{field_name}: {ERROR_INVALID_NUMBER}"])

    number = float(value)
    if integer and number != int(number):
        raise ValidationError([f"{field_name}: {ERROR_INVALID_INTEGER}"])
    if number <= 0:
        raise InvalidState(f"{field_name} must be greater than zero", quantity=value)

    return int(number) if integer else number
