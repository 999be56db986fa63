"""
Sale Service - Point-of-sale ledger.

This module provides:
- sell_product: record a sale, consuming prepared portions
- refund_sale: delete a sale, restoring its prepared portions
- Sale queries and limited edits

A sale and the matching change to the recipe's prepared_quantity are
always written in the same transaction. Ingredient stock is never touched
here; it was consumed when the portions were prepared.
"""

from contextlib import nullcontext
from datetime import datetime
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from restaurant_pos.models import Product, Sale
from restaurant_pos.services import costing_service
from restaurant_pos.services.database import is_concurrency_conflict, session_scope
from restaurant_pos.services.dto import PaginatedResult, PaginationParams
from restaurant_pos.services.exceptions import (
    DatabaseError,
    InsufficientStock,
    InvalidState,
    SaleNotFound,
    TransactionFailure,
    ValidationError,
)
from restaurant_pos.services.listing import apply_sort, paginate
from restaurant_pos.services.logging_utils import get_service_logger, log_operation
from restaurant_pos.utils.constants import STOCK_EPSILON
from restaurant_pos.utils.datetime_utils import end_of_day, parse_date, start_of_day, utc_now
from restaurant_pos.utils.validators import (
    require_positive_quantity,
    validate_non_negative_number,
    validate_notes,
)

logger = get_service_logger(__name__)

EDITABLE_SALE_FIELDS = ("notes", "timestamp")


def _sale_dict(sale: Sale) -> Dict[str, Any]:
    """Sale with product name, total price and profit."""
    result = sale.to_dict(include_relationships=True)
    result["profit"] = costing_service.product_profit(sale.product) * sale.quantity
    return result


def _parse_timestamp(value) -> datetime:
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        raise ValidationError([f"Invalid timestamp: {value!r}"])


def _load(session, sale_id: int) -> Sale:
    sale = session.query(Sale).filter_by(id=sale_id).first()
    if not sale:
        raise SaleNotFound(sale_id)
    return sale


# ============================================================================
# Ledger
# ============================================================================


def sell_product(
    product_id: int,
    quantity,
    unit_price=None,
    timestamp=None,
    notes: Optional[str] = None,
    session=None,
) -> Dict[str, Any]:
    """
    Sell units of a product from its recipe's prepared portions.

    Args:
        product_id: Product to sell
        quantity: Whole units to sell (>= 1)
        unit_price: Price per unit; defaults to the product's price
        timestamp: When the sale happened; defaults to now
        notes: Optional notes
        session: Optional database session. When given, the caller owns the
            transaction and must roll back on error.

    Returns:
        Sale dict with product_name, total_price and profit

    Raises:
        ValidationError: If quantity is not a whole number, or unit_price,
            timestamp or notes are malformed
        InvalidState: If quantity <= 0, or the product is missing or inactive
        InsufficientStock: If fewer portions are prepared than requested
        TransactionFailure: If the recipe changed concurrently
        DatabaseError: If database operation fails
    """
    quantity = require_positive_quantity(quantity, integer=True)

    errors = []
    if unit_price is not None:
        is_valid, error = validate_non_negative_number(unit_price, "Unit price")
        if not is_valid:
            errors.append(error)
    is_valid, error = validate_notes(notes)
    if not is_valid:
        errors.append(error)
    if errors:
        raise ValidationError(errors)

    sold_at = _parse_timestamp(timestamp) if timestamp is not None else utc_now()

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            product = session.query(Product).filter_by(id=product_id).first()
            if not product:
                raise InvalidState("Product not found", product_id=product_id)
            if not product.is_active:
                raise InvalidState("Product is not active", product_id=product_id)

            recipe = product.recipe
            available = recipe.prepared_quantity or 0.0
            if available < quantity:
                log_operation(
                    logger,
                    operation="sell_product",
                    outcome="insufficient_stock",
                    level=logging.WARNING,
                    product_id=product_id,
                    quantity=quantity,
                    available=available,
                )
                raise InsufficientStock(product.name, quantity, available)

            remaining = available - quantity
            recipe.prepared_quantity = 0.0 if remaining < STOCK_EPSILON else remaining

            sale = Sale(
                product_id=product.id,
                quantity=quantity,
                unit_price=float(unit_price) if unit_price is not None else product.price,
                timestamp=sold_at,
                notes=notes,
            )
            session.add(sale)
            session.flush()
            session.refresh(sale)

            result = _sale_dict(sale)

        log_operation(
            logger,
            operation="sell_product",
            outcome="success",
            sale_id=result["id"],
            product_id=product_id,
            quantity=quantity,
        )
        return result

    except SQLAlchemyError as e:
        if not is_concurrency_conflict(e):
            raise DatabaseError(f"Failed to sell product {product_id}", e)
        log_operation(
            logger,
            operation="sell_product",
            outcome="transaction_failed",
            level=logging.WARNING,
            product_id=product_id,
            quantity=quantity,
            error=str(e),
        )
        raise TransactionFailure("sell_product", e)


def refund_sale(sale_id: int, session=None) -> Dict[str, Any]:
    """
    Refund a sale: restore its portions to the recipe and delete it.

    Ingredient stock is not restored.

    Returns:
        Dict with message, sale_id, restored_quantity, product_name and
        the recipe's new prepared_quantity

    Raises:
        SaleNotFound: If the sale doesn't exist
        TransactionFailure: If the recipe changed concurrently
        DatabaseError: If database operation fails
    """
    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            sale = _load(session, sale_id)
            product = sale.product
            recipe = product.recipe

            recipe.prepared_quantity = (recipe.prepared_quantity or 0.0) + sale.quantity
            result = {
                "message": "Sale refunded successfully",
                "sale_id": sale.id,
                "restored_quantity": sale.quantity,
                "product_name": product.name,
                "prepared_quantity": recipe.prepared_quantity,
            }

            session.delete(sale)
            session.flush()

        log_operation(
            logger,
            operation="refund_sale",
            outcome="success",
            sale_id=sale_id,
            restored_quantity=result["restored_quantity"],
        )
        return result

    except SQLAlchemyError as e:
        if not is_concurrency_conflict(e):
            raise DatabaseError(f"Failed to refund sale {sale_id}", e)
        log_operation(
            logger,
            operation="refund_sale",
            outcome="transaction_failed",
            level=logging.WARNING,
            sale_id=sale_id,
            error=str(e),
        )
        raise TransactionFailure("refund_sale", e)


# ============================================================================
# Queries
# ============================================================================


def get_sale(sale_id: int) -> Dict[str, Any]:
    """
    Retrieve a sale with its product name, total price and profit.

    Raises:
        SaleNotFound: If the sale doesn't exist
    """
    try:
        with session_scope() as session:
            return _sale_dict(_load(session, sale_id))
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to retrieve sale {sale_id}", e)


def list_sales(
    start_date=None,
    end_date=None,
    product_id: Optional[int] = None,
    sort_by: str = "timestamp",
    sort_order: str = "desc",
    pagination: Optional[PaginationParams] = None,
) -> PaginatedResult:
    """
    List sales, newest first by default.

    Args:
        start_date: Include sales from the start of this day
        end_date: Include sales up to the end of this day
        product_id: Only this product's sales
        sort_by: One of the sale sortable fields
        sort_order: "asc" or "desc"
        pagination: Page to fetch; None returns everything

    Returns:
        PaginatedResult of sale dicts, with summary page_revenue,
        page_profit and page_transactions for the returned page

    Raises:
        ValidationError: If a date or the sort is invalid
    """
    try:
        start = start_of_day(parse_date(start_date)) if start_date else None
        end = end_of_day(end_date) if end_date else None
    except (TypeError, ValueError) as e:
        raise ValidationError([f"Invalid date: {e}"])

    try:
        with session_scope() as session:
            query = session.query(Sale)
            if start is not None:
                query = query.filter(Sale.timestamp >= start)
            if end is not None:
                query = query.filter(Sale.timestamp <= end)
            if product_id is not None:
                query = query.filter(Sale.product_id == product_id)

            query = apply_sort(query, Sale, "sale", sort_by, sort_order)
            page = paginate(query, pagination)
            page.items = [_sale_dict(sale) for sale in page.items]
            page.summary = {
                "page_revenue": sum(item["total_price"] for item in page.items),
                "page_profit": sum(item["profit"] for item in page.items),
                "page_transactions": len(page.items),
            }
            return page

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to retrieve sales", e)


def update_sale(sale_id: int, data: Dict) -> Dict[str, Any]:
    """
    Edit a sale's notes or timestamp.

    Quantity, price and product are fixed once sold; refund and sell again
    to change them.

    Raises:
        SaleNotFound: If the sale doesn't exist
        ValidationError: If another field is supplied or a value is malformed
    """
    errors = [
        f"{key}: Only notes and timestamp can be changed on a sale"
        for key in data
        if key not in EDITABLE_SALE_FIELDS
    ]
    if "notes" in data:
        is_valid, error = validate_notes(data["notes"])
        if not is_valid:
            errors.append(error)
    if errors:
        raise ValidationError(errors)

    timestamp = _parse_timestamp(data["timestamp"]) if data.get("timestamp") else None

    try:
        with session_scope() as session:
            sale = _load(session, sale_id)
            if "notes" in data:
                sale.notes = data["notes"]
            if timestamp is not None:
                sale.timestamp = timestamp
            session.flush()
            return _sale_dict(sale)

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update sale {sale_id}", e)
