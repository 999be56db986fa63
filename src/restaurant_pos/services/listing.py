"""Shared sorting and pagination for list operations.

List services build a filtered ``session.query`` and hand it here to apply
a whitelisted sort and page it into a ``PaginatedResult``.
"""

from typing import Optional

from sqlalchemy.orm import Query

from restaurant_pos.services.dto import PaginatedResult, PaginationParams
from restaurant_pos.services.exceptions import ValidationError
from restaurant_pos.utils.constants import SORT_ASC, SORT_DESC, SORTABLE_FIELDS


def apply_sort(query: Query, model, entity: str, sort_by: str, sort_order: str) -> Query:
    """
    Order a query by a whitelisted column.

    Args:
        query: Query over ``model``
        model: Mapped class being listed
        entity: Key into SORTABLE_FIELDS ("ingredient", "recipe", ...)
        sort_by: Column name
        sort_order: "asc" or "desc"

    Returns:
        Ordered query, with id as a tiebreaker so pages are stable

    Raises:
        ValidationError: If the field or direction is not allowed
    """
    allowed = SORTABLE_FIELDS[entity]
    if sort_by not in allowed:
        raise ValidationError([f"Sort field '{sort_by}' not allowed; choose from {', '.join(allowed)}"])
    if sort_order not in (SORT_ASC, SORT_DESC):
        raise ValidationError([f"Sort order must be '{SORT_ASC}' or '{SORT_DESC}'"])

    column = getattr(model, sort_by)
    if sort_order == SORT_DESC:
        return query.order_by(column.desc(), model.id.desc())
    return query.order_by(column.asc(), model.id.asc())


def paginate(query: Query, pagination: Optional[PaginationParams]) -> PaginatedResult:
    """
    Run a query as one page.

    Args:
        query: Filtered and ordered query
        pagination: Page to fetch, or None for every row on a single page

    Returns:
        PaginatedResult of model instances
    """
    if pagination is None:
        items = query.all()
        return PaginatedResult(items=items, total=len(items), page=1, per_page=len(items) or 1)

    total = query.order_by(None).count()
    items = query.offset(pagination.offset()).limit(pagination.per_page).all()
    return PaginatedResult(items=items, total=total, page=pagination.page, per_page=pagination.per_page)
