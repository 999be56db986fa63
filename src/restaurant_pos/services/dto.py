"""Result containers returned by list and bulk operations."""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

from restaurant_pos.utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

T = TypeVar("T")


@dataclass
class PaginationParams:
    """Which page of a listing to return.

    ``page`` counts from 1. ``per_page`` is capped at MAX_PAGE_SIZE.
    Passing ``pagination=None`` to a list function returns everything as a
    single page.

        page = list_sales(pagination=PaginationParams(page=2, per_page=25))

    Raises:
        ValueError: For a page below 1 or a page size outside 1..MAX_PAGE_SIZE
    """

    page: int = 1
    per_page: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if not 1 <= self.per_page <= MAX_PAGE_SIZE:
            raise ValueError(f"per_page must be between 1 and {MAX_PAGE_SIZE}, got {self.per_page}")

    def offset(self) -> int:
        """Rows to skip before this page."""
        return (self.page - 1) * self.per_page


@dataclass
class PaginatedResult(Generic[T]):
    """One page of a listing.

    Attributes:
        items: Rows on this page
        total: Matching rows across every page
        page: This page's number
        per_page: Page size the listing used
        summary: Aggregates over this page only (sales listings fill in
            page revenue and item counts)
    """

    items: List[T]
    total: int
    page: int
    per_page: int
    summary: Dict[str, Any] = field(default_factory=dict)

    @property
    def pages(self) -> int:
        # An empty listing still has one (empty) page
        return max(1, -(-self.total // self.per_page))

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def pagination_dict(self) -> Dict[str, Any]:
        return {
            "current_page": self.page,
            "total_pages": self.pages,
            "total_items": self.total,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
        }


@dataclass
class BulkItemResult:
    """Outcome for one entry of a bulk update.

    Each entry commits or fails on its own; ``data`` holds the updated row
    on success and ``error`` the reason on failure.
    """

    id: Any
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "success": self.success, "data": self.data, "error": self.error}
