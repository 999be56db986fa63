"""
Constants for the Restaurant POS application.

This module defines all system-wide constants including:
- Application metadata
- Field length limits
- Ledger tolerances
- Listing defaults and sortable fields
- Error messages
"""

from typing import Dict, List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Restaurant POS"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"

# ============================================================================
# Database Configuration
# ============================================================================

DATABASE_FILENAME = "restaurant_pos.db"

# Environment variables
ENV_VAR_ENVIRONMENT = "RESTAURANT_POS_ENV"
ENV_VAR_DATABASE_URL = "RESTAURANT_POS_DATABASE_URL"

# ============================================================================
# Validation Limits
# ============================================================================

MAX_NAME_LENGTH = 100
MAX_UNIT_LENGTH = 20
MAX_NOTES_LENGTH = 2000
MAX_IMAGE_LENGTH = 500

# Float residue tolerated when deducting stock at the exact max-portion boundary
STOCK_EPSILON = 1e-9

# Suffix appended to duplicated recipe names
RECIPE_COPY_SUFFIX = " (Copy)"

# ============================================================================
# Listing Defaults
# ============================================================================

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000
PRODUCTION_HISTORY_PAGE_SIZE = 20

SORT_ASC = "asc"
SORT_DESC = "desc"

SORTABLE_FIELDS: Dict[str, List[str]] = {
    "ingredient": ["name", "quantity", "unit", "min_threshold", "cost_per_unit", "created_at"],
    "recipe": ["name", "preparation_time", "prepared_quantity", "created_at"],
    "product": ["name", "price", "is_active", "created_at"],
    "sale": ["timestamp", "quantity", "unit_price", "created_at"],
}

# ============================================================================
# Analytics
# ============================================================================

REPORT_PERIODS: Dict[str, str] = {
    "day": "%Y-%m-%d",
    "week": "%Y-W%U",
    "month": "%Y-%m",
}

DASHBOARD_WEEK_DAYS = 7
DASHBOARD_MONTH_DAYS = 30
DASHBOARD_CHART_DAYS = 7
DASHBOARD_TOP_PRODUCTS = 5

DEFAULT_BEST_SELLER_DAYS = 30
DEFAULT_BEST_SELLER_LIMIT = 10
DEFAULT_ANALYTICS_DAYS = 30

# Bulk price adjustment modes
ADJUSTMENT_PERCENTAGE = "percentage"
ADJUSTMENT_FIXED = "fixed"
ADJUSTMENT_TYPES: List[str] = [ADJUSTMENT_PERCENTAGE, ADJUSTMENT_FIXED]

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Please enter a valid number"
ERROR_INVALID_INTEGER = "Please enter a whole number"
ERROR_INVALID_POSITIVE = "Value must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Value must be zero or greater"
ERROR_INVALID_BOOLEAN = "Value must be true or false"
ERROR_PROTECTED_FIELD = "This field can only be changed by restock, prepare or sell"
ERROR_INVALID_PAYLOAD = "Data must be an object of field values"
