"""
Analytics Service - Read-only sales reporting.

Sales are loaded once per request, joined with their product and the
product's current recipe cost, and flattened into ``SaleLine`` rows. The
reducers below (summarize, bucket_by_period, rank_best_sellers) are pure
functions of those rows, so they can be tested without a database.

Cost always reflects current ingredient prices, not prices at sale time.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from restaurant_pos.models import Sale
from restaurant_pos.services import costing_service
from restaurant_pos.services.database import session_scope
from restaurant_pos.services.exceptions import DatabaseError, ValidationError
from restaurant_pos.services.logging_utils import get_service_logger, log_operation
from restaurant_pos.utils.constants import (
    DASHBOARD_CHART_DAYS,
    DASHBOARD_MONTH_DAYS,
    DASHBOARD_TOP_PRODUCTS,
    DASHBOARD_WEEK_DAYS,
    DEFAULT_BEST_SELLER_DAYS,
    DEFAULT_BEST_SELLER_LIMIT,
    REPORT_PERIODS,
)
from restaurant_pos.utils.datetime_utils import as_utc, days_ago, end_of_day, parse_date, start_of_day
from restaurant_pos.utils.validators import validate_non_negative_integer, validate_positive_number

logger = get_service_logger(__name__)


@dataclass(frozen=True)
class SaleLine:
    """
    One sale flattened for reporting.

    Attributes:
        sale_id: Sale ID
        product_id: Product sold
        product_name: Product name at report time
        quantity: Units sold
        unit_price: Price charged per unit
        list_price: Product's current price
        unit_cost: Current recipe cost of one unit
        timestamp: When the sale happened (aware UTC)
    """

    sale_id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    list_price: float
    unit_cost: float
    timestamp: datetime

    @property
    def revenue(self) -> float:
        return self.quantity * self.unit_price

    @property
    def cost(self) -> float:
        return self.quantity * self.unit_cost


# ============================================================================
# Loading
# ============================================================================


def load_sale_lines(
    session,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    product_id: Optional[int] = None,
) -> List[SaleLine]:
    """
    Load sales in ``[start, end]`` as SaleLine rows ordered by timestamp, then id.

    Args:
        session: Database session
        start: Inclusive lower bound, or None
        end: Inclusive upper bound, or None
        product_id: Only this product's sales, or None for all
    """
    query = session.query(Sale)
    if start is not None:
        query = query.filter(Sale.timestamp >= start)
    if end is not None:
        query = query.filter(Sale.timestamp <= end)
    if product_id is not None:
        query = query.filter(Sale.product_id == product_id)

    lines = []
    for sale in query.order_by(Sale.timestamp.asc(), Sale.id.asc()).all():
        product = sale.product
        lines.append(
            SaleLine(
                sale_id=sale.id,
                product_id=sale.product_id,
                product_name=product.name,
                quantity=sale.quantity,
                unit_price=sale.unit_price,
                list_price=product.price or 0.0,
                unit_cost=costing_service.product_cost(product),
                timestamp=as_utc(sale.timestamp),
            )
        )
    return lines


# ============================================================================
# Reducers
# ============================================================================


def summarize(lines: Iterable[SaleLine]) -> Dict[str, Any]:
    """
    Totals over a set of sales.

    Returns:
        Dict with revenue, cost, profit, profit_margin (0 when revenue is 0),
        transactions and items_sold
    """
    revenue = 0.0
    cost = 0.0
    transactions = 0
    items_sold = 0
    for line in lines:
        revenue += line.revenue
        cost += line.cost
        transactions += 1
        items_sold += line.quantity

    profit = revenue - cost
    return {
        "revenue": revenue,
        "cost": cost,
        "profit": profit,
        "profit_margin": costing_service.sales_margin(revenue, profit),
        "transactions": transactions,
        "items_sold": items_sold,
    }


def bucket_by_period(lines: Iterable[SaleLine], period: str) -> List[Dict[str, Any]]:
    """
    Group sales into day, week or month buckets.

    Keys are ``%Y-%m-%d`` (day), ``%Y-W%U`` (week, Sunday-based) and
    ``%Y-%m`` (month). Each bucket's cost comes from its own sales.

    Returns:
        Buckets sorted by key, each with period, transactions, items_sold,
        total_sales, cost, profit and profit_margin

    Raises:
        ValidationError: If period is not day, week or month
    """
    if period not in REPORT_PERIODS:
        raise ValidationError(
            [f"Invalid period '{period}'. Choose from: {', '.join(REPORT_PERIODS)}"]
        )
    key_format = REPORT_PERIODS[period]

    grouped: Dict[str, List[SaleLine]] = {}
    for line in lines:
        grouped.setdefault(line.timestamp.strftime(key_format), []).append(line)

    buckets = []
    for key in sorted(grouped):
        totals = summarize(grouped[key])
        buckets.append(
            {
                "period": key,
                "transactions": totals["transactions"],
                "items_sold": totals["items_sold"],
                "total_sales": totals["revenue"],
                "cost": totals["cost"],
                "profit": totals["profit"],
                "profit_margin": totals["profit_margin"],
            }
        )
    return buckets


def rank_best_sellers(lines: Iterable[SaleLine], limit: int) -> List[Dict[str, Any]]:
    """
    Rank products by units sold.

    Ties keep the order in which products first appear in ``lines``.

    Args:
        lines: Sales ordered by timestamp, then id
        limit: Maximum number of products to return

    Returns:
        One dict per product with totals, average quantity per transaction,
        unit cost, unit profit, total profit and profit margin
    """
    grouped: "OrderedDict[int, Dict[str, Any]]" = OrderedDict()
    for line in lines:
        entry = grouped.get(line.product_id)
        if entry is None:
            entry = grouped[line.product_id] = {
                "product_id": line.product_id,
                "product_name": line.product_name,
                "price": line.list_price,
                "unit_cost": line.unit_cost,
                "total_quantity": 0,
                "total_revenue": 0.0,
                "transactions": 0,
            }
        entry["total_quantity"] += line.quantity
        entry["total_revenue"] += line.revenue
        entry["transactions"] += 1

    ranked = sorted(grouped.values(), key=lambda e: e["total_quantity"], reverse=True)[:limit]

    for entry in ranked:
        price = entry["price"]
        entry["avg_quantity_per_transaction"] = entry["total_quantity"] / entry["transactions"]
        entry["unit_profit"] = price - entry["unit_cost"]
        entry["total_profit"] = entry["unit_profit"] * entry["total_quantity"]
        entry["profit_margin"] = entry["unit_profit"] / price * 100 if price > 0 else 0.0
    return ranked


# ============================================================================
# Reports
# ============================================================================


def get_dashboard(now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Headline figures for today, the last week and the last month.

    Windows start at midnight (UTC): today, 7 days back and 30 days back,
    and end with the day containing ``now``.

    Args:
        now: Reference time; defaults to the current time

    Returns:
        Dict with keys:
        - "today", "week", "month": summarize() output for each window
        - "chart_data": one entry per day for the last 7 days, oldest first,
          with period, total_sales, profit and transactions
        - "top_products": top 5 products by units over the week window
    """
    today = start_of_day(now)
    window_end = end_of_day(today)
    week_start = days_ago(DASHBOARD_WEEK_DAYS, today)
    month_start = days_ago(DASHBOARD_MONTH_DAYS, today)

    try:
        with session_scope() as session:
            month_lines = load_sale_lines(session, start=month_start, end=window_end)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to load dashboard sales", e)

    week_lines = [line for line in month_lines if line.timestamp >= week_start]
    today_lines = [line for line in week_lines if line.timestamp >= today]

    by_day = {bucket["period"]: bucket for bucket in bucket_by_period(month_lines, "day")}
    chart_data = []
    for offset in range(DASHBOARD_CHART_DAYS - 1, -1, -1):
        key = (today - timedelta(days=offset)).strftime(REPORT_PERIODS["day"])
        bucket = by_day.get(key)
        chart_data.append(
            {
                "period": key,
                "total_sales": bucket["total_sales"] if bucket else 0.0,
                "profit": bucket["profit"] if bucket else 0.0,
                "transactions": bucket["transactions"] if bucket else 0,
            }
        )

    return {
        "today": summarize(today_lines),
        "week": summarize(week_lines),
        "month": summarize(month_lines),
        "chart_data": chart_data,
        "top_products": rank_best_sellers(week_lines, DASHBOARD_TOP_PRODUCTS),
    }


def get_sales_report(
    start_date,
    end_date,
    period: str = "day",
    product_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Sales grouped by period between two dates.

    Args:
        start_date: First day (ISO string, date or datetime)
        end_date: Last day, included in full
        period: "day", "week" or "month"
        product_id: Only this product's sales, or None for all

    Returns:
        Dict with start_date, end_date, period, data (buckets) and summary

    Raises:
        ValidationError: If a date is missing or malformed, or the period is unknown
    """
    if not start_date or not end_date:
        raise ValidationError(["start_date and end_date are required"])
    if period not in REPORT_PERIODS:
        raise ValidationError(
            [f"Invalid period '{period}'. Choose from: {', '.join(REPORT_PERIODS)}"]
        )

    try:
        start = start_of_day(parse_date(start_date))
        end = end_of_day(end_date)
    except (TypeError, ValueError) as e:
        raise ValidationError([f"Invalid date: {e}"])

    try:
        with session_scope() as session:
            lines = load_sale_lines(session, start=start, end=end, product_id=product_id)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to load report sales", e)

    log_operation(
        logger,
        operation="get_sales_report",
        outcome="success",
        level=logging.DEBUG,
        period=period,
        sale_count=len(lines),
    )
    return {
        "start_date": start.date().isoformat(),
        "end_date": end.date().isoformat(),
        "period": period,
        "data": bucket_by_period(lines, period),
        "summary": summarize(lines),
    }


def get_best_sellers(
    days: int = DEFAULT_BEST_SELLER_DAYS,
    limit: int = DEFAULT_BEST_SELLER_LIMIT,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Best-selling products over the last ``days`` days.

    The window is whole UTC calendar days: from midnight ``days`` days
    before ``now`` through the end of today, so ``days=0`` means today only.
    get_product_analytics uses the same window.

    Raises:
        ValidationError: If days is negative or limit is not positive
    """
    errors = []
    for is_valid, message in (
        validate_non_negative_integer(days, "Days"),
        validate_positive_number(limit, "Limit"),
    ):
        if not is_valid:
            errors.append(message)
    if errors:
        raise ValidationError(errors)

    start = days_ago(int(days), now)
    try:
        with session_scope() as session:
            lines = load_sale_lines(session, start=start, end=end_of_day(start_of_day(now)))
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to load best seller sales", e)

    return rank_best_sellers(lines, int(limit))
