"""
SUMMARIZE MODULE - Turn result rows into a narrative and a chart payload

Purpose:
    1. Compute the headline numbers for each report (totals, averages, shares)
    2. Write them up as a short bulleted narrative
    3. Describe the chart to draw, without tying it to any charting library

Data Flow:
    (intent, rows) → empty? → fixed "no data" report
                   → SUMMARIZERS[intent](rows) → Report(narrative, visualization)

Formatting rules:
    - money always has two decimals: $1234.50
    - percentages always have one decimal: 12.5%

Everything here is pure: same intent and rows in, same report out.
"""

import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from app.core.errors import SummarizationError
from app.core.report.plan import CUSTOMER_CHECKS, ORDER_CHECKS
from app.core.schemas import (
    ChartKind,
    ChartPoint,
    QuestionIntent,
    Report,
    SeriesPayload,
    TablePayload,
)


Row = Mapping[str, Any]

NO_DATA_MESSAGES: Dict[QuestionIntent, str] = {
    QuestionIntent.CATEGORY_COMPARISON: "No sales data found for the specified categories.",
    QuestionIntent.REVENUE_TREND: "No valid revenue data available for analysis.",
    QuestionIntent.CUSTOMER_SPENDING: "No customer spending data available.",
    QuestionIntent.PRODUCT_POPULARITY: "No product popularity data available.",
    QuestionIntent.ORDER_STATUS: "No order status data available.",
    QuestionIntent.DATA_QUALITY: "No data quality metrics available.",
    QuestionIntent.CUSTOMER_GROWTH: "No customer growth data available.",
}

TOP_N = 5

# Fixed English abbreviations so month labels never depend on the process locale
MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%m/%d/%Y",
]

CUSTOMER_CHECK_LABELS = [
    ("missing_names", "Missing Names"),
    ("invalid_emails", "Invalid Emails"),
    ("invalid_dates", "Invalid Dates"),
]
ORDER_CHECK_LABELS = [
    ("missing_customer_ids", "Missing Customer IDs"),
    ("invalid_amounts", "Invalid Amounts"),
    ("invalid_statuses", "Invalid Statuses"),
]


# ============================================================================
# STEP 1: FORMATTING
# ============================================================================


def format_currency(value: float) -> str:
    return f"${value:.2f}"


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


# ============================================================================
# STEP 2: READING VALUES OUT OF ROWS
# ============================================================================


def to_number(value: Any) -> Optional[float]:
    """
    Convert a raw cell to a finite float, or None if it is not a number.

    Handles ints, floats, Decimals (Postgres NUMERIC) and numeric strings.
    Booleans, blanks, NaN and infinities are not numbers.

    Examples:
        Decimal("12.50") → 12.5
        "300" → 300.0
        "n/a" → None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(Decimal(value.strip()))
        except (InvalidOperation, ValueError):
            return None
    else:
        return None

    return number if math.isfinite(number) else None


def _require(row: Row, key: str) -> Any:
    if key not in row:
        raise SummarizationError(f"Result row is missing column '{key}'")
    return row[key]


def _number(row: Row, key: str) -> float:
    """Numeric column the query guarantees. NULL aggregates count as zero."""
    value = _require(row, key)
    if value is None:
        return 0.0
    number = to_number(value)
    if number is None:
        raise SummarizationError(f"Column '{key}' is not numeric: {value!r}")
    return number


def _count(row: Row, key: str) -> int:
    return int(_number(row, key))


def _label(row: Row, key: str) -> str:
    value = _require(row, key)
    return "Unknown" if value is None else str(value)


def _optional_count(row: Row, key: str) -> int:
    """Data-quality checks: absent or NULL means nothing was found."""
    number = to_number(row.get(key))
    return int(number) if number is not None else 0


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a metric date cell.

    Handles date/datetime objects straight from the driver, ISO strings and a
    few common text formats. Returns None if nothing fits.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None

    text = str(value).strip()
    # fromisoformat only accepts a "Z" suffix from Python 3.11
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    return None


def month_label(year: int, month: int) -> str:
    return f"{MONTH_ABBREVIATIONS[month - 1]} {year}"


# ============================================================================
# STEP 3: MONTHLY BUCKETS (shared by the two trend reports)
# ============================================================================


def bucket_by_month(
    rows: Sequence[Row], value_key: str, convert: Callable[[float], float] = float
) -> List[Tuple[str, float]]:
    """
    Sum a value per calendar month.

    Rows with a missing/non-numeric value or an unreadable date are skipped.

    Returns:
        [(month label, total)] in chronological order

    Example:
        [{"date": "2024-01-05", "revenue": 100}, {"date": "2024-01-20", "revenue": 200},
         {"date": "2024-02-01", "revenue": 100}]
        → [("Jan 2024", 300.0), ("Feb 2024", 100.0)]
    """
    totals: Dict[Tuple[int, int], float] = {}

    for row in rows:
        number = to_number(row.get(value_key))
        day = parse_date(row.get("date"))
        if number is None or day is None:
            continue
        key = (day.year, day.month)
        totals[key] = totals.get(key, 0) + convert(number)

    return [(month_label(year, month), totals[(year, month)]) for year, month in sorted(totals)]


def peak_bucket(buckets: Sequence[Tuple[str, float]]) -> Tuple[str, float]:
    """Bucket with the highest value; the earliest one wins a tie."""
    peak = buckets[0]
    for bucket in buckets[1:]:
        if bucket[1] > peak[1]:
            peak = bucket
    return peak


def trend_direction(buckets: Sequence[Tuple[str, float]]) -> str:
    if len(buckets) < 2:
        return "Not enough data"
    return "Upward" if buckets[-1][1] > buckets[0][1] else "Downward"


def growth_rate(buckets: Sequence[Tuple[str, float]]) -> float:
    """Percent change from first to last bucket; 0 when it can't be computed."""
    if len(buckets) < 2 or buckets[0][1] == 0:
        return 0.0
    first, last = buckets[0][1], buckets[-1][1]
    return (last - first) / first * 100


def _no_data(intent: QuestionIntent) -> Report:
    return Report(narrative=NO_DATA_MESSAGES[intent], visualization=None)


# ============================================================================
# STEP 4: ONE SUMMARY PER INTENT
# ============================================================================


def summarize_category_comparison(rows: Sequence[Row]) -> Report:
    """Electronics vs Furniture. A missing category counts as zero sales."""
    by_category = {_label(row, "category"): row for row in rows}

    def figures(category: str) -> Tuple[float, int, float]:
        row = by_category.get(category)
        if row is None:
            return 0.0, 0, 0.0
        return (
            _number(row, "total_sales"),
            _count(row, "order_count"),
            _number(row, "avg_order_value"),
        )

    e_total, e_orders, e_avg = figures("Electronics")
    f_total, f_orders, f_avg = figures("Furniture")

    difference = e_total - f_total
    # Compare at cent precision so float noise reads as level
    if round(difference, 2) == 0:
        comparison = "Electronics sales are level with Furniture."
    else:
        direction = "higher" if difference > 0 else "lower"
        amount = format_currency(abs(difference))
        if f_total:
            share = format_percent(abs(difference) / f_total * 100)
            comparison = f"Electronics sales are {direction} by {amount} ({share}) compared to Furniture."
        else:
            comparison = (
                f"Electronics sales are {direction} by {amount} compared to Furniture "
                "(no Furniture sales to compare against)."
            )

    narrative = "\n".join(
        [
            "Category comparison analysis:",
            f"• Electronics: {format_currency(e_total)} from {e_orders} orders (avg {format_currency(e_avg)})",
            f"• Furniture: {format_currency(f_total)} from {f_orders} orders (avg {format_currency(f_avg)})",
            comparison,
        ]
    )

    points = [
        ChartPoint(
            x=_label(row, "category"),
            y=_number(row, "total_sales"),
            order_count=_count(row, "order_count"),
            avg_order_value=_number(row, "avg_order_value"),
        )
        for row in rows
    ]

    return Report(
        narrative=narrative,
        visualization=SeriesPayload(
            kind=ChartKind.BAR, points=points, x_label="Category", y_label="Sales ($)"
        ),
    )


def summarize_revenue_trend(rows: Sequence[Row]) -> Report:
    buckets = bucket_by_month(rows, "revenue")
    if not buckets:
        return _no_data(QuestionIntent.REVENUE_TREND)

    total = sum(value for _, value in buckets)
    average = total / len(buckets)
    peak_month, peak_value = peak_bucket(buckets)

    narrative = "\n".join(
        [
            "Revenue Trend Analysis:",
            f"• Total Revenue: {format_currency(total)}",
            f"• Average Monthly Revenue: {format_currency(average)}",
            f"• Peak Month: {peak_month} ({format_currency(peak_value)})",
            f"• Growth Trend: {trend_direction(buckets)}",
        ]
    )

    return Report(
        narrative=narrative,
        visualization=SeriesPayload(
            kind=ChartKind.LINE,
            points=[ChartPoint(x=month, y=value) for month, value in buckets],
            x_label="Month",
            y_label="Revenue ($)",
        ),
    )


def summarize_customer_spending(rows: Sequence[Row]) -> Report:
    # Totals use every returned customer, the list shows only the top ones
    top = rows[:TOP_N]
    total = sum(_number(row, "total_spent") for row in rows)
    average = total / len(rows)

    lines = [
        "Customer Spending Analysis:",
        f"• Total across all customers: {format_currency(total)}",
        f"• Average customer spend: {format_currency(average)}",
        f"Top {TOP_N} Customers:",
    ]
    for row in top:
        lines.append(
            f"• {_label(row, 'customer_name')}: {format_currency(_number(row, 'total_spent'))} "
            f"({_count(row, 'order_count')} orders)"
        )

    points = [
        ChartPoint(
            x=_label(row, "customer_name"),
            y=_number(row, "total_spent"),
            order_count=_count(row, "order_count"),
        )
        for row in top
    ]

    return Report(
        narrative="\n".join(lines),
        visualization=SeriesPayload(
            kind=ChartKind.BAR, points=points, x_label="Customer", y_label="Total Spent ($)"
        ),
    )


def summarize_product_popularity(rows: Sequence[Row]) -> Report:
    top = rows[:TOP_N]
    total_revenue = sum(_number(row, "revenue_generated") for row in rows)

    lines = [
        "Product Popularity Analysis:",
        f"• Total Revenue: {format_currency(total_revenue)}",
        "Top Products by Market Share:",
    ]
    points = []
    for row in top:
        name = f"{_label(row, 'product')} ({_label(row, 'category')})"
        revenue = _number(row, "revenue_generated")
        share = revenue / total_revenue * 100 if total_revenue else 0.0
        lines.append(f"• {name}: {format_percent(share)}")
        points.append(ChartPoint(x=name, y=_count(row, "times_ordered"), revenue=revenue))

    return Report(
        narrative="\n".join(lines),
        visualization=SeriesPayload(kind=ChartKind.PIE, points=points),
    )


def summarize_order_status(rows: Sequence[Row]) -> Report:
    total_orders = sum(_count(row, "count") for row in rows)

    lines = ["Order Status Analysis:", f"• Total Orders: {total_orders}"]
    points = []
    for row in rows:
        status = _label(row, "status")
        count = _count(row, "count")
        amount = _number(row, "total_amount")
        pct = format_percent(count / total_orders * 100 if total_orders else 0.0)
        lines.append(f"• {status}: {count} ({pct}) - {format_currency(amount)}")
        points.append(ChartPoint(x=f"{status} ({pct})", y=count, total_amount=amount))

    return Report(
        narrative="\n".join(lines),
        visualization=SeriesPayload(kind=ChartKind.PIE, points=points),
    )


def _quality_rows(rows: Sequence[Row]) -> Tuple[Row, Row]:
    """
    Find the customer-check and order-check rows.

    Rows are looked up by table_name; rows without a recognised name fall back
    to position (first = customers, second = orders).
    """
    by_name = {row.get("table_name"): row for row in rows}
    customers = by_name.get(CUSTOMER_CHECKS)
    orders = by_name.get(ORDER_CHECKS)

    if customers is None and orders is None:
        customers = rows[0]
        orders = rows[1] if len(rows) > 1 else {}

    return customers or {}, orders or {}


def summarize_data_quality(rows: Sequence[Row]) -> Report:
    all_checks = CUSTOMER_CHECK_LABELS + ORDER_CHECK_LABELS
    total_issues = sum(_optional_count(row, key) for row in rows for key, _ in all_checks)

    lines = ["Data Quality Report:", f"• Total Issues Found: {total_issues}"]
    for index, row in enumerate(rows):
        name = row.get("table_name") or f"table {index + 1}"
        if name == CUSTOMER_CHECKS:
            checks = CUSTOMER_CHECK_LABELS
        elif name == ORDER_CHECKS:
            checks = ORDER_CHECK_LABELS
        else:
            checks = all_checks
        lines.append(f"• {name}:")
        for key, title in checks:
            lines.append(f"  - {title}: {_optional_count(row, key)}")

    customers, orders = _quality_rows(rows)
    table = TablePayload(
        columns=["Metric", "Customers", "Orders"],
        rows=[
            [
                "Missing Data",
                _optional_count(customers, "missing_names"),
                _optional_count(orders, "missing_customer_ids"),
            ],
            [
                "Invalid Data",
                _optional_count(customers, "invalid_emails")
                + _optional_count(customers, "invalid_dates"),
                _optional_count(orders, "invalid_amounts")
                + _optional_count(orders, "invalid_statuses"),
            ],
        ],
    )

    return Report(narrative="\n".join(lines), visualization=table)


def summarize_customer_growth(rows: Sequence[Row]) -> Report:
    buckets = bucket_by_month(rows, "new_customers", convert=int)
    if not buckets:
        return _no_data(QuestionIntent.CUSTOMER_GROWTH)

    total = sum(value for _, value in buckets)
    peak_month, peak_value = peak_bucket(buckets)

    lines = [
        "Customer Growth Analysis:",
        f"• Total New Customers: {total}",
        f"• Peak Acquisition Month: {peak_month} ({peak_value} customers)",
        f"• Growth Rate: {format_percent(growth_rate(buckets))} over period",
        "Monthly Breakdown:",
    ]
    lines.extend(f"• {month}: {value} customers" for month, value in buckets)

    return Report(
        narrative="\n".join(lines),
        visualization=SeriesPayload(
            kind=ChartKind.LINE,
            points=[ChartPoint(x=month, y=value) for month, value in buckets],
            x_label="Month",
            y_label="New Customers",
        ),
    )


def summarize_general(rows: Sequence[Row]) -> Report:
    columns = list(rows[0].keys()) if rows else []
    return Report(
        narrative=f"Here are the first {len(rows)} records from the database.",
        visualization=TablePayload(
            columns=columns,
            rows=[[row.get(column) for column in columns] for row in rows],
        ),
    )


SUMMARIZERS: Dict[QuestionIntent, Callable[[Sequence[Row]], Report]] = {
    QuestionIntent.CATEGORY_COMPARISON: summarize_category_comparison,
    QuestionIntent.REVENUE_TREND: summarize_revenue_trend,
    QuestionIntent.CUSTOMER_SPENDING: summarize_customer_spending,
    QuestionIntent.PRODUCT_POPULARITY: summarize_product_popularity,
    QuestionIntent.ORDER_STATUS: summarize_order_status,
    QuestionIntent.DATA_QUALITY: summarize_data_quality,
    QuestionIntent.CUSTOMER_GROWTH: summarize_customer_growth,
    QuestionIntent.GENERAL: summarize_general,
}


def summarize(intent: QuestionIntent, rows: Sequence[Row]) -> Report:
    """
    Build the report for an intent from its result rows.

    Raises:
        SummarizationError: a row is missing a column the report needs
    """
    rows = list(rows)
    if not rows and intent != QuestionIntent.GENERAL:
        return _no_data(intent)
    return SUMMARIZERS[intent](rows)
