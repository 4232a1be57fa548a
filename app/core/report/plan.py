"""
PLAN MODULE - Turn an intent into a fixed aggregation query

Purpose:
    Every supported intent has exactly one query shape. The only thing that
    varies between databases is the physical table names, which come from the
    catalog. The question text never reaches the SQL.

Data Flow:
    (intent, catalog) → required roles → catalog.require() → build select() → compile → QueryPlan

Queries are written with SQLAlchemy Core against lightweight table()/column()
objects and compiled for PostgreSQL with literal values inlined, so the same
(intent, catalog) always produces the same SQL text.
"""

from typing import Callable, Dict, NamedTuple, Tuple

from sqlalchemy import (
    Date,
    Float,
    Integer,
    Numeric,
    String,
    and_,
    any_,
    case,
    cast,
    column,
    desc,
    distinct,
    func,
    literal,
    literal_column,
    select,
    table,
    union_all,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.dialects.postgresql.base import PGDialect
from sqlalchemy.sql.base import Executable
from sqlalchemy.sql.expression import TableClause

from app.core.report.catalog import SchemaCatalog
from app.core.schemas import ChartKind, QueryPlan, QuestionIntent, TableRole


COMPARED_CATEGORIES = ("Electronics", "Furniture")
KNOWN_ORDER_STATUSES = ("completed", "pending", "cancelled")
COMPLETED = "completed"

# Discriminators for the two data-quality rows
CUSTOMER_CHECKS = "customers"
ORDER_CHECKS = "orders"

CUSTOMER_SPENDING_LIMIT = 10
PRODUCT_POPULARITY_LIMIT = 5
GENERAL_LIMIT = 10

# Signup dates must look like YYYY-MM-DD
DATE_PATTERN = "^[0-9]{4}-[0-9]{2}-[0-9]{2}$"
EMAIL_PATTERN = "%@%.%"

# "named" paramstyle keeps % signs in LIKE patterns as-is
_DIALECT = PGDialect(paramstyle="named")


# ============================================================================
# PHYSICAL TABLES
# ============================================================================


def orders_table(name: str) -> TableClause:
    return table(
        name,
        column("order_id", Integer),
        column("cust_id", Integer),
        column("amount", Numeric),
        column("status", String),
        column("product_ids", ARRAY(Integer)),
    )


def products_table(name: str) -> TableClause:
    return table(
        name,
        column("p_id", Integer),
        column("p_name", String),
        column("p_category", String),
    )


def customers_table(name: str) -> TableClause:
    # col1 = name, col2 = email, col3 = signup date (stored as text)
    return table(
        name,
        column("id", Integer),
        column("col1", String),
        column("col2", String),
        column("col3", String),
    )


def metrics_table(name: str) -> TableClause:
    return table(
        name,
        column("metric_date", Date),
        column("metric_type", String),
        column("metric_value", Numeric),
    )


# ============================================================================
# QUERY SHAPES
# ============================================================================


def category_comparison(tables: Dict[TableRole, str]) -> Executable:
    o = orders_table(tables[TableRole.ORDERS]).alias("o")
    p = products_table(tables[TableRole.PRODUCTS]).alias("p")

    return (
        select(
            p.c.p_category.label("category"),
            func.count(distinct(o.c.order_id)).label("order_count"),
            cast(func.sum(o.c.amount), Float).label("total_sales"),
            cast(func.avg(o.c.amount), Float).label("avg_order_value"),
        )
        .select_from(o.join(p, p.c.p_id == any_(o.c.product_ids)))
        .where(
            and_(
                p.c.p_category.in_(COMPARED_CATEGORIES),
                o.c.status == COMPLETED,
            )
        )
        .group_by(p.c.p_category)
        .order_by(desc("total_sales"))
    )


def _metric_series(name: str, metric_type: str, value_label: str, require_value: bool) -> Executable:
    m = metrics_table(name)
    conditions = [m.c.metric_type == metric_type]
    if require_value:
        conditions.append(m.c.metric_value.isnot(None))
    conditions.append(m.c.metric_date.isnot(None))

    return (
        select(m.c.metric_date.label("date"), m.c.metric_value.label(value_label))
        .where(and_(*conditions))
        .order_by(m.c.metric_date)
    )


def revenue_trend(tables: Dict[TableRole, str]) -> Executable:
    return _metric_series(tables[TableRole.METRICS], "revenue", "revenue", require_value=True)


def customer_growth(tables: Dict[TableRole, str]) -> Executable:
    return _metric_series(
        tables[TableRole.METRICS], "new_customers", "new_customers", require_value=False
    )


def customer_spending(tables: Dict[TableRole, str]) -> Executable:
    c = customers_table(tables[TableRole.CUSTOMERS]).alias("c")
    o = orders_table(tables[TableRole.ORDERS]).alias("o")

    return (
        select(
            c.c.col1.label("customer_name"),
            cast(func.sum(o.c.amount), Float).label("total_spent"),
            func.count(o.c.order_id).label("order_count"),
        )
        .select_from(c.join(o, c.c.id == o.c.cust_id))
        .where(o.c.status == COMPLETED)
        .group_by(c.c.col1)
        .order_by(desc("total_spent"))
        .limit(CUSTOMER_SPENDING_LIMIT)
    )


def product_popularity(tables: Dict[TableRole, str]) -> Executable:
    p = products_table(tables[TableRole.PRODUCTS]).alias("p")
    o = orders_table(tables[TableRole.ORDERS]).alias("o")

    return (
        select(
            p.c.p_name.label("product"),
            p.c.p_category.label("category"),
            func.count(o.c.order_id).label("times_ordered"),
            cast(func.sum(o.c.amount), Float).label("revenue_generated"),
        )
        .select_from(p.join(o, p.c.p_id == any_(o.c.product_ids)))
        .where(o.c.status == COMPLETED)
        .group_by(p.c.p_name, p.c.p_category)
        .order_by(desc("times_ordered"))
        .limit(PRODUCT_POPULARITY_LIMIT)
    )


def order_status(tables: Dict[TableRole, str]) -> Executable:
    o = orders_table(tables[TableRole.ORDERS])

    return select(
        o.c.status,
        func.count(o.c.order_id).label("count"),
        cast(func.sum(o.c.amount), Float).label("total_amount"),
    ).group_by(o.c.status)


def _count_where(condition, when_true: int = 1, otherwise: int = 0):
    return func.coalesce(func.sum(case((condition, when_true), else_=otherwise)), 0)


def data_quality(tables: Dict[TableRole, str]) -> Executable:
    """
    One row per source table. Both rows carry all six check columns so the
    summary can find each row by table_name instead of by position.
    """
    c = customers_table(tables[TableRole.CUSTOMERS])
    o = orders_table(tables[TableRole.ORDERS])

    customer_checks = select(
        literal(CUSTOMER_CHECKS).label("table_name"),
        _count_where((c.c.col1.is_(None)) | (c.c.col1 == "")).label("missing_names"),
        _count_where(c.c.col2.not_like(EMAIL_PATTERN)).label("invalid_emails"),
        _count_where(c.c.col3.regexp_match(DATE_PATTERN), 0, 1).label("invalid_dates"),
        literal(0).label("missing_customer_ids"),
        literal(0).label("invalid_amounts"),
        literal(0).label("invalid_statuses"),
    ).select_from(c)

    order_checks = select(
        literal(ORDER_CHECKS).label("table_name"),
        literal(0).label("missing_names"),
        literal(0).label("invalid_emails"),
        literal(0).label("invalid_dates"),
        _count_where(o.c.cust_id.is_(None)).label("missing_customer_ids"),
        _count_where(o.c.amount <= 0).label("invalid_amounts"),
        _count_where(o.c.status.not_in(KNOWN_ORDER_STATUSES)).label("invalid_statuses"),
    ).select_from(o)

    return union_all(customer_checks, order_checks)


def general_listing(tables: Dict[TableRole, str]) -> Executable:
    c = customers_table(tables[TableRole.CUSTOMERS])
    return select(literal_column("*")).select_from(c).limit(GENERAL_LIMIT)


# ============================================================================
# PLANNER
# ============================================================================


class QueryShape(NamedTuple):
    roles: Tuple[TableRole, ...]
    build: Callable[[Dict[TableRole, str]], Executable]
    visualization: ChartKind


QUERY_SHAPES: Dict[QuestionIntent, QueryShape] = {
    QuestionIntent.CATEGORY_COMPARISON: QueryShape(
        (TableRole.ORDERS, TableRole.PRODUCTS), category_comparison, ChartKind.BAR
    ),
    QuestionIntent.REVENUE_TREND: QueryShape(
        (TableRole.METRICS,), revenue_trend, ChartKind.LINE
    ),
    QuestionIntent.CUSTOMER_SPENDING: QueryShape(
        (TableRole.CUSTOMERS, TableRole.ORDERS), customer_spending, ChartKind.BAR
    ),
    QuestionIntent.PRODUCT_POPULARITY: QueryShape(
        (TableRole.PRODUCTS, TableRole.ORDERS), product_popularity, ChartKind.PIE
    ),
    QuestionIntent.ORDER_STATUS: QueryShape(
        (TableRole.ORDERS,), order_status, ChartKind.PIE
    ),
    QuestionIntent.DATA_QUALITY: QueryShape(
        (TableRole.CUSTOMERS, TableRole.ORDERS), data_quality, ChartKind.TABLE
    ),
    QuestionIntent.CUSTOMER_GROWTH: QueryShape(
        (TableRole.METRICS,), customer_growth, ChartKind.LINE
    ),
    QuestionIntent.GENERAL: QueryShape(
        (TableRole.CUSTOMERS,), general_listing, ChartKind.TABLE
    ),
}


def render_sql(statement: Executable) -> str:
    """Compile a statement to PostgreSQL text with all values inlined."""
    compiled = statement.compile(dialect=_DIALECT, compile_kwargs={"literal_binds": True})
    return str(compiled)


def plan(intent: QuestionIntent, catalog: SchemaCatalog) -> QueryPlan:
    """
    Build the query for an intent.

    Raises:
        SchemaResolutionError: a table role the query needs is not in the catalog
    """
    shape = QUERY_SHAPES[intent]
    tables = catalog.require(*shape.roles, intent=intent.value)
    return QueryPlan(sql=render_sql(shape.build(tables)), visualization=shape.visualization)
