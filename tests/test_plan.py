import pytest

from app.core.errors import SchemaResolutionError
from app.core.report.catalog import build_catalog
from app.core.report.plan import QUERY_SHAPES, plan
from app.core.schemas import ChartKind, QuestionIntent


@pytest.mark.parametrize(
    "intent, kind",
    [
        (QuestionIntent.CATEGORY_COMPARISON, ChartKind.BAR),
        (QuestionIntent.REVENUE_TREND, ChartKind.LINE),
        (QuestionIntent.CUSTOMER_SPENDING, ChartKind.BAR),
        (QuestionIntent.PRODUCT_POPULARITY, ChartKind.PIE),
        (QuestionIntent.ORDER_STATUS, ChartKind.PIE),
        (QuestionIntent.DATA_QUALITY, ChartKind.TABLE),
        (QuestionIntent.CUSTOMER_GROWTH, ChartKind.LINE),
        (QuestionIntent.GENERAL, ChartKind.TABLE),
    ],
)
def test_chart_kind_per_intent(catalog, intent, kind):
    assert plan(intent, catalog).visualization == kind


def test_every_intent_has_a_query_shape():
    assert set(QUERY_SHAPES) == set(QuestionIntent)


@pytest.mark.parametrize("intent", list(QuestionIntent))
def test_plan_is_deterministic(raw_schema, intent):
    """Same inputs, byte-identical SQL"""
    first = plan(intent, build_catalog(raw_schema))
    second = plan(intent, build_catalog(dict(raw_schema)))
    assert first.sql == second.sql
    assert first.visualization == second.visualization


def test_category_comparison_sql(catalog):
    sql = plan(QuestionIntent.CATEGORY_COMPARISON, catalog).sql
    assert "FROM ordrs AS o JOIN prdct_catalog AS p" in sql
    assert "ANY" in sql and "o.product_ids" in sql
    assert "'Electronics'" in sql and "'Furniture'" in sql
    assert "'completed'" in sql
    assert "AS total_sales" in sql
    assert "GROUP BY p.p_category" in sql


def test_revenue_trend_sql(catalog):
    sql = plan(QuestionIntent.REVENUE_TREND, catalog).sql
    assert "FROM daily_metrics" in sql
    assert "'revenue'" in sql
    assert "metric_value IS NOT NULL" in sql
    assert "metric_date IS NOT NULL" in sql
    assert "ORDER BY daily_metrics.metric_date" in sql


def test_customer_growth_sql(catalog):
    sql = plan(QuestionIntent.CUSTOMER_GROWTH, catalog).sql
    assert "'new_customers'" in sql
    assert "AS new_customers" in sql
    assert "metric_value IS NOT NULL" not in sql


def test_top_n_limits(catalog):
    assert "LIMIT 10" in plan(QuestionIntent.CUSTOMER_SPENDING, catalog).sql
    assert "LIMIT 5" in plan(QuestionIntent.PRODUCT_POPULARITY, catalog).sql
    assert "LIMIT 10" in plan(QuestionIntent.GENERAL, catalog).sql


def test_order_status_sql(catalog):
    sql = plan(QuestionIntent.ORDER_STATUS, catalog).sql
    assert "FROM ordrs" in sql
    assert "GROUP BY ordrs.status" in sql


def test_data_quality_rows_are_labelled(catalog):
    sql = plan(QuestionIntent.DATA_QUALITY, catalog).sql
    assert "UNION ALL" in sql
    assert "'customers'" in sql and "'orders'" in sql
    assert "'%@%.%'" in sql
    assert "'^[0-9]{4}-[0-9]{2}-[0-9]{2}$'" in sql
    assert "'pending'" in sql and "'cancelled'" in sql
    for column in (
        "missing_names",
        "invalid_emails",
        "invalid_dates",
        "missing_customer_ids",
        "invalid_amounts",
        "invalid_statuses",
    ):
        # Both halves of the union name every check
        assert sql.count(f"AS {column}") == 2


def test_general_lists_customers(catalog):
    sql = plan(QuestionIntent.GENERAL, catalog).sql
    assert sql.startswith("SELECT *")
    assert "FROM cust_info" in sql


def test_unusual_table_names_are_quoted():
    catalog = build_catalog({"Cust Info": []})
    sql = plan(QuestionIntent.GENERAL, catalog).sql
    assert 'FROM "Cust Info"' in sql


@pytest.mark.parametrize(
    "intent",
    [
        QuestionIntent.CATEGORY_COMPARISON,
        QuestionIntent.CUSTOMER_SPENDING,
        QuestionIntent.PRODUCT_POPULARITY,
        QuestionIntent.ORDER_STATUS,
        QuestionIntent.DATA_QUALITY,
    ],
)
def test_missing_orders_table_fails_closed(intent):
    catalog = build_catalog({"prdct_catalog": [], "cust_info": [], "daily_metrics": []})
    with pytest.raises(SchemaResolutionError) as exc_info:
        plan(intent, catalog)
    assert "orders" in exc_info.value.roles
    assert exc_info.value.intent == intent.value


def test_missing_metrics_table_fails_closed():
    catalog = build_catalog({"ordrs": [], "cust_info": []})
    for intent in (QuestionIntent.REVENUE_TREND, QuestionIntent.CUSTOMER_GROWTH):
        with pytest.raises(SchemaResolutionError):
            plan(intent, catalog)


def test_unneeded_roles_may_be_missing():
    catalog = build_catalog({"ordrs": []})
    assert "FROM ordrs" in plan(QuestionIntent.ORDER_STATUS, catalog).sql
    with pytest.raises(SchemaResolutionError):
        plan(QuestionIntent.GENERAL, catalog)


def test_empty_catalog_never_emits_sql():
    catalog = build_catalog({})
    for intent in QuestionIntent:
        with pytest.raises(SchemaResolutionError):
            plan(intent, catalog)
