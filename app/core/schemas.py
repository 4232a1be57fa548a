from datetime import datetime
from typing import Optional, List, Dict, Any, Union
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =========================
# Enums
# =========================
class QuestionIntent(str, Enum):
    CATEGORY_COMPARISON = "category_comparison"
    REVENUE_TREND = "revenue_trend"
    CUSTOMER_SPENDING = "customer_spending"
    PRODUCT_POPULARITY = "product_popularity"
    ORDER_STATUS = "order_status"
    DATA_QUALITY = "data_quality"
    CUSTOMER_GROWTH = "customer_growth"
    GENERAL = "general"


class ChartKind(str, Enum):
    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    TABLE = "table"


class TableRole(str, Enum):
    ORDERS = "orders"
    PRODUCTS = "products"
    CUSTOMERS = "customers"
    METRICS = "metrics"


# =========================
# PLAN
# =========================
class QueryPlan(BaseModel):
    sql: str
    visualization: ChartKind

    model_config = ConfigDict(frozen=True)


# =========================
# VISUALIZATION
# =========================
class ChartPoint(BaseModel):
    """
    One point of a bar/line/pie series.
    Extra keyword fields (order counts, revenue...) ride along for tooltips.
    """

    x: str
    y: Union[int, float]

    model_config = ConfigDict(frozen=True, extra="allow")


class SeriesPayload(BaseModel):
    kind: ChartKind
    points: List[ChartPoint]
    x_label: Optional[str] = None
    y_label: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class TablePayload(BaseModel):
    kind: ChartKind = ChartKind.TABLE
    columns: List[str]
    rows: List[List[Any]]

    model_config = ConfigDict(frozen=True)


VisualizationPayload = Union[SeriesPayload, TablePayload]


class Report(BaseModel):
    narrative: str
    visualization: Optional[VisualizationPayload] = None

    model_config = ConfigDict(frozen=True)


class ReportResult(BaseModel):
    """Report plus what produced it: the intent, the SQL and the raw rows."""

    question: str
    intent: QuestionIntent
    sql: str
    data: List[Dict[str, Any]]
    report: Report

    model_config = ConfigDict(frozen=True)


# =========================
# API
# =========================
class QueryRequest(BaseModel):
    question: str = Field(min_length=1)

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Question is required")
        return value


class QueryResponse(BaseModel):
    question: str
    question_type: QuestionIntent = Field(alias="questionType")
    sql_query: str = Field(alias="sqlQuery")
    data: List[Dict[str, Any]]
    response: str
    visualization: Optional[VisualizationPayload] = None

    model_config = ConfigDict(populate_by_name=True)


class HealthResponse(BaseModel):
    time: datetime
