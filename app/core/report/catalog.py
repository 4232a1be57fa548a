"""
CATALOG MODULE - Find the business tables in a discovered schema

Purpose:
    The warehouse tables have abbreviated, inconsistent names ("ordrs",
    "prdct_catalog", "cust_info", "daily_metrics"). Queries need to know which
    physical table plays which role before they can be written.

Data Flow:
    introspection {table: [columns]} → match role keywords → SchemaCatalog
                                                                 ↓
                                                     plan.py asks for tables by role

A role maps to at most one table: the first table (in introspection order)
whose lowercased name contains one of the role's keywords. Roles with no
matching table stay unresolved and the planner refuses to use them.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from app.core.errors import SchemaResolutionError
from app.core.schemas import TableRole


# {table_name: [{column_name, data_type, sampleValues}]} as produced by introspection
RawSchemaInfo = Dict[str, List[Dict[str, Any]]]


# Abbreviated keyword first: it is what the reference warehouse uses
ROLE_KEYWORDS: Dict[TableRole, Tuple[str, ...]] = {
    TableRole.ORDERS: ("ordr", "order"),
    TableRole.PRODUCTS: ("prdct", "product"),
    TableRole.CUSTOMERS: ("cust",),
    TableRole.METRICS: ("metric",),
}


class ColumnInfo(BaseModel):
    name: str
    data_type: Optional[str] = None
    sample_values: Tuple[Any, ...] = ()

    model_config = ConfigDict(frozen=True)


class CatalogTable(BaseModel):
    name: str
    columns: Tuple[ColumnInfo, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]


class SchemaCatalog(BaseModel):
    """Role → discovered table lookup for a single request."""

    tables: Dict[TableRole, CatalogTable] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def table(self, role: TableRole) -> Optional[CatalogTable]:
        return self.tables.get(role)

    def is_resolved(self, role: TableRole) -> bool:
        return role in self.tables

    def require(self, *roles: TableRole, intent: Optional[str] = None) -> Dict[TableRole, str]:
        """
        Return physical table names for every role, or fail if any is missing.

        Raises:
            SchemaResolutionError: naming all unresolved roles at once
        """
        missing = [role.value for role in roles if role not in self.tables]
        if missing:
            raise SchemaResolutionError(missing, intent=intent)
        return {role: self.tables[role].name for role in roles}


def _to_table(name: str, columns: Iterable[Dict[str, Any]]) -> CatalogTable:
    return CatalogTable(
        name=name,
        columns=tuple(
            ColumnInfo(
                name=column["column_name"],
                data_type=column.get("data_type"),
                sample_values=tuple(column.get("sampleValues") or ()),
            )
            for column in columns
        ),
    )


def match_role(table_name: str) -> List[TableRole]:
    """
    Return every role whose keywords appear in the table name.

    Examples:
        "ordrs" → [TableRole.ORDERS]
        "Cust_Info" → [TableRole.CUSTOMERS]
        "audit_log" → []
    """
    lowered = table_name.lower()
    return [
        role
        for role, keywords in ROLE_KEYWORDS.items()
        if any(keyword in lowered for keyword in keywords)
    ]


def build_catalog(introspection: RawSchemaInfo) -> SchemaCatalog:
    """
    Resolve table roles from raw introspection output.

    Args:
        introspection: {table_name: [{column_name, data_type, sampleValues}]}

    Returns:
        SchemaCatalog with one table per role that could be matched
    """
    resolved: Dict[TableRole, CatalogTable] = {}

    for table_name, columns in introspection.items():
        for role in match_role(table_name):
            # First match wins
            if role not in resolved:
                resolved[role] = _to_table(table_name, columns or [])

    return SchemaCatalog(tables=resolved)
