"""Narrow read-only query capability over the hosted survey database.

Handlers never write SQL. They build a query the same way the hosted
store's client library does::

    result = (
        store.table("surveys")
        .select("created_at, rating")
        .gte("created_at", since)
        .order("created_at")
        .execute()
    )
    result.raise_for_error()

and get back plain JSON-ready dicts. Tables are reflected from the live
database, so columns this service does not know about are passed through.
"""

import logging
import operator
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import MetaData, Table, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from database import engine
from errors import StoreQueryError
from services.timestamps import to_utc_iso

logger = logging.getLogger(__name__)

_OPERATORS = {
    "eq": operator.eq,
    "neq": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}


@dataclass
class QueryResult:
    data: list[dict[str, Any]] = field(default_factory=list)
    count: Optional[int] = None
    error: Optional[StoreQueryError] = None

    def raise_for_error(self) -> "QueryResult":
        if self.error is not None:
            raise self.error
        return self


def _normalize_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_utc_iso(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def _normalize_row(row) -> dict[str, Any]:
    return {key: _normalize_value(value) for key, value in row.items()}


def _error_message(exc: SQLAlchemyError) -> str:
    # DBAPI errors carry the driver's message on .orig; the wrapper text adds SQL and doc links
    orig = getattr(exc, "orig", None)
    return str(orig or exc).strip()


class TableQuery:
    """Builder for a single SELECT against one table. Not reusable across requests."""

    def __init__(self, store: "SurveyStore", table_name: str):
        self._store = store
        self._table_name = table_name
        self._columns: list[str] = []
        self._count: Optional[str] = None
        self._head = False
        self._filters: list[tuple[str, str, Any]] = []
        self._orderings: list[tuple[str, bool]] = []
        self._limit: Optional[int] = None

    def select(self, *columns: str, count: Optional[str] = None, head: bool = False) -> "TableQuery":
        names = [c.strip() for part in columns for c in part.split(",") if c.strip()]
        self._columns = [] if names == ["*"] else names
        if count not in (None, "exact"):
            raise ValueError(f"Unsupported count mode: {count}")
        self._count = count
        self._head = head
        return self

    def _filter(self, op: str, column: str, value: Any) -> "TableQuery":
        self._filters.append((op, column, value))
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        return self._filter("eq", column, value)

    def neq(self, column: str, value: Any) -> "TableQuery":
        return self._filter("neq", column, value)

    def gt(self, column: str, value: Any) -> "TableQuery":
        return self._filter("gt", column, value)

    def gte(self, column: str, value: Any) -> "TableQuery":
        return self._filter("gte", column, value)

    def lt(self, column: str, value: Any) -> "TableQuery":
        return self._filter("lt", column, value)

    def lte(self, column: str, value: Any) -> "TableQuery":
        return self._filter("lte", column, value)

    def order(self, column: str, desc: bool = False) -> "TableQuery":
        self._orderings.append((column, desc))
        return self

    def limit(self, n: int) -> "TableQuery":
        self._limit = n
        return self

    def _column(self, table: Table, name: str):
        try:
            return table.c[name]
        except KeyError:
            raise StoreQueryError(f"column {table.name}.{name} does not exist")

    def execute(self) -> QueryResult:
        """Run the query. Failures are returned in ``QueryResult.error``, never raised."""
        try:
            table = self._store.reflect(self._table_name)
            conditions = [
                _OPERATORS[op](self._column(table, name), value)
                for op, name, value in self._filters
            ]

            with self._store.engine.connect() as conn:
                count = None
                if self._count == "exact":
                    count_stmt = select(func.count()).select_from(table)
                    if conditions:
                        count_stmt = count_stmt.where(*conditions)
                    count = conn.execute(count_stmt).scalar_one()

                data: list[dict[str, Any]] = []
                if not self._head:
                    columns = [self._column(table, name) for name in self._columns] or [table]
                    stmt = select(*columns)
                    if conditions:
                        stmt = stmt.where(*conditions)
                    for name, desc in self._orderings:
                        column = self._column(table, name)
                        stmt = stmt.order_by(column.desc() if desc else column.asc())
                    if self._limit is not None:
                        stmt = stmt.limit(self._limit)
                    data = [_normalize_row(row._mapping) for row in conn.execute(stmt)]
        except StoreQueryError as e:
            logger.error(f"Query on '{self._table_name}' rejected: {e.message}")
            return QueryResult(error=e)
        except NoSuchTableError:
            message = f'relation "{self._table_name}" does not exist'
            logger.error(f"Query on '{self._table_name}' failed: {message}")
            return QueryResult(error=StoreQueryError(message))
        except SQLAlchemyError as e:
            message = _error_message(e)
            logger.error(f"Query on '{self._table_name}' failed: {message}")
            return QueryResult(error=StoreQueryError(message))

        logger.debug(
            f"Query on '{self._table_name}': {len(data)} rows"
            + (f", count={count}" if count is not None else "")
        )
        return QueryResult(data=data, count=count)


class SurveyStore:
    """Process-wide entry point to the store. Safe to share between requests."""

    def __init__(self, bind: Engine):
        self.engine = bind
        self._tables: dict[str, Table] = {}

    def reflect(self, table_name: str) -> Table:
        table = self._tables.get(table_name)
        if table is None:
            table = Table(table_name, MetaData(), autoload_with=self.engine)
            self._tables[table_name] = table
        return table

    def table(self, table_name: str) -> TableQuery:
        return TableQuery(self, table_name)


store = SurveyStore(engine)


def get_store() -> SurveyStore:
    return store
