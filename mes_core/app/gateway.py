"""
Query / Execute Gateway
=======================
The narrow data-access facade every endpoint goes through:

- query():               read-only, zero or more rows as dicts
- scalar():              read-only, first column of the first row
- execute():             one DML statement, reports rows affected
- execute_transaction(): an ordered list of statements, all or nothing
- transaction():         an open unit of work for statements that depend on
                         each other's outcome (ledger primitives)

All values are bound parameters, never string-concatenated. The first four
report driver failures in their result instead of raising; inside
transaction() a driver error raises so the block rolls back.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


@dataclass
class Statement:
    sql: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class QueryResult:
    success: bool
    data: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class ExecuteResult:
    success: bool
    rows_affected: int = 0
    error: Optional[str] = None


def _first_line(sql: str) -> str:
    for line in sql.strip().splitlines():
        if line.strip():
            return line.strip()
    return ""


class Transaction:
    """Statements bound to one open connection/transaction."""

    def __init__(self, conn: Connection):
        self._conn = conn

    def execute(self, sql: str, params: Optional[Dict[str, Any]] = None) -> int:
        result = self._conn.execute(text(sql), params or {})
        return result.rowcount

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        result = self._conn.execute(text(sql), params or {})
        return [dict(row) for row in result.mappings()]

    def scalar(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._conn.execute(text(sql), params or {}).scalar()


class QueryGateway:

    def __init__(self, engine: Engine):
        self.engine = engine

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Commit when the block exits normally, roll back when it raises."""
        with self.engine.begin() as conn:
            yield Transaction(conn)

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> QueryResult:
        try:
            with self.engine.connect() as conn:
                rows = Transaction(conn).query(sql, params)
            return QueryResult(success=True, data=rows)
        except SQLAlchemyError as exc:
            logger.error("Query failed [%s]: %s", _first_line(sql), exc)
            return QueryResult(success=False, error=str(exc))

    def scalar(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Any:
        result = self.query(sql, params)
        if result.success and result.data:
            first_row = result.data[0]
            return next(iter(first_row.values()), None)
        return None

    def execute(self, sql: str, params: Optional[Dict[str, Any]] = None) -> ExecuteResult:
        try:
            with self.transaction() as tx:
                rows = tx.execute(sql, params)
            return ExecuteResult(success=True, rows_affected=rows)
        except SQLAlchemyError as exc:
            logger.error("Execute failed [%s]: %s", _first_line(sql), exc)
            return ExecuteResult(success=False, error=str(exc))

    def execute_transaction(self, statements: Sequence[Statement]) -> ExecuteResult:
        try:
            total = 0
            with self.transaction() as tx:
                for stmt in statements:
                    total += tx.execute(stmt.sql, stmt.params)
            return ExecuteResult(success=True, rows_affected=total)
        except SQLAlchemyError as exc:
            logger.error("Transaction of %d statements rolled back: %s", len(statements), exc)
            return ExecuteResult(success=False, error=str(exc))


_default_gateway: Optional[QueryGateway] = None


def get_gateway() -> QueryGateway:
    """FastAPI dependency returning the process-wide gateway."""
    global _default_gateway
    if _default_gateway is None:
        from .db import engine
        _default_gateway = QueryGateway(engine)
    return _default_gateway
