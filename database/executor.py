# database/executor.py - READ QUERY EXECUTION

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from database.connections import ConnectionPool
from sql_compiler.dialects import DialectAdapter, get_dialect
from sql_compiler.errors import ExecutionError
from sql_compiler.types import AnsiSqlType, ColumnMetadata


@dataclass
class QueryResult:
    """Rows as tuples plus one ColumnMetadata per column."""
    rows: List[tuple] = field(default_factory=list)
    columns: List[ColumnMetadata] = field(default_factory=list)

    @property
    def labels(self) -> List[str]:
        return [c.column_label for c in self.columns]

    def to_dicts(self) -> List[Dict[str, Any]]:
        """Rows keyed by column label. Labels must be unique."""
        labels = self.labels
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        if duplicates:
            raise ExecutionError(
                f"Duplicate column labels {duplicates}; alias the columns to fetch rows by label"
            )
        return [dict(zip(labels, row)) for row in self.rows]


def _plain(value):
    if isinstance(value, memoryview):
        return value.tobytes()
    return value


class QueryExecutor:
    """
    Runs read queries on pooled connections.
    One connection and one cursor per call, released on success or failure.
    No retries.
    """

    def __init__(self, pool: ConnectionPool, dialect="postgresql"):
        self.pool = pool
        self.dialect: DialectAdapter = get_dialect(dialect)
        self.logger = logging.getLogger(__name__)

    def _run(self, sql: str, fetch: bool) -> QueryResult:
        self.logger.debug(f"Executing SQL:\n{sql}")
        try:
            with self.pool.connection() as conn:
                cur = conn.cursor()
                try:
                    cur.execute(sql)
                    columns = self._column_metadata(cur.description)
                    rows = [tuple(_plain(v) for v in row) for row in cur.fetchall()] if fetch else []
                finally:
                    cur.close()
        except ExecutionError:
            raise
        except Exception as e:
            self.logger.error(f"Query failed: {e}\nSQL: {sql}")
            raise ExecutionError(f"Query execution failed: {e}", sql=sql) from e

        self.logger.info(f"Query returned {len(rows)} rows, {len(columns)} columns")
        return QueryResult(rows, columns)

    def execute(self, sql: str) -> QueryResult:
        return self._run(sql, fetch=True)

    def execute_query(self, sql: str) -> List[Dict[str, Any]]:
        """Rows as dicts keyed by column label, in column order."""
        result = self.execute(sql)
        try:
            return result.to_dicts()
        except ExecutionError as e:
            raise ExecutionError(str(e), sql=sql) from e

    def get_column_metadata(self, sql: str) -> List[ColumnMetadata]:
        return self._run(sql, fetch=False).columns

    def _ansi_type(self, type_code) -> Tuple[Optional[str], AnsiSqlType]:
        if isinstance(type_code, str):
            return type_code, self.dialect.to_ansi_sql_type(type_code)
        if isinstance(type_code, int) and not isinstance(type_code, bool):
            name = self.dialect.native_type_name(type_code)
            if name is not None:
                return name, self.dialect.to_ansi_sql_type(name)
            return None, AnsiSqlType.from_column_type(type_code)
        return None, AnsiSqlType.UNKNOWN

    def _column_metadata(self, description) -> List[ColumnMetadata]:
        columns = []
        for index, desc in enumerate(description or (), start=1):
            name, type_code, display_size, _, precision, scale, null_ok = tuple(desc)[:7]
            type_name, ansi_type = self._ansi_type(type_code)
            columns.append(ColumnMetadata(
                column_name=name,
                column_label=name,
                column_type=type_code if isinstance(type_code, int) and not isinstance(type_code, bool) else None,
                column_type_name=type_name,
                ansi_sql_type=ansi_type,
                precision=precision,
                scale=scale,
                nullable=null_ok,
                display_size=display_size,
                column_index=index
            ))
        return columns
