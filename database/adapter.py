"""
Database adapter facade.
One object per database: its dialect, the semantic models, and an executor.
"""

import logging
from typing import Any, Dict, List, Optional

from database.executor import QueryExecutor, QueryResult
from semantic_catalog.registry import SemanticModelProvider
from sql_compiler.compiler import SemanticSqlCompiler
from sql_compiler.types import ColumnMetadata


class DatabaseAdapter:
    """Compiles semantic SQL for its dialect and runs it through the executor."""

    def __init__(self, dialect, provider: SemanticModelProvider,
                 executor: Optional[QueryExecutor] = None):
        self.compiler = SemanticSqlCompiler(dialect, provider)
        self.dialect = self.compiler.dialect
        self.provider = provider
        self.executor = executor
        self.logger = logging.getLogger(__name__)

    def generate_sql(self, semantic_sql: str) -> str:
        return self.compiler.generate_sql(semantic_sql)

    def _require_executor(self) -> QueryExecutor:
        if self.executor is None:
            raise RuntimeError(f"No executor configured for dialect '{self.dialect.key}'")
        return self.executor

    def execute(self, semantic_sql: str) -> QueryResult:
        sql = self.generate_sql(semantic_sql)
        self.logger.info(f"Executing compiled semantic query on {self.dialect.key}")
        return self._require_executor().execute(sql)

    def execute_query(self, semantic_sql: str) -> List[Dict[str, Any]]:
        sql = self.generate_sql(semantic_sql)
        self.logger.info(f"Executing compiled semantic query on {self.dialect.key}")
        return self._require_executor().execute_query(sql)

    def get_column_metadata(self, semantic_sql: str) -> List[ColumnMetadata]:
        return self._require_executor().get_column_metadata(self.generate_sql(semantic_sql))
