# sql_compiler/compiler.py - SEMANTIC SQL ENTRY POINT

import logging
from typing import Any, Dict, Iterable, List, Optional

from config import COMPILER_CONFIG
from semantic_catalog.models import SemanticModel, SemanticModelLike
from semantic_catalog.registry import SemanticModelProvider, SemanticModelRegistry
from sql_compiler.dialects import DialectAdapter, get_dialect
from sql_compiler.parser import parse_semantic_sql
from sql_compiler.resolver import SemanticResolver
from sql_compiler.unparser import SqlUnparser


logger = logging.getLogger(__name__)


class SemanticSqlCompiler:
    """
    Compiles semantic SQL into dialect SQL.
    Parse -> resolve against the active semantic models -> unparse.
    Stateless per call; one instance can be shared.
    """

    def __init__(self, dialect=None, provider: Optional[SemanticModelProvider] = None):
        self.dialect: DialectAdapter = get_dialect(dialect or COMPILER_CONFIG["default_dialect"])
        self.provider = provider
        self.unparser = SqlUnparser(self.dialect)

    def _active_models(self, models: Optional[Iterable[SemanticModelLike]]) -> List[SemanticModel]:
        if models is not None:
            return SemanticModelRegistry(models).get_semantic_models()
        if self.provider is None:
            return []
        return list(self.provider.get_semantic_models())

    def compile_sql(self, semantic_sql: str,
                    models: Optional[Iterable[SemanticModelLike]] = None) -> Dict[str, Any]:
        """
        Compile one semantic SQL statement.
        Models passed here take precedence over the compiler's provider.
        """
        query = parse_semantic_sql(semantic_sql)
        resolved = SemanticResolver(self._active_models(models)).resolve(query)
        sql = self.unparser.unparse_query(resolved)

        logger.debug(f"Compiled semantic SQL for {self.dialect.key}:\n{sql}")

        return {
            "sql": sql,
            "metadata": {
                "models_used": list(resolved.models_used),
                "output_columns": [
                    item.alias or self.unparser.unparse_expression(item.expr)
                    for item in resolved.select_items
                ],
                "dialect": self.dialect.key
            }
        }

    def generate_sql(self, semantic_sql: str,
                     models: Optional[Iterable[SemanticModelLike]] = None) -> str:
        return self.compile_sql(semantic_sql, models)["sql"]


def generate_sql(semantic_sql: str, models: Iterable[SemanticModelLike],
                 dialect="postgresql") -> str:
    """Compile semantic SQL against the given models for one dialect."""
    return SemanticSqlCompiler(dialect).generate_sql(semantic_sql, models)
