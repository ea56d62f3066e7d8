"""
SQL compiler package for semantic SQL.
Deterministic pipeline: lexer -> parser -> resolver -> dialect unparser.
"""

from sql_compiler.errors import (
    ExecutionError,
    ParseError,
    ResolutionError,
    SemanticError,
    UnknownDialectError,
    UnparseError,
    ValidationError
)
from sql_compiler.types import AnsiSqlType, ColumnMetadata, JdbcType
from sql_compiler.parser import SemanticSqlParser, parse_expression, parse_semantic_sql
from sql_compiler.dialects import (
    DialectAdapter,
    available_dialects,
    get_dialect,
    register_dialect
)
from sql_compiler.resolver import SemanticResolver, resolve_query
from sql_compiler.unparser import SqlUnparser, unparse
from sql_compiler.compiler import SemanticSqlCompiler, generate_sql

__all__ = [
    'ExecutionError',
    'ParseError',
    'ResolutionError',
    'SemanticError',
    'UnknownDialectError',
    'UnparseError',
    'ValidationError',
    'AnsiSqlType',
    'ColumnMetadata',
    'JdbcType',
    'SemanticSqlParser',
    'parse_expression',
    'parse_semantic_sql',
    'DialectAdapter',
    'available_dialects',
    'get_dialect',
    'register_dialect',
    'SemanticResolver',
    'resolve_query',
    'SqlUnparser',
    'unparse',
    'SemanticSqlCompiler',
    'generate_sql'
]

__version__ = "1.0.0"
