"""
Database package: bounded connection pool, query execution and the
adapter that ties compiled semantic SQL to a database.
"""

from database.connections import (
    ConnectionPool,
    create_postgres_pool,
    postgres_connect_kwargs
)

from database.executor import (
    QueryResult,
    QueryExecutor
)

from database.adapter import DatabaseAdapter

__all__ = [
    'ConnectionPool',
    'create_postgres_pool',
    'postgres_connect_kwargs',
    'QueryResult',
    'QueryExecutor',
    'DatabaseAdapter'
]

__version__ = "1.0.0"
