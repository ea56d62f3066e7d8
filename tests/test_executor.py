"""
Tests for the connection pool, the query executor and the database adapter.
SQLite in-memory databases stand in for a real server.
"""

import sqlite3

import psycopg2
import pytest
from psycopg2.pool import ThreadedConnectionPool
from database.adapter import DatabaseAdapter
from database.connections import ConnectionPool, create_postgres_pool, postgres_connect_kwargs
from database.executor import QueryExecutor
from semantic_catalog.catalog import create_sample_models, create_sample_registry
from sql_compiler.compiler import generate_sql
from sql_compiler.errors import ExecutionError
from sql_compiler.types import AnsiSqlType


ORDERS = [
    (1, 10, 120.0, "2024-01-01", "shipped", 1, 1),
    (2, 10, 80.0, "2024-01-01", "pending", 0, 0),
    (3, 20, 50.0, "2024-01-02", "shipped", 1, 0),
    (4, 30, 300.0, "2024-01-02", "cancelled", 0, 1),
]

CUSTOMERS = [
    (10, "us", "Ada"),
    (20, "de", "Grace"),
    (30, "us", "Linus"),
]

BALANCES = [
    (1, 10, "2024-01-01", 100.0),
    (1, 10, "2024-01-02", 150.0),
    (2, 20, "2024-01-01", 70.0),
    (2, 20, "2024-01-02", 50.0),
]


def seeded_connection(balance_copies: int = 1) -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    # day buckets over ISO date strings
    conn.create_function("DATE_TRUNC", 2, lambda unit, value: value[:10] if value else value)
    conn.execute(
        "CREATE TABLE orders (order_id INTEGER, customer_id INTEGER, revenue_amount REAL, "
        "order_date TEXT, status TEXT, is_promo INTEGER, has_discount INTEGER)"
    )
    conn.execute("CREATE TABLE customers (customer_id INTEGER, country_code TEXT, full_name TEXT)")
    conn.execute(
        "CREATE TABLE account_balances (account_id INTEGER, customer_id INTEGER, "
        "balance_date TEXT, balance REAL)"
    )
    conn.executemany("INSERT INTO orders VALUES (?, ?, ?, ?, ?, ?, ?)", ORDERS)
    conn.executemany("INSERT INTO customers VALUES (?, ?, ?)", CUSTOMERS)
    conn.executemany("INSERT INTO account_balances VALUES (?, ?, ?, ?)", BALANCES * balance_copies)
    conn.commit()
    return conn


class SqlitePool:
    """In-memory stand-in for a psycopg2 pool (getconn/putconn/closeall)."""

    def __init__(self, connect):
        self.connect = connect
        self.idle = []
        self.opened = 0
        self.discarded = []

    def getconn(self):
        if self.idle:
            return self.idle.pop()
        self.opened += 1
        return self.connect()

    def putconn(self, conn, close=False):
        if close:
            self.discarded.append(conn)
        else:
            self.idle.append(conn)

    def closeall(self):
        self.idle = []


class RecordingConnection:
    """Connection that records how each unit of work ended."""

    def __init__(self, rollback_fails: bool = False):
        self.calls = []
        self.rollback_fails = rollback_fails

    def commit(self):
        self.calls.append("commit")

    def rollback(self):
        self.calls.append("rollback")
        if self.rollback_fails:
            raise sqlite3.OperationalError("connection already closed")

    def close(self):
        self.calls.append("close")


def sqlite_executor(balance_copies: int = 1) -> QueryExecutor:
    conn = seeded_connection(balance_copies)
    return QueryExecutor(ConnectionPool(SqlitePool(lambda: conn), max_size=1, timeout=0.5), "postgresql")


class TestConnectionPool:
    """Test pool bounds, transaction handling and release."""

    def test_reuses_connections(self):
        """Test that a released connection is handed out again."""
        backend = SqlitePool(lambda: sqlite3.connect(":memory:"))
        pool = ConnectionPool(backend, max_size=2, timeout=0.1)
        with pool.connection() as first:
            pass
        with pool.connection() as second:
            assert second is first
        assert backend.opened == 1
        pool.close()

    def test_commits_on_success(self):
        """Test that a finished unit of work ends its transaction."""
        conn = RecordingConnection()
        pool = ConnectionPool(SqlitePool(lambda: conn), max_size=1, timeout=0.05)
        with pool.connection():
            pass
        assert conn.calls == ["commit"]

    def test_exhaustion(self):
        """Test that an exhausted pool raises after the timeout."""
        pool = ConnectionPool(SqlitePool(lambda: sqlite3.connect(":memory:")), max_size=1, timeout=0.05)
        conn = pool.acquire()
        with pytest.raises(ExecutionError):
            pool.acquire()
        pool.release(conn)
        pool.release(pool.acquire())
        pool.close()

    def test_released_on_failure(self):
        """Test that a failing block rolls back and still returns its connection."""
        conn = RecordingConnection()
        pool = ConnectionPool(SqlitePool(lambda: conn), max_size=1, timeout=0.05)
        with pytest.raises(RuntimeError):
            with pool.connection():
                raise RuntimeError("boom")
        assert conn.calls == ["rollback"]
        with pool.connection() as again:
            assert again is conn

    def test_failed_rollback_discards_connection(self):
        """Test that a connection whose rollback fails is dropped and its slot freed."""
        backend = SqlitePool(lambda: RecordingConnection(rollback_fails=True))
        pool = ConnectionPool(backend, max_size=1, timeout=0.05)
        with pytest.raises(RuntimeError):
            with pool.connection() as broken:
                raise RuntimeError("server closed the connection")
        assert backend.discarded == [broken]
        assert backend.idle == []
        with pool.connection() as fresh:
            assert fresh is not broken
        assert backend.opened == 2

    def test_closed_pool(self):
        """Test that a closed pool refuses new work."""
        pool = ConnectionPool(SqlitePool(lambda: sqlite3.connect(":memory:")), max_size=1)
        pool.close()
        with pytest.raises(ExecutionError):
            pool.acquire()

    def test_postgres_kwargs(self):
        """Test psycopg2 connection arguments carry the statement timeout."""
        kwargs = postgres_connect_kwargs({
            "host": "db", "port": 5433, "database": "analytics", "user": "reader",
            "password": "secret", "statement_timeout_ms": 5000
        })
        assert kwargs["options"] == "-c statement_timeout=5000"
        assert kwargs["connect_timeout"] == 10
        assert kwargs["port"] == 5433

    def test_create_postgres_pool(self, monkeypatch):
        """Test that the postgres pool is a psycopg2 threaded pool opened with a statement timeout."""
        calls = []

        def fake_connect(*args, **kwargs):
            calls.append(kwargs)
            return sqlite3.connect(":memory:")

        monkeypatch.setattr(psycopg2, "connect", fake_connect)
        pool = create_postgres_pool({
            "host": "db", "port": 5432, "database": "analytics", "user": "reader",
            "password": "secret", "min_connections": 1, "max_connections": 2, "pool_timeout": 0.1
        })
        assert isinstance(pool.backend, ThreadedConnectionPool)
        assert pool.max_size == 2
        assert len(calls) == 1
        assert calls[0]["options"] == "-c statement_timeout=30000"
        pool.close()

    def test_create_postgres_pool_failure(self, monkeypatch):
        """Test that an unreachable server surfaces as ExecutionError."""
        def refuse(*args, **kwargs):
            raise psycopg2.OperationalError("could not connect to server")

        monkeypatch.setattr(psycopg2, "connect", refuse)
        with pytest.raises(ExecutionError):
            create_postgres_pool({
                "host": "db", "port": 5432, "database": "analytics", "user": "reader",
                "password": "secret"
            })


class TestQueryExecutor:
    """Test executing SQL and describing results."""

    def test_execute_query_rows(self):
        """Test rows keyed by column label in column order."""
        executor = sqlite_executor()
        rows = executor.execute_query(
            "SELECT order_id, status FROM orders WHERE status = 'shipped' ORDER BY order_id"
        )
        assert rows == [{"order_id": 1, "status": "shipped"}, {"order_id": 3, "status": "shipped"}]
        assert list(rows[0]) == ["order_id", "status"]

    def test_column_metadata(self):
        """Test column descriptions."""
        executor = sqlite_executor()
        columns = executor.get_column_metadata("SELECT order_id, status AS order_status FROM orders")
        assert [c.column_label for c in columns] == ["order_id", "order_status"]
        assert [c.column_index for c in columns] == [1, 2]
        # sqlite reports no type codes
        assert all(c.ansi_sql_type == AnsiSqlType.UNKNOWN for c in columns)

    def test_type_codes(self):
        """Test ANSI mapping of driver type codes."""
        executor = sqlite_executor()
        assert executor._ansi_type(23) == ("int4", AnsiSqlType.INTEGER)
        assert executor._ansi_type(1082) == ("date", AnsiSqlType.DATE)
        assert executor._ansi_type(12345) == (None, AnsiSqlType.UNKNOWN)
        assert executor._ansi_type("varchar") == ("varchar", AnsiSqlType.VARCHAR)
        assert executor._ansi_type(None) == (None, AnsiSqlType.UNKNOWN)

    def test_driver_error_is_wrapped(self):
        """Test that driver errors carry the failing SQL."""
        executor = sqlite_executor()
        with pytest.raises(ExecutionError) as exc_info:
            executor.execute("SELECT * FROM missing_table")
        assert exc_info.value.sql == "SELECT * FROM missing_table"
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)
        # the connection went back to the pool
        assert executor.execute_query("SELECT 1 AS one") == [{"one": 1}]


class TestCompiledQueries:
    """Test compiled semantic SQL against seeded data."""

    def test_grouped_revenue(self):
        """Test a grouped measure with a measure filter."""
        sql = generate_sql(
            "SELECT status, total_revenue FROM orders WHERE total_revenue > 100 ORDER BY status",
            create_sample_models()
        )
        rows = sqlite_executor().execute_query(sql)
        assert rows == [
            {"status": "cancelled", "total_revenue": 300.0},
            {"status": "shipped", "total_revenue": 170.0},
        ]

    def test_mixed_between_filter(self):
        """Test a BETWEEN filter combined with boolean dimensions."""
        sql = generate_sql(
            "SELECT status, order_count FROM orders "
            "WHERE order_id BETWEEN 2 AND 3 OR is_promo AND has_discount ORDER BY status",
            create_sample_models()
        )
        rows = sqlite_executor().execute_query(sql)
        assert rows == [
            {"status": "pending", "order_count": 1},
            {"status": "shipped", "order_count": 2},
        ]

    def test_join_across_models(self):
        """Test revenue by customer country."""
        sql = generate_sql(
            "SELECT country, total_revenue FROM orders, customers ORDER BY country",
            create_sample_models()
        )
        rows = sqlite_executor().execute_query(sql)
        assert rows == [
            {"country": "DE", "total_revenue": 50.0},
            {"country": "US", "total_revenue": 500.0},
        ]

    def test_non_additive_duplicates(self):
        """Test that duplicated snapshot rows do not change a non-additive measure."""
        sql = generate_sql("SELECT closing_balance FROM account_balances", create_sample_models())
        once = sqlite_executor(balance_copies=1).execute_query(sql)
        thrice = sqlite_executor(balance_copies=3).execute_query(sql)
        # latest balance per account: 150 + 50
        assert once == [{"closing_balance": 200.0}]
        assert thrice == once

    def test_non_additive_grouped_by_time(self):
        """Test that each day keeps its own closing balance."""
        sql = generate_sql(
            "SELECT balance_date, closing_balance FROM account_balances ORDER BY balance_date",
            create_sample_models()
        )
        expected = [
            {"balance_date": "2024-01-01", "closing_balance": 170.0},
            {"balance_date": "2024-01-02", "closing_balance": 200.0},
        ]
        assert sqlite_executor().execute_query(sql) == expected
        assert sqlite_executor(balance_copies=2).execute_query(sql) == expected

    def test_non_additive_filtered_by_time(self):
        """Test that filtering to an earlier day returns that day's balance."""
        sql = generate_sql(
            "SELECT closing_balance FROM account_balances WHERE balance_date = '2024-01-01'",
            create_sample_models()
        )
        assert sqlite_executor().execute_query(sql) == [{"closing_balance": 170.0}]

    def test_duplicate_labels_rejected(self):
        """Test that rows cannot be keyed by a label used twice."""
        executor = sqlite_executor()
        with pytest.raises(ExecutionError):
            executor.execute_query("SELECT status AS label, order_id AS label FROM orders")
        result = executor.execute("SELECT status AS label, order_id AS label FROM orders")
        assert len(result.rows[0]) == 2

    def test_database_adapter(self):
        """Test compiling and executing through the adapter."""
        adapter = DatabaseAdapter("postgresql", create_sample_registry(), sqlite_executor())
        rows = adapter.execute_query("SELECT status, order_count FROM ? ORDER BY status")
        assert [row["status"] for row in rows] == ["cancelled", "pending", "shipped"]
        assert [row["order_count"] for row in rows] == [1, 1, 2]

        columns = adapter.get_column_metadata("SELECT status, order_count FROM ?")
        assert [c.column_label for c in columns] == ["status", "order_count"]

    def test_adapter_without_executor(self):
        """Test that execution needs an executor."""
        adapter = DatabaseAdapter("postgresql", create_sample_registry())
        assert adapter.generate_sql("SELECT status FROM orders").startswith("SELECT status")
        with pytest.raises(RuntimeError):
            adapter.execute_query("SELECT status FROM orders")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
