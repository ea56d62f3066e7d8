"""
Pooled database connections.
psycopg2's ThreadedConnectionPool holds the connections; ConnectionPool gates
it so callers wait up to a timeout instead of failing on the first busy moment.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict

from psycopg2 import pool

from config import POSTGRES_CONFIG
from sql_compiler.errors import ExecutionError


class ConnectionPool:
    """
    Bounded pool over a psycopg2-style pool (getconn/putconn/closeall).
    Acquisition blocks up to `timeout` seconds; an exhausted pool raises
    ExecutionError.
    """

    def __init__(self, backend, max_size: int = 5, timeout: float = 10.0):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.logger = logging.getLogger(__name__)
        self.backend = backend
        self.max_size = max_size
        self.timeout = timeout
        self._slots = threading.BoundedSemaphore(max_size)
        self._closed = False

    def acquire(self):
        if self._closed:
            raise ExecutionError("Connection pool is closed")
        if not self._slots.acquire(timeout=self.timeout):
            raise ExecutionError(
                f"Connection pool exhausted: no connection available within {self.timeout}s "
                f"(max {self.max_size})"
            )
        try:
            return self.backend.getconn()
        except Exception:
            self._slots.release()
            raise

    def release(self, conn, discard: bool = False):
        """Hand a connection back; discarded connections are closed by the backend."""
        try:
            if self._closed:
                conn.close()
            else:
                self.backend.putconn(conn, close=discard)
        finally:
            self._slots.release()

    @contextmanager
    def connection(self):
        """
        Borrow a connection for one unit of work.
        Commits on success, rolls back on failure and always returns the
        connection. A connection whose rollback fails is discarded.
        """
        conn = self.acquire()
        broken = False
        try:
            yield conn
            conn.commit()
        except Exception:
            try:
                conn.rollback()
            except Exception as rollback_error:
                self.logger.error(f"Rollback failed, discarding connection: {rollback_error}")
                broken = True
            raise
        finally:
            self.release(conn, discard=broken)

    def close(self):
        """Close every pooled connection; borrowed ones close on release."""
        if self._closed:
            return
        self._closed = True
        self.backend.closeall()
        self.logger.info("Connection pool closed")


def postgres_connect_kwargs(config: Dict[str, Any] = POSTGRES_CONFIG) -> Dict[str, Any]:
    return {
        "host": config["host"],
        "port": config["port"],
        "database": config["database"],
        "user": config["user"],
        "password": config["password"],
        "connect_timeout": config.get("connect_timeout", 10),
        "options": f"-c statement_timeout={config.get('statement_timeout_ms', 30000)}"
    }


def create_postgres_pool(config: Dict[str, Any] = POSTGRES_CONFIG) -> ConnectionPool:
    """Pool of psycopg2 connections opened with a statement timeout."""
    logger = logging.getLogger(__name__)
    max_size = config.get("max_connections", 5)
    logger.info(f"Connecting to PostgreSQL: {config['database']}@{config['host']}:{config['port']}")
    try:
        backend = pool.ThreadedConnectionPool(
            minconn=min(config.get("min_connections", 1), max_size),
            maxconn=max_size,
            **postgres_connect_kwargs(config)
        )
    except Exception as e:
        logger.error(f"Failed to initialize PostgreSQL connection pool: {e}")
        raise ExecutionError(f"Could not connect to PostgreSQL: {e}") from e
    logger.info("PostgreSQL connection pool initialized successfully")
    return ConnectionPool(backend, max_size=max_size, timeout=config.get("pool_timeout", 10.0))
