"""
Configuration for the semantic SQL compiler.
Values come from the environment (.env supported).
"""

import logging
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


# PostgreSQL Configuration
POSTGRES_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "5432")),
    "database": os.getenv("DB_NAME", "semantic_db"),
    "user": os.getenv("DB_USER", "postgres"),
    "password": os.getenv("DB_PASSWORD", "postgres"),
    "min_connections": int(os.getenv("DB_MIN_CONN", "1")),
    "max_connections": int(os.getenv("DB_MAX_CONN", "5")),
    "pool_timeout": float(os.getenv("DB_POOL_TIMEOUT", "10")),  # seconds
    "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", "10")),  # seconds
    "statement_timeout_ms": int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "30000"))
}

# Compiler Configuration
COMPILER_CONFIG = {
    "default_dialect": os.getenv("SQL_DIALECT", "postgresql"),
    "semantic_models_path": os.getenv("SEMANTIC_MODELS_PATH", "")
}

# Logging Configuration
LOG_CONFIG = {
    "level": os.getenv("LOG_LEVEL", "INFO").upper(),
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
}


def configure_logging(level: str = None):
    """Configure root logging from LOG_CONFIG."""
    logging.basicConfig(
        level=level or LOG_CONFIG["level"],
        format=LOG_CONFIG["format"]
    )
