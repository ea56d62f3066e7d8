"""
ANSI SQL type normalization.
Maps database-native column type codes and names onto one canonical set of
types, and describes result columns.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class AnsiSqlType(str, Enum):
    """Canonical column types shared by every dialect."""
    # character
    CHAR = "CHAR"
    VARCHAR = "VARCHAR"
    TEXT = "TEXT"

    # numeric
    TINYINT = "TINYINT"
    SMALLINT = "SMALLINT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    DECIMAL = "DECIMAL"
    NUMERIC = "NUMERIC"
    REAL = "REAL"
    DOUBLE = "DOUBLE"
    FLOAT = "FLOAT"

    BOOLEAN = "BOOLEAN"

    # date/time
    DATE = "DATE"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"

    # binary
    BINARY = "BINARY"
    VARBINARY = "VARBINARY"
    BLOB = "BLOB"

    NULL = "NULL"
    UNKNOWN = "UNKNOWN"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_column_type(cls, column_type: Any) -> "AnsiSqlType":
        """
        Map a JDBC type code (java.sql.Types) to its ANSI type.
        Total: unmapped codes and non-integer input give UNKNOWN.
        """
        if isinstance(column_type, bool) or not isinstance(column_type, int):
            return cls.UNKNOWN
        return _JDBC_TYPES.get(column_type, cls.UNKNOWN)

    @classmethod
    def from_type_name(cls, type_name: Optional[str]) -> "AnsiSqlType":
        """Map a generic SQL type name such as 'VARCHAR(20)' to its ANSI type."""
        if not type_name:
            return cls.UNKNOWN
        base = type_name.strip().upper().split("(")[0].strip()
        if base in cls.__members__:
            return cls[base]
        return _GENERIC_NAMES.get(base, cls.UNKNOWN)

    @property
    def is_numeric(self) -> bool:
        return self in _NUMERIC

    @property
    def is_character(self) -> bool:
        return self in (AnsiSqlType.CHAR, AnsiSqlType.VARCHAR, AnsiSqlType.TEXT)

    @property
    def is_temporal(self) -> bool:
        return self in (AnsiSqlType.DATE, AnsiSqlType.TIME, AnsiSqlType.TIMESTAMP)


class JdbcType:
    """java.sql.Types constants."""
    BIT = -7
    TINYINT = -6
    SMALLINT = 5
    INTEGER = 4
    BIGINT = -5
    FLOAT = 6
    REAL = 7
    DOUBLE = 8
    NUMERIC = 2
    DECIMAL = 3
    CHAR = 1
    VARCHAR = 12
    LONGVARCHAR = -1
    DATE = 91
    TIME = 92
    TIMESTAMP = 93
    BINARY = -2
    VARBINARY = -3
    LONGVARBINARY = -4
    NULL = 0
    OTHER = 1111
    BLOB = 2004
    CLOB = 2005
    BOOLEAN = 16
    NCHAR = -15
    NVARCHAR = -9
    LONGNVARCHAR = -16
    NCLOB = 2011
    TIME_WITH_TIMEZONE = 2013
    TIMESTAMP_WITH_TIMEZONE = 2014


_JDBC_TYPES: Dict[int, AnsiSqlType] = {
    JdbcType.CHAR: AnsiSqlType.CHAR,
    JdbcType.NCHAR: AnsiSqlType.CHAR,
    JdbcType.VARCHAR: AnsiSqlType.VARCHAR,
    JdbcType.NVARCHAR: AnsiSqlType.VARCHAR,
    JdbcType.LONGVARCHAR: AnsiSqlType.TEXT,
    JdbcType.LONGNVARCHAR: AnsiSqlType.TEXT,
    JdbcType.CLOB: AnsiSqlType.TEXT,
    JdbcType.NCLOB: AnsiSqlType.TEXT,
    JdbcType.TINYINT: AnsiSqlType.TINYINT,
    JdbcType.SMALLINT: AnsiSqlType.SMALLINT,
    JdbcType.INTEGER: AnsiSqlType.INTEGER,
    JdbcType.BIGINT: AnsiSqlType.BIGINT,
    JdbcType.DECIMAL: AnsiSqlType.DECIMAL,
    JdbcType.NUMERIC: AnsiSqlType.NUMERIC,
    JdbcType.REAL: AnsiSqlType.REAL,
    JdbcType.DOUBLE: AnsiSqlType.DOUBLE,
    JdbcType.FLOAT: AnsiSqlType.FLOAT,
    JdbcType.BOOLEAN: AnsiSqlType.BOOLEAN,
    JdbcType.BIT: AnsiSqlType.BOOLEAN,
    JdbcType.DATE: AnsiSqlType.DATE,
    JdbcType.TIME: AnsiSqlType.TIME,
    JdbcType.TIME_WITH_TIMEZONE: AnsiSqlType.TIME,
    JdbcType.TIMESTAMP: AnsiSqlType.TIMESTAMP,
    JdbcType.TIMESTAMP_WITH_TIMEZONE: AnsiSqlType.TIMESTAMP,
    JdbcType.BINARY: AnsiSqlType.BINARY,
    JdbcType.VARBINARY: AnsiSqlType.VARBINARY,
    JdbcType.LONGVARBINARY: AnsiSqlType.BLOB,
    JdbcType.BLOB: AnsiSqlType.BLOB,
    JdbcType.NULL: AnsiSqlType.NULL,
}

_NUMERIC = frozenset([
    AnsiSqlType.TINYINT, AnsiSqlType.SMALLINT, AnsiSqlType.INTEGER, AnsiSqlType.BIGINT,
    AnsiSqlType.DECIMAL, AnsiSqlType.NUMERIC, AnsiSqlType.REAL, AnsiSqlType.DOUBLE,
    AnsiSqlType.FLOAT,
])

# Common spellings that are not ANSI names themselves
_GENERIC_NAMES: Dict[str, AnsiSqlType] = {
    "INT": AnsiSqlType.INTEGER,
    "CHARACTER": AnsiSqlType.CHAR,
    "CHARACTER VARYING": AnsiSqlType.VARCHAR,
    "STRING": AnsiSqlType.VARCHAR,
    "BOOL": AnsiSqlType.BOOLEAN,
    "DOUBLE PRECISION": AnsiSqlType.DOUBLE,
    "DATETIME": AnsiSqlType.TIMESTAMP,
    "CLOB": AnsiSqlType.TEXT,
    "BYTEA": AnsiSqlType.BLOB,
}


class ColumnMetadata(BaseModel):
    """Description of one result column. Built once per executed query."""
    model_config = ConfigDict(frozen=True)

    column_name: str = Field(..., description="Column name as reported by the driver")
    column_label: str = Field(..., description="Label used as the row key")
    column_type: Optional[int] = Field(None, description="Native type code")
    column_type_name: Optional[str] = Field(None, description="Native type name")
    ansi_sql_type: AnsiSqlType = Field(AnsiSqlType.UNKNOWN, description="Normalized type")
    precision: Optional[int] = None
    scale: Optional[int] = None
    nullable: Optional[bool] = None
    display_size: Optional[int] = None
    column_index: int = Field(..., ge=1, description="1-based position in the result")
