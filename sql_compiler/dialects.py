"""
Dialect adapters.

Each supported database family is one DialectAdapter value registered under
a stable key. An adapter knows how to quote identifiers, bucket time values,
map native type names to ANSI types, render literals, LIMIT clauses and
aggregations, and how to render every operator kind. The operator and
aggregation tables are checked for completeness when an adapter is built.
"""

import dataclasses
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from semantic_catalog.models import AggregationType, TimeGranularity
from sql_compiler.ast_nodes import OperatorKind, OPERATOR_PRECEDENCE, Precedence
from sql_compiler.errors import UnknownDialectError, UnparseError
from sql_compiler.types import AnsiSqlType


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedOperand:
    """An operand already rendered to SQL, plus what is needed to decide on parentheses."""
    sql: str
    precedence: int = Precedence.PRIMARY
    operator: Optional[OperatorKind] = None
    has_logical: bool = False


OperatorRenderer = Callable[["DialectAdapter", Sequence[RenderedOperand]], str]
AggregationRenderer = Callable[["DialectAdapter", str, bool], str]
GranularityRenderer = Callable[[str, TimeGranularity], str]


def parenthesize(operand: RenderedOperand, wrap: bool) -> str:
    return f"({operand.sql})" if wrap else operand.sql


# generic operator renderers

def infix(symbol: str, op: OperatorKind) -> OperatorRenderer:
    """Left-associative binary operator."""
    level = OPERATOR_PRECEDENCE[op]

    def render(dialect: "DialectAdapter", operands: Sequence[RenderedOperand]) -> str:
        left, right = operands
        return (f"{parenthesize(left, left.precedence < level)} {symbol} "
                f"{parenthesize(right, right.precedence <= level)}")
    return render


def comparison(symbol: str) -> OperatorRenderer:
    """Comparisons do not chain without parentheses."""
    def render(dialect: "DialectAdapter", operands: Sequence[RenderedOperand]) -> str:
        left, right = operands
        return (f"{parenthesize(left, left.precedence <= Precedence.COMPARISON)} {symbol} "
                f"{parenthesize(right, right.precedence <= Precedence.COMPARISON)}")
    return render


def logical(op: OperatorKind) -> OperatorRenderer:
    """
    AND/OR. Besides precedence, an AND under an OR and a BETWEEN under
    either are parenthesized so every dialect reads them the same way.
    """
    level = OPERATOR_PRECEDENCE[op]

    def needs_parens(operand: RenderedOperand, is_right: bool) -> bool:
        if operand.precedence < level or (is_right and operand.precedence == level):
            return True
        if op == OperatorKind.OR and operand.operator == OperatorKind.AND:
            return True
        return operand.operator in (OperatorKind.BETWEEN, OperatorKind.NOT_BETWEEN)

    def render(dialect: "DialectAdapter", operands: Sequence[RenderedOperand]) -> str:
        left, right = operands
        return (f"{parenthesize(left, needs_parens(left, False))} {op.value} "
                f"{parenthesize(right, needs_parens(right, True))}")
    return render


def render_not(dialect: "DialectAdapter", operands: Sequence[RenderedOperand]) -> str:
    (operand,) = operands
    return f"NOT {parenthesize(operand, operand.precedence < Precedence.NOT)}"


def between(negated: bool) -> OperatorRenderer:
    """
    BETWEEN with a guarded lower bound: a lower bound containing AND/OR is
    always parenthesized, otherwise its AND would be read as the bound
    separator and the statement would re-parse with a different meaning.
    """
    keyword = "NOT BETWEEN" if negated else "BETWEEN"

    def render(dialect: "DialectAdapter", operands: Sequence[RenderedOperand]) -> str:
        value, lower, upper = operands
        wrap_lower = lower.has_logical or lower.precedence <= Precedence.COMPARISON
        return (f"{parenthesize(value, value.precedence <= Precedence.COMPARISON)} {keyword} "
                f"{parenthesize(lower, wrap_lower)} AND "
                f"{parenthesize(upper, upper.precedence < Precedence.ADDITIVE)}")
    return render


def in_list(negated: bool) -> OperatorRenderer:
    keyword = "NOT IN" if negated else "IN"

    def render(dialect: "DialectAdapter", operands: Sequence[RenderedOperand]) -> str:
        value, *items = operands
        rendered = ", ".join(item.sql for item in items)
        return f"{parenthesize(value, value.precedence <= Precedence.COMPARISON)} {keyword} ({rendered})"
    return render


def null_test(negated: bool) -> OperatorRenderer:
    suffix = "IS NOT NULL" if negated else "IS NULL"

    def render(dialect: "DialectAdapter", operands: Sequence[RenderedOperand]) -> str:
        (value,) = operands
        return f"{parenthesize(value, value.precedence <= Precedence.COMPARISON)} {suffix}"
    return render


def prefix(symbol: str) -> OperatorRenderer:
    def render(dialect: "DialectAdapter", operands: Sequence[RenderedOperand]) -> str:
        (operand,) = operands
        text = parenthesize(operand, operand.precedence < Precedence.UNARY)
        # "--" would start a comment
        if text.startswith(("-", "+")):
            return f"{symbol} {text}"
        return f"{symbol}{text}"
    return render


def concat_function(dialect: "DialectAdapter", operands: Sequence[RenderedOperand]) -> str:
    return f"CONCAT({', '.join(o.sql for o in operands)})"


def standard_operators() -> Dict[OperatorKind, OperatorRenderer]:
    return {
        OperatorKind.OR: logical(OperatorKind.OR),
        OperatorKind.AND: logical(OperatorKind.AND),
        OperatorKind.NOT: render_not,
        OperatorKind.EQ: comparison("="),
        OperatorKind.NE: comparison("<>"),
        OperatorKind.LT: comparison("<"),
        OperatorKind.LE: comparison("<="),
        OperatorKind.GT: comparison(">"),
        OperatorKind.GE: comparison(">="),
        OperatorKind.BETWEEN: between(False),
        OperatorKind.NOT_BETWEEN: between(True),
        OperatorKind.IN: in_list(False),
        OperatorKind.NOT_IN: in_list(True),
        OperatorKind.LIKE: comparison("LIKE"),
        OperatorKind.NOT_LIKE: comparison("NOT LIKE"),
        OperatorKind.IS_NULL: null_test(False),
        OperatorKind.IS_NOT_NULL: null_test(True),
        OperatorKind.PLUS: infix("+", OperatorKind.PLUS),
        OperatorKind.MINUS: infix("-", OperatorKind.MINUS),
        OperatorKind.TIMES: infix("*", OperatorKind.TIMES),
        OperatorKind.DIVIDE: infix("/", OperatorKind.DIVIDE),
        OperatorKind.MODULO: infix("%", OperatorKind.MODULO),
        OperatorKind.CONCAT: infix("||", OperatorKind.CONCAT),
        OperatorKind.NEGATE: prefix("-"),
        OperatorKind.POSITIVE: prefix("+"),
    }


# aggregation renderers

def simple_aggregate(function: str) -> AggregationRenderer:
    def render(dialect: "DialectAdapter", argument: str, distinct: bool) -> str:
        return f"{function}({'DISTINCT ' if distinct else ''}{argument})"
    return render


def _count_distinct(dialect: "DialectAdapter", argument: str, distinct: bool) -> str:
    return f"COUNT(DISTINCT {argument})"


def _sum_boolean(dialect: "DialectAdapter", argument: str, distinct: bool) -> str:
    return f"SUM(CASE WHEN {argument} THEN 1 ELSE 0 END)"


def _no_aggregation(dialect: "DialectAdapter", argument: str, distinct: bool) -> str:
    return argument


def _percentile_median(dialect: "DialectAdapter", argument: str, distinct: bool) -> str:
    return f"PERCENTILE_CONT(0.5) WITHIN GROUP (ORDER BY {argument})"


def _unsupported_median(dialect: "DialectAdapter", argument: str, distinct: bool) -> str:
    raise UnparseError(f"Dialect '{dialect.key}' has no MEDIAN aggregation")


def standard_aggregations(median: AggregationRenderer) -> Dict[AggregationType, AggregationRenderer]:
    return {
        AggregationType.NONE: _no_aggregation,
        AggregationType.SUM: simple_aggregate("SUM"),
        AggregationType.MAX: simple_aggregate("MAX"),
        AggregationType.MIN: simple_aggregate("MIN"),
        AggregationType.AVG: simple_aggregate("AVG"),
        AggregationType.COUNT: simple_aggregate("COUNT"),
        AggregationType.MEDIAN: median,
        AggregationType.COUNT_DISTINCT: _count_distinct,
        AggregationType.SUM_BOOLEAN: _sum_boolean,
    }


# time granularity

def date_trunc(expr: str, granularity: TimeGranularity) -> str:
    return f"DATE_TRUNC('{granularity.value}', {expr})"


def mysql_granularity(expr: str, granularity: TimeGranularity) -> str:
    if granularity == TimeGranularity.QUARTER:
        return (f"CASE QUARTER({expr}) "
                f"WHEN 1 THEN CONCAT(YEAR({expr}), '-01-01') "
                f"WHEN 2 THEN CONCAT(YEAR({expr}), '-04-01') "
                f"WHEN 3 THEN CONCAT(YEAR({expr}), '-07-01') "
                f"WHEN 4 THEN CONCAT(YEAR({expr}), '-10-01') "
                f"END")
    if granularity == TimeGranularity.WEEK:
        return f"DATE_SUB({expr}, INTERVAL WEEKDAY({expr}) DAY)"
    formats = {
        TimeGranularity.YEAR: "%Y-01-01",
        TimeGranularity.MONTH: "%Y-%m-01",
        TimeGranularity.DAY: "%Y-%m-%d",
        TimeGranularity.HOUR: "%Y-%m-%d %H:00:00",
        TimeGranularity.MINUTE: "%Y-%m-%d %H:%i:00",
        TimeGranularity.SECOND: "%Y-%m-%d %H:%i:%s",
    }
    return f"DATE_FORMAT({expr}, '{formats[granularity]}')"


def oracle_granularity(expr: str, granularity: TimeGranularity) -> str:
    if granularity == TimeGranularity.SECOND:
        return f"TRUNC({expr}, 'MI') + TRUNC(EXTRACT(SECOND FROM {expr})) / 86400"
    formats = {
        TimeGranularity.YEAR: "YEAR",
        TimeGranularity.QUARTER: "Q",
        TimeGranularity.MONTH: "MONTH",
        TimeGranularity.WEEK: "WW",
        TimeGranularity.DAY: "DD",
        TimeGranularity.HOUR: "HH24",
        TimeGranularity.MINUTE: "MI",
    }
    return f"TRUNC({expr}, '{formats[granularity]}')"


# limit rendering

def limit_offset(limit: Optional[int], offset: Optional[int]) -> List[str]:
    parts = []
    if limit is not None:
        parts.append(f"LIMIT {limit}")
    if offset is not None:
        parts.append(f"OFFSET {offset}")
    return parts


def mysql_limit(limit: Optional[int], offset: Optional[int]) -> List[str]:
    # MySQL has no OFFSET without LIMIT
    if offset is not None and limit is None:
        return [f"LIMIT {offset}, 18446744073709551615"]
    return limit_offset(limit, offset)


def offset_fetch(limit: Optional[int], offset: Optional[int]) -> List[str]:
    parts = []
    if offset is not None:
        parts.append(f"OFFSET {offset} ROWS")
    if limit is not None:
        parts.append(f"FETCH NEXT {limit} ROWS ONLY")
    return parts


@dataclass(frozen=True, eq=False)
class DialectAdapter:
    """Everything dialect-specific the unparser and executor need."""
    key: str
    quote_char: str
    granularity: GranularityRenderer
    type_names: Mapping[str, AnsiSqlType]
    operators: Mapping[OperatorKind, OperatorRenderer] = field(default_factory=standard_operators)
    aggregations: Mapping[AggregationType, AggregationRenderer] = field(
        default_factory=lambda: standard_aggregations(_percentile_median)
    )
    limit_renderer: Callable[[Optional[int], Optional[int]], List[str]] = limit_offset
    native_type_codes: Mapping[int, str] = field(default_factory=dict)
    table_alias_keyword: str = "AS"
    true_literal: str = "TRUE"
    false_literal: str = "FALSE"
    nulls_ordering: bool = True
    # identifiers matching this are left unquoted by identifier()
    plain_identifier: str = r"[a-z_][a-z0-9_]*"
    reserved_words: frozenset = frozenset()

    def __post_init__(self):
        missing_ops = [op.name for op in OperatorKind if op not in self.operators]
        if missing_ops:
            raise UnparseError(f"Dialect '{self.key}' has no rendering rule for operators: {missing_ops}")
        missing_aggs = [agg.value for agg in AggregationType if agg not in self.aggregations]
        if missing_aggs:
            raise UnparseError(f"Dialect '{self.key}' has no rendering rule for aggregations: {missing_aggs}")

    # identifiers

    def quote_identifier(self, name: str) -> str:
        """Always quote, doubling any embedded quote character."""
        q = self.quote_char
        return f"{q}{name.replace(q, q + q)}{q}"

    def identifier(self, name: str) -> str:
        """Quote only when the name would not survive unquoted."""
        if re.fullmatch(self.plain_identifier, name) and name.upper() not in self.reserved_words:
            return name
        return self.quote_identifier(name)

    # expressions

    def apply_time_granularity(self, expr: str, granularity: TimeGranularity) -> str:
        if not expr or not expr.strip():
            raise ValueError("Date expression cannot be null or empty")
        return self.granularity(expr, TimeGranularity(granularity))

    def unparse(self, op: OperatorKind, operands: Sequence[RenderedOperand]) -> str:
        renderer = self.operators.get(op)
        if renderer is None:
            raise UnparseError(f"Dialect '{self.key}' has no rendering rule for operator {op.name}")
        return renderer(self, operands)

    def render_aggregation(self, agg: AggregationType, argument: str, distinct: bool = False) -> str:
        renderer = self.aggregations.get(AggregationType(agg))
        if renderer is None:
            raise UnparseError(f"Dialect '{self.key}' has no rendering rule for aggregation {agg}")
        return renderer(self, argument, distinct)

    def render_literal(self, value: Optional[str], ansi_type: AnsiSqlType) -> str:
        if ansi_type == AnsiSqlType.NULL or value is None:
            return "NULL"
        if ansi_type == AnsiSqlType.BOOLEAN:
            return self.true_literal if str(value).upper() == "TRUE" else self.false_literal
        if ansi_type.is_numeric:
            return str(value)
        quoted = "'" + str(value).replace("'", "''") + "'"
        if ansi_type.is_temporal:
            return f"{ansi_type.value} {quoted}"
        return quoted

    def render_limit(self, limit: Optional[int], offset: Optional[int] = None) -> List[str]:
        return self.limit_renderer(limit, offset)

    def table_alias(self, source_sql: str, alias: str) -> str:
        keyword = f" {self.table_alias_keyword} " if self.table_alias_keyword else " "
        return f"{source_sql}{keyword}{self.identifier(alias)}"

    # types

    def to_ansi_sql_type(self, type_name: Optional[str]) -> AnsiSqlType:
        """Map a native type name; unknown names fall back to UNKNOWN."""
        if not type_name:
            return AnsiSqlType.UNKNOWN
        name = type_name.strip().lower()
        if name in self.type_names:
            return self.type_names[name]
        base = name.split("(")[0].strip()
        return self.type_names.get(base, AnsiSqlType.UNKNOWN)

    def native_type_name(self, code: int) -> Optional[str]:
        return self.native_type_codes.get(code)

    def with_operator(self, op: OperatorKind, renderer: OperatorRenderer) -> "DialectAdapter":
        """Copy of this adapter with one operator rule replaced."""
        operators = dict(self.operators)
        operators[op] = renderer
        return dataclasses.replace(self, operators=operators)


def _lower_keys(mapping: Dict[str, AnsiSqlType]) -> Dict[str, AnsiSqlType]:
    return {k.lower(): v for k, v in mapping.items()}


POSTGRES_TYPE_NAMES = _lower_keys({
    "int2": AnsiSqlType.SMALLINT, "smallint": AnsiSqlType.SMALLINT, "smallserial": AnsiSqlType.SMALLINT,
    "int4": AnsiSqlType.INTEGER, "int": AnsiSqlType.INTEGER, "integer": AnsiSqlType.INTEGER,
    "serial": AnsiSqlType.INTEGER,
    "int8": AnsiSqlType.BIGINT, "bigint": AnsiSqlType.BIGINT, "bigserial": AnsiSqlType.BIGINT,
    "float4": AnsiSqlType.REAL, "real": AnsiSqlType.REAL,
    "float8": AnsiSqlType.DOUBLE, "double precision": AnsiSqlType.DOUBLE, "float": AnsiSqlType.DOUBLE,
    "numeric": AnsiSqlType.DECIMAL, "decimal": AnsiSqlType.DECIMAL, "money": AnsiSqlType.DECIMAL,
    "bpchar": AnsiSqlType.CHAR, "char": AnsiSqlType.CHAR,
    "varchar": AnsiSqlType.VARCHAR, "character varying": AnsiSqlType.VARCHAR,
    "text": AnsiSqlType.TEXT,
    "bytea": AnsiSqlType.VARBINARY,
    "bool": AnsiSqlType.BOOLEAN, "boolean": AnsiSqlType.BOOLEAN,
    "date": AnsiSqlType.DATE,
    "time": AnsiSqlType.TIME, "time without time zone": AnsiSqlType.TIME,
    "timetz": AnsiSqlType.TIME, "time with time zone": AnsiSqlType.TIME,
    "timestamp": AnsiSqlType.TIMESTAMP, "timestamp without time zone": AnsiSqlType.TIMESTAMP,
    "timestamptz": AnsiSqlType.TIMESTAMP, "timestamp with time zone": AnsiSqlType.TIMESTAMP,
    "interval": AnsiSqlType.VARCHAR, "uuid": AnsiSqlType.VARCHAR,
    "json": AnsiSqlType.TEXT, "jsonb": AnsiSqlType.TEXT, "xml": AnsiSqlType.TEXT,
    "point": AnsiSqlType.TEXT, "line": AnsiSqlType.TEXT, "lseg": AnsiSqlType.TEXT,
    "box": AnsiSqlType.TEXT, "path": AnsiSqlType.TEXT, "polygon": AnsiSqlType.TEXT,
    "circle": AnsiSqlType.TEXT,
    "inet": AnsiSqlType.VARCHAR, "cidr": AnsiSqlType.VARCHAR, "macaddr": AnsiSqlType.VARCHAR,
    "macaddr8": AnsiSqlType.VARCHAR,
    "bit": AnsiSqlType.VARBINARY, "varbit": AnsiSqlType.VARBINARY,
    "tsvector": AnsiSqlType.TEXT, "tsquery": AnsiSqlType.TEXT,
    "_int2": AnsiSqlType.TEXT, "_int4": AnsiSqlType.TEXT, "_int8": AnsiSqlType.TEXT,
    "_float4": AnsiSqlType.TEXT, "_float8": AnsiSqlType.TEXT, "_text": AnsiSqlType.TEXT,
    "_varchar": AnsiSqlType.TEXT,
})

# psycopg2 reports pg_type OIDs in cursor.description
POSTGRES_TYPE_OIDS = {
    16: "bool", 17: "bytea", 18: "char", 20: "int8", 21: "int2", 23: "int4", 25: "text",
    114: "json", 142: "xml", 700: "float4", 701: "float8", 790: "money", 869: "inet",
    650: "cidr", 829: "macaddr", 1042: "bpchar", 1043: "varchar", 1082: "date", 1083: "time",
    1114: "timestamp", 1184: "timestamptz", 1186: "interval", 1266: "timetz", 1560: "bit",
    1562: "varbit", 1700: "numeric", 2950: "uuid", 3802: "jsonb",
    1005: "_int2", 1007: "_int4", 1016: "_int8", 1021: "_float4", 1022: "_float8",
    1009: "_text", 1015: "_varchar",
}

MYSQL_TYPE_NAMES = _lower_keys({
    # TINYINT(1) is the usual boolean
    "TINYINT": AnsiSqlType.BOOLEAN,
    "SMALLINT": AnsiSqlType.SMALLINT,
    "MEDIUMINT": AnsiSqlType.INTEGER,
    "INT": AnsiSqlType.INTEGER, "INTEGER": AnsiSqlType.INTEGER,
    "BIGINT": AnsiSqlType.BIGINT,
    "DECIMAL": AnsiSqlType.DECIMAL, "DEC": AnsiSqlType.DECIMAL, "NUMERIC": AnsiSqlType.DECIMAL,
    "FLOAT": AnsiSqlType.FLOAT,
    "DOUBLE": AnsiSqlType.DOUBLE, "DOUBLE PRECISION": AnsiSqlType.DOUBLE, "REAL": AnsiSqlType.DOUBLE,
    "BIT": AnsiSqlType.BOOLEAN, "BOOL": AnsiSqlType.BOOLEAN, "BOOLEAN": AnsiSqlType.BOOLEAN,
    "CHAR": AnsiSqlType.CHAR,
    "VARCHAR": AnsiSqlType.VARCHAR,
    "TEXT": AnsiSqlType.TEXT, "TINYTEXT": AnsiSqlType.TEXT, "MEDIUMTEXT": AnsiSqlType.TEXT,
    "LONGTEXT": AnsiSqlType.TEXT,
    "BINARY": AnsiSqlType.BINARY,
    "VARBINARY": AnsiSqlType.VARBINARY,
    "BLOB": AnsiSqlType.BLOB, "TINYBLOB": AnsiSqlType.BLOB, "MEDIUMBLOB": AnsiSqlType.BLOB,
    "LONGBLOB": AnsiSqlType.BLOB,
    "DATE": AnsiSqlType.DATE,
    "TIME": AnsiSqlType.TIME,
    "DATETIME": AnsiSqlType.TIMESTAMP, "TIMESTAMP": AnsiSqlType.TIMESTAMP,
    "YEAR": AnsiSqlType.SMALLINT,
    "JSON": AnsiSqlType.TEXT,
    "GEOMETRY": AnsiSqlType.VARBINARY, "POINT": AnsiSqlType.VARBINARY,
    "LINESTRING": AnsiSqlType.VARBINARY, "POLYGON": AnsiSqlType.VARBINARY,
    "MULTIPOINT": AnsiSqlType.VARBINARY, "MULTILINESTRING": AnsiSqlType.VARBINARY,
    "MULTIPOLYGON": AnsiSqlType.VARBINARY, "GEOMETRYCOLLECTION": AnsiSqlType.VARBINARY,
})

DUCKDB_TYPE_NAMES = _lower_keys({
    "TINYINT": AnsiSqlType.TINYINT, "SMALLINT": AnsiSqlType.SMALLINT,
    "INTEGER": AnsiSqlType.INTEGER, "INT": AnsiSqlType.INTEGER,
    "BIGINT": AnsiSqlType.BIGINT, "INT8": AnsiSqlType.BIGINT, "LONG": AnsiSqlType.BIGINT,
    "HUGEINT": AnsiSqlType.BIGINT,
    "UTINYINT": AnsiSqlType.TINYINT, "USMALLINT": AnsiSqlType.SMALLINT,
    "UINTEGER": AnsiSqlType.INTEGER, "UBIGINT": AnsiSqlType.BIGINT,
    "DECIMAL": AnsiSqlType.DECIMAL, "NUMERIC": AnsiSqlType.DECIMAL,
    "REAL": AnsiSqlType.FLOAT, "FLOAT": AnsiSqlType.FLOAT, "FLOAT4": AnsiSqlType.FLOAT,
    "DOUBLE": AnsiSqlType.DOUBLE, "FLOAT8": AnsiSqlType.DOUBLE,
    "BOOLEAN": AnsiSqlType.BOOLEAN, "BOOL": AnsiSqlType.BOOLEAN, "LOGICAL": AnsiSqlType.BOOLEAN,
    "VARCHAR": AnsiSqlType.VARCHAR, "CHAR": AnsiSqlType.VARCHAR, "BPCHAR": AnsiSqlType.VARCHAR,
    "STRING": AnsiSqlType.VARCHAR, "TEXT": AnsiSqlType.VARCHAR,
    "BLOB": AnsiSqlType.BLOB, "BYTEA": AnsiSqlType.BLOB, "BINARY": AnsiSqlType.BLOB,
    "VARBINARY": AnsiSqlType.BLOB,
    "DATE": AnsiSqlType.DATE, "TIME": AnsiSqlType.TIME,
    "TIMESTAMP": AnsiSqlType.TIMESTAMP, "DATETIME": AnsiSqlType.TIMESTAMP,
    "TIMESTAMPTZ": AnsiSqlType.TIMESTAMP,
    "INTERVAL": AnsiSqlType.VARCHAR, "UUID": AnsiSqlType.VARCHAR, "JSON": AnsiSqlType.TEXT,
    "BIT": AnsiSqlType.BINARY, "BITSTRING": AnsiSqlType.BINARY,
    "ARRAY": AnsiSqlType.TEXT, "LIST": AnsiSqlType.TEXT, "STRUCT": AnsiSqlType.TEXT,
    "MAP": AnsiSqlType.TEXT, "UNION": AnsiSqlType.TEXT, "ENUM": AnsiSqlType.VARCHAR,
})

ORACLE_TYPE_NAMES = _lower_keys({
    "NUMBER": AnsiSqlType.INTEGER,
    "BINARY_FLOAT": AnsiSqlType.REAL,
    "BINARY_DOUBLE": AnsiSqlType.DOUBLE,
    "FLOAT": AnsiSqlType.FLOAT,
    "VARCHAR2": AnsiSqlType.VARCHAR, "NVARCHAR2": AnsiSqlType.VARCHAR,
    "CHAR": AnsiSqlType.CHAR, "NCHAR": AnsiSqlType.CHAR,
    "CLOB": AnsiSqlType.TEXT, "NCLOB": AnsiSqlType.TEXT,
    "BLOB": AnsiSqlType.BLOB,
    "RAW": AnsiSqlType.VARBINARY, "LONG RAW": AnsiSqlType.VARBINARY,
    # Oracle DATE carries a time part
    "DATE": AnsiSqlType.TIMESTAMP,
    "TIMESTAMP": AnsiSqlType.TIMESTAMP, "TIMESTAMP WITH TIME ZONE": AnsiSqlType.TIMESTAMP,
    "TIMESTAMP WITH LOCAL TIME ZONE": AnsiSqlType.TIMESTAMP,
    "INTERVAL YEAR TO MONTH": AnsiSqlType.VARCHAR, "INTERVAL DAY TO SECOND": AnsiSqlType.VARCHAR,
    "XMLTYPE": AnsiSqlType.TEXT,
    "ROWID": AnsiSqlType.VARCHAR, "UROWID": AnsiSqlType.VARCHAR,
    "BFILE": AnsiSqlType.VARCHAR,
    "LONG": AnsiSqlType.TEXT,
})

_SQL_RESERVED = frozenset([
    'ALL', 'AND', 'AS', 'ASC', 'BETWEEN', 'BY', 'CASE', 'CAST', 'CHECK', 'COLUMN', 'CONSTRAINT',
    'CREATE', 'CROSS', 'CURRENT_DATE', 'CURRENT_TIME', 'CURRENT_TIMESTAMP', 'DEFAULT', 'DELETE',
    'DESC', 'DISTINCT', 'DROP', 'ELSE', 'END', 'EXISTS', 'FALSE', 'FETCH', 'FOR', 'FOREIGN',
    'FROM', 'FULL', 'GRANT', 'GROUP', 'HAVING', 'IN', 'INNER', 'INSERT', 'INTERSECT', 'INTO',
    'IS', 'JOIN', 'LEFT', 'LIKE', 'LIMIT', 'NOT', 'NULL', 'OFFSET', 'ON', 'OR', 'ORDER',
    'OUTER', 'PRIMARY', 'REFERENCES', 'RIGHT', 'SELECT', 'SET', 'TABLE', 'THEN', 'TO', 'TRUE',
    'UNION', 'UNIQUE', 'UPDATE', 'USER', 'USING', 'VALUES', 'WHEN', 'WHERE', 'WITH',
])


def _postgres() -> DialectAdapter:
    return DialectAdapter(
        key="postgresql",
        quote_char='"',
        granularity=date_trunc,
        type_names=POSTGRES_TYPE_NAMES,
        native_type_codes=POSTGRES_TYPE_OIDS,
        reserved_words=_SQL_RESERVED,
    )


def _mysql() -> DialectAdapter:
    operators = standard_operators()
    operators[OperatorKind.CONCAT] = concat_function
    return DialectAdapter(
        key="mysql",
        quote_char="`",
        granularity=mysql_granularity,
        type_names=MYSQL_TYPE_NAMES,
        operators=operators,
        aggregations=standard_aggregations(_unsupported_median),
        limit_renderer=mysql_limit,
        nulls_ordering=False,
        plain_identifier=r"[A-Za-z_][A-Za-z0-9_]*",
        reserved_words=_SQL_RESERVED,
    )


def _duckdb() -> DialectAdapter:
    return DialectAdapter(
        key="duckdb",
        quote_char='"',
        granularity=date_trunc,
        type_names=DUCKDB_TYPE_NAMES,
        aggregations=standard_aggregations(simple_aggregate("MEDIAN")),
        reserved_words=_SQL_RESERVED,
    )


def _oracle() -> DialectAdapter:
    return DialectAdapter(
        key="oracle",
        quote_char='"',
        granularity=oracle_granularity,
        type_names=ORACLE_TYPE_NAMES,
        aggregations=standard_aggregations(simple_aggregate("MEDIAN")),
        limit_renderer=offset_fetch,
        table_alias_keyword="",
        true_literal="1",
        false_literal="0",
        plain_identifier=r"[A-Za-z][A-Za-z0-9_$#]*",
        reserved_words=_SQL_RESERVED,
    )


_FACTORIES: Dict[str, Callable[[], DialectAdapter]] = {
    "postgresql": _postgres,
    "mysql": _mysql,
    "duckdb": _duckdb,
    "oracle": _oracle,
}

_ALIASES = {"postgres": "postgresql", "pg": "postgresql"}

_INSTANCES: Dict[str, DialectAdapter] = {}


def available_dialects() -> List[str]:
    return sorted(_FACTORIES)


def register_dialect(key: str, factory: Callable[[], DialectAdapter]) -> None:
    """Register an additional dialect. The factory runs once, on first use."""
    _FACTORIES[key.lower()] = factory
    _INSTANCES.pop(key.lower(), None)


def get_dialect(key) -> DialectAdapter:
    """Look up a dialect adapter by key. Unknown keys fail immediately."""
    if isinstance(key, DialectAdapter):
        return key
    if not isinstance(key, str):
        raise UnknownDialectError(str(key), available_dialects())
    normalized = _ALIASES.get(key.strip().lower(), key.strip().lower())
    if normalized not in _FACTORIES:
        raise UnknownDialectError(key, available_dialects())
    if normalized not in _INSTANCES:
        _INSTANCES[normalized] = _FACTORIES[normalized]()
        logger.debug(f"Built dialect adapter '{normalized}'")
    return _INSTANCES[normalized]
