"""
AST node definitions.

Parsed semantic SQL uses the syntactic nodes (Identifier, Literal, Star,
Operation, FunctionCall). Resolution replaces identifiers with resolved
nodes (Physical, ColumnRef, Aggregation, TimeBucket) that carry everything
needed to render them without looking at the semantic models again.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Iterator, Optional, Tuple

from semantic_catalog.models import AggregationType, TimeGranularity, WindowChoice
from sql_compiler.types import AnsiSqlType


class NodeKind(Enum):
    IDENTIFIER = "identifier"
    LITERAL = "literal"
    STAR = "star"
    OPERATION = "operation"
    FUNCTION_CALL = "function_call"
    PHYSICAL = "physical"
    COLUMN_REF = "column_ref"
    AGGREGATION = "aggregation"
    TIME_BUCKET = "time_bucket"


class OperatorKind(Enum):
    OR = "OR"
    AND = "AND"
    NOT = "NOT"
    EQ = "="
    NE = "<>"
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    BETWEEN = "BETWEEN"
    NOT_BETWEEN = "NOT BETWEEN"
    IN = "IN"
    NOT_IN = "NOT IN"
    LIKE = "LIKE"
    NOT_LIKE = "NOT LIKE"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"
    PLUS = "+"
    MINUS = "-"
    TIMES = "*"
    DIVIDE = "/"
    MODULO = "%"
    CONCAT = "||"
    NEGATE = "NEGATE"
    POSITIVE = "POSITIVE"


class Precedence:
    """Binding strength, loosest first."""
    NONE = 0
    OR = 1
    AND = 2
    NOT = 3
    COMPARISON = 4
    ADDITIVE = 5
    MULTIPLICATIVE = 6
    UNARY = 7
    PRIMARY = 8


OPERATOR_PRECEDENCE = {
    OperatorKind.OR: Precedence.OR,
    OperatorKind.AND: Precedence.AND,
    OperatorKind.NOT: Precedence.NOT,
    OperatorKind.EQ: Precedence.COMPARISON,
    OperatorKind.NE: Precedence.COMPARISON,
    OperatorKind.LT: Precedence.COMPARISON,
    OperatorKind.LE: Precedence.COMPARISON,
    OperatorKind.GT: Precedence.COMPARISON,
    OperatorKind.GE: Precedence.COMPARISON,
    OperatorKind.BETWEEN: Precedence.COMPARISON,
    OperatorKind.NOT_BETWEEN: Precedence.COMPARISON,
    OperatorKind.IN: Precedence.COMPARISON,
    OperatorKind.NOT_IN: Precedence.COMPARISON,
    OperatorKind.LIKE: Precedence.COMPARISON,
    OperatorKind.NOT_LIKE: Precedence.COMPARISON,
    OperatorKind.IS_NULL: Precedence.COMPARISON,
    OperatorKind.IS_NOT_NULL: Precedence.COMPARISON,
    OperatorKind.PLUS: Precedence.ADDITIVE,
    OperatorKind.MINUS: Precedence.ADDITIVE,
    OperatorKind.CONCAT: Precedence.ADDITIVE,
    OperatorKind.TIMES: Precedence.MULTIPLICATIVE,
    OperatorKind.DIVIDE: Precedence.MULTIPLICATIVE,
    OperatorKind.MODULO: Precedence.MULTIPLICATIVE,
    OperatorKind.NEGATE: Precedence.UNARY,
    OperatorKind.POSITIVE: Precedence.UNARY,
}

LOGICAL_OPERATORS = frozenset([OperatorKind.AND, OperatorKind.OR])

AGGREGATE_FUNCTIONS = frozenset(["SUM", "COUNT", "AVG", "MIN", "MAX", "MEDIAN"])


@dataclass(frozen=True)
class ElementRef:
    """Which semantic element a resolved node came from."""
    model: str
    element: str
    kind: str


class Expression:
    """Common parent of every expression node."""
    kind: ClassVar[NodeKind]

    def children(self) -> Tuple["Expression", ...]:
        return ()

    def walk(self) -> Iterator["Expression"]:
        """Depth-first iteration over this node and everything below it."""
        yield self
        for child in self.children():
            yield from child.walk()


@dataclass(frozen=True)
class Identifier(Expression):
    kind: ClassVar[NodeKind] = NodeKind.IDENTIFIER

    parts: Tuple[str, ...]
    quoted: bool = False
    line: int = field(default=0, compare=False)
    column: int = field(default=0, compare=False)

    @property
    def name(self) -> str:
        return self.parts[-1]

    @property
    def qualifier(self) -> Optional[str]:
        return ".".join(self.parts[:-1]) if len(self.parts) > 1 else None

    def __str__(self) -> str:
        return ".".join(self.parts)


@dataclass(frozen=True)
class Literal(Expression):
    """value keeps the source text (None for NULL); ansi_type drives formatting."""
    kind: ClassVar[NodeKind] = NodeKind.LITERAL

    value: Optional[str]
    ansi_type: AnsiSqlType


@dataclass(frozen=True)
class Star(Expression):
    kind: ClassVar[NodeKind] = NodeKind.STAR

    qualifier: Optional[str] = None


@dataclass(frozen=True)
class Operation(Expression):
    kind: ClassVar[NodeKind] = NodeKind.OPERATION

    op: OperatorKind
    operands: Tuple[Expression, ...]

    def children(self) -> Tuple[Expression, ...]:
        return self.operands


@dataclass(frozen=True)
class FunctionCall(Expression):
    kind: ClassVar[NodeKind] = NodeKind.FUNCTION_CALL

    name: str
    args: Tuple[Expression, ...] = ()
    distinct: bool = False

    @property
    def is_aggregate(self) -> bool:
        return self.name.upper() in AGGREGATE_FUNCTIONS

    def children(self) -> Tuple[Expression, ...]:
        return self.args


@dataclass(frozen=True)
class Physical(Expression):
    """Physical SQL text taken from a semantic model element."""
    kind: ClassVar[NodeKind] = NodeKind.PHYSICAL

    sql: str
    source: Optional[ElementRef] = None


@dataclass(frozen=True)
class ColumnRef(Expression):
    """Column of a projected model sub-query, used when models are joined."""
    kind: ClassVar[NodeKind] = NodeKind.COLUMN_REF

    qualifier: str
    name: str
    source: Optional[ElementRef] = None


@dataclass(frozen=True)
class Aggregation(Expression):
    """A measure's aggregation. keep_flag restricts it to flagged rows."""
    kind: ClassVar[NodeKind] = NodeKind.AGGREGATION

    agg: AggregationType
    argument: Expression
    keep_flag: Optional[Expression] = None
    source: Optional[ElementRef] = None

    def children(self) -> Tuple[Expression, ...]:
        if self.keep_flag is not None:
            return (self.argument, self.keep_flag)
        return (self.argument,)


@dataclass(frozen=True)
class TimeBucket(Expression):
    kind: ClassVar[NodeKind] = NodeKind.TIME_BUCKET

    granularity: TimeGranularity
    argument: Expression
    source: Optional[ElementRef] = None

    def children(self) -> Tuple[Expression, ...]:
        return (self.argument,)


RESOLVED_KINDS = frozenset([NodeKind.PHYSICAL, NodeKind.COLUMN_REF,
                            NodeKind.AGGREGATION, NodeKind.TIME_BUCKET])


def contains_aggregate(expr: Expression) -> bool:
    for node in expr.walk():
        if isinstance(node, Aggregation) and node.agg != AggregationType.NONE:
            return True
        if isinstance(node, FunctionCall) and node.is_aggregate:
            return True
    return False


def contains_logical(expr: Expression) -> bool:
    """True when an AND or OR appears anywhere in the expression."""
    return any(isinstance(node, Operation) and node.op in LOGICAL_OPERATORS
               for node in expr.walk())


# Query structure

@dataclass(frozen=True)
class SelectItem:
    expr: Expression
    alias: Optional[str] = None
    alias_quoted: bool = False


@dataclass(frozen=True)
class OrderItem:
    expr: Expression
    descending: bool = False
    nulls: Optional[str] = None  # "FIRST" | "LAST"


@dataclass(frozen=True)
class Query:
    """A parsed semantic SQL statement."""
    select_items: Tuple[SelectItem, ...]
    distinct: bool = False
    from_models: Optional[Tuple[str, ...]] = None  # None for `FROM ?` or no FROM
    where: Optional[Expression] = None
    group_by: Tuple[Expression, ...] = ()
    having: Optional[Expression] = None
    order_by: Tuple[OrderItem, ...] = ()
    limit: Optional[int] = None
    offset: Optional[int] = None


@dataclass(frozen=True)
class KeepFlag:
    """
    Per-measure row flag over a model's base rows. Exactly one row per
    (partition..., non-additive value) gets 1; with a window choice only rows
    holding the MIN/MAX non-additive value per grouping qualify.
    The groupings are the declared window groupings plus the query's own
    group keys over this model, so every output group keeps its own MIN/MAX.
    """
    name: str
    partition_by: Tuple[str, ...]
    non_additive_expr: str
    window_choice: Optional[WindowChoice] = None
    window_groupings: Tuple[str, ...] = ()
    group_keys: Tuple[Expression, ...] = ()


@dataclass(frozen=True)
class ModelSource:
    """
    FROM item built from a semantic model's base statement. Without
    projections the base statement is used as is (wrapped when flags exist);
    with projections each element becomes a named column.
    """
    model_name: str
    alias: str
    sql: str
    projections: Tuple[Tuple[str, str], ...] = ()  # (physical expr, output name)
    flags: Tuple[KeepFlag, ...] = ()
    # row filter applied to the base rows before the flags are computed
    where: Optional[Expression] = None


@dataclass(frozen=True)
class Join:
    source: ModelSource
    # (left alias, left column, right column) pairs compared for equality
    conditions: Tuple[Tuple[str, str, str], ...]


@dataclass(frozen=True)
class ResolvedQuery:
    select_items: Tuple[SelectItem, ...]
    source: ModelSource
    joins: Tuple[Join, ...] = ()
    distinct: bool = False
    where: Optional[Expression] = None
    group_by: Tuple[Expression, ...] = ()
    having: Optional[Expression] = None
    order_by: Tuple[OrderItem, ...] = ()
    limit: Optional[int] = None
    offset: Optional[int] = None
    models_used: Tuple[str, ...] = field(default_factory=tuple)
