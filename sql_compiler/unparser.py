"""
Dialect unparser.
Renders resolved queries and expressions to SQL text for one dialect.
Every node kind must have a renderer; the table is checked when the
unparser is built.
"""

import re
from typing import Callable, Dict, List

from sql_compiler.ast_nodes import (
    Aggregation, ColumnRef, Expression, FunctionCall, Identifier, Join, KeepFlag, Literal,
    ModelSource, NodeKind, OPERATOR_PRECEDENCE, Operation, OrderItem, Physical, Precedence,
    ResolvedQuery, SelectItem, Star, TimeBucket, contains_logical
)
from sql_compiler.dialects import DialectAdapter, RenderedOperand, get_dialect
from sql_compiler.errors import UnparseError
from semantic_catalog.models import WindowChoice


BASE_ALIAS = "__base"

_ATOMIC_TOKEN = re.compile(r"[A-Za-z_][\w$]*(\.[A-Za-z_][\w$]*)*|\d+(\.\d*)?|\"(?:[^\"]|\"\")*\"|`(?:[^`]|``)*`")
_FUNCTION_HEAD = re.compile(r"[A-Za-z_][\w$]*\s*\(")


def is_atomic_sql(sql: str) -> bool:
    """
    True when raw SQL text can be used as an operand without parentheses:
    a name, a number, a quoted name or a single function call.
    """
    text = sql.strip()
    if _ATOMIC_TOKEN.fullmatch(text):
        return True
    head = _FUNCTION_HEAD.match(text)
    if head is None or not text.endswith(")"):
        return False
    return _closing_paren(text, head.end() - 1) == len(text) - 1


def _closing_paren(text: str, open_index: int) -> int:
    depth = 0
    quote = None
    for i in range(open_index, len(text)):
        char = text[i]
        if quote:
            if char == quote:
                quote = None
            continue
        if char in "'\"`":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _raw(sql: str) -> RenderedOperand:
    precedence = Precedence.PRIMARY if is_atomic_sql(sql) else Precedence.NONE
    return RenderedOperand(sql, precedence)


class SqlUnparser:
    """Turns resolved ASTs into SQL for one dialect."""

    def __init__(self, dialect):
        self.dialect: DialectAdapter = get_dialect(dialect)
        self._renderers: Dict[NodeKind, Callable[[Expression], RenderedOperand]] = {
            NodeKind.IDENTIFIER: self._render_identifier,
            NodeKind.LITERAL: self._render_literal,
            NodeKind.STAR: self._render_star,
            NodeKind.OPERATION: self._render_operation,
            NodeKind.FUNCTION_CALL: self._render_function_call,
            NodeKind.PHYSICAL: self._render_physical,
            NodeKind.COLUMN_REF: self._render_column_ref,
            NodeKind.AGGREGATION: self._render_aggregation,
            NodeKind.TIME_BUCKET: self._render_time_bucket,
        }
        missing = [kind.name for kind in NodeKind if kind not in self._renderers]
        if missing:
            raise UnparseError(f"No rendering rule registered for node kinds: {missing}")

    # expressions

    def render(self, expr: Expression) -> RenderedOperand:
        renderer = self._renderers.get(getattr(expr, "kind", None))
        if renderer is None:
            raise UnparseError(f"No rendering rule for node {type(expr).__name__}")
        return renderer(expr)

    def unparse_expression(self, expr: Expression) -> str:
        return self.render(expr).sql

    def _render_identifier(self, node: Identifier) -> RenderedOperand:
        if node.quoted:
            parts = [self.dialect.identifier(p) for p in node.parts[:-1]]
            parts.append(self.dialect.quote_identifier(node.name))
        else:
            parts = [self.dialect.identifier(p) for p in node.parts]
        return RenderedOperand(".".join(parts))

    def _render_literal(self, node: Literal) -> RenderedOperand:
        return RenderedOperand(self.dialect.render_literal(node.value, node.ansi_type))

    def _render_star(self, node: Star) -> RenderedOperand:
        if node.qualifier:
            return RenderedOperand(f"{self.dialect.identifier(node.qualifier)}.*")
        return RenderedOperand("*")

    def _render_operation(self, node: Operation) -> RenderedOperand:
        operands = [self.render(operand) for operand in node.operands]
        sql = self.dialect.unparse(node.op, operands)
        return RenderedOperand(sql, OPERATOR_PRECEDENCE[node.op], node.op, contains_logical(node))

    def _render_function_call(self, node: FunctionCall) -> RenderedOperand:
        args = ", ".join(self.render(arg).sql for arg in node.args)
        distinct = "DISTINCT " if node.distinct else ""
        return RenderedOperand(f"{node.name}({distinct}{args})", has_logical=contains_logical(node))

    def _render_physical(self, node: Physical) -> RenderedOperand:
        return _raw(node.sql)

    def _render_column_ref(self, node: ColumnRef) -> RenderedOperand:
        return RenderedOperand(f"{self.dialect.identifier(node.qualifier)}.{self.dialect.identifier(node.name)}")

    def _render_aggregation(self, node: Aggregation) -> RenderedOperand:
        argument = self.render(node.argument).sql
        if node.keep_flag is not None:
            flag = self.render(node.keep_flag).sql
            argument = f"CASE WHEN {flag} = 1 THEN {argument} END"
        sql = self.dialect.render_aggregation(node.agg, argument)
        return _raw(sql)

    def _render_time_bucket(self, node: TimeBucket) -> RenderedOperand:
        argument = self.render(node.argument).sql
        return _raw(self.dialect.apply_time_granularity(argument, node.granularity))

    # query

    def unparse_query(self, query: ResolvedQuery) -> str:
        lines = [self._select_clause(query), f"FROM {self._source(query.source)}"]
        for join in query.joins:
            lines.append(self._join(query.source, join))
        if query.where is not None:
            lines.append(f"WHERE {self.unparse_expression(query.where)}")
        if query.group_by:
            lines.append("GROUP BY " + ", ".join(self.unparse_expression(e) for e in query.group_by))
        if query.having is not None:
            lines.append(f"HAVING {self.unparse_expression(query.having)}")
        if query.order_by:
            lines.append("ORDER BY " + ", ".join(self._order_item(o) for o in query.order_by))
        lines.extend(self.dialect.render_limit(query.limit, query.offset))
        return "\n".join(lines)

    def _select_clause(self, query: ResolvedQuery) -> str:
        items = ", ".join(self._select_item(item) for item in query.select_items)
        return f"SELECT {'DISTINCT ' if query.distinct else ''}{items}"

    def _select_item(self, item: SelectItem) -> str:
        sql = self.unparse_expression(item.expr)
        if not item.alias:
            return sql
        alias = (self.dialect.quote_identifier(item.alias) if item.alias_quoted
                 else self.dialect.identifier(item.alias))
        if alias == sql:
            return sql
        return f"{sql} AS {alias}"

    def _order_item(self, item: OrderItem) -> str:
        sql = self.unparse_expression(item.expr)
        direction = " DESC" if item.descending else ""
        if item.nulls is None:
            return f"{sql}{direction}"
        if self.dialect.nulls_ordering:
            return f"{sql}{direction} NULLS {item.nulls}"
        # emulate with a leading null test
        tested = sql if is_atomic_sql(sql) else f"({sql})"
        null_first = " DESC" if item.nulls == "FIRST" else ""
        return f"{tested} IS NULL{null_first}, {sql}{direction}"

    def _source(self, source: ModelSource) -> str:
        if not source.projections and not source.flags:
            return self.dialect.table_alias(f"({source.sql})", source.alias)

        base = self.dialect.identifier(BASE_ALIAS)
        columns: List[str] = []
        if source.projections:
            for expr, name in source.projections:
                column = f"{expr} AS {self.dialect.identifier(name)}"
                columns.append(expr if self.dialect.identifier(name) == expr else column)
        else:
            columns.append(f"{base}.*")
        columns.extend(self._keep_flag(flag) for flag in source.flags)

        inner = (f"SELECT {', '.join(columns)} "
                 f"FROM {self.dialect.table_alias(f'({source.sql})', BASE_ALIAS)}")
        if source.where is not None:
            inner += f" WHERE {self.unparse_expression(source.where)}"
        return self.dialect.table_alias(f"({inner})", source.alias)

    def _keep_flag(self, flag: KeepFlag) -> str:
        nad = flag.non_additive_expr
        partition = ", ".join(list(flag.partition_by) + [nad])
        condition = f"ROW_NUMBER() OVER (PARTITION BY {partition} ORDER BY {nad}) = 1"
        if flag.window_choice is not None:
            function = "MAX" if flag.window_choice == WindowChoice.MAX else "MIN"
            groupings = list(flag.window_groupings)
            for key in flag.group_keys:
                sql = self.unparse_expression(key)
                if sql not in groupings:
                    groupings.append(sql)
            over = f"PARTITION BY {', '.join(groupings)}" if groupings else ""
            condition += f" AND {nad} = {function}({nad}) OVER ({over})"
        return f"CASE WHEN {condition} THEN 1 ELSE 0 END AS {self.dialect.identifier(flag.name)}"

    def _join(self, left: ModelSource, join: Join) -> str:
        on = " AND ".join(
            f"{self.dialect.identifier(left_alias)}.{self.dialect.identifier(left_column)} = "
            f"{self.dialect.identifier(join.source.alias)}.{self.dialect.identifier(right_column)}"
            for left_alias, left_column, right_column in join.conditions
        )
        return f"LEFT JOIN {self._source(join.source)} ON {on}"


def unparse(query: ResolvedQuery, dialect="postgresql") -> str:
    return SqlUnparser(dialect).unparse_query(query)

