"""
Semantic SQL parser.
Hand-written recursive descent over the lexer's tokens. Builds a
dialect-neutral AST and knows nothing about semantic models.
"""

from typing import List, Optional, Tuple

from sql_compiler.ast_nodes import (
    Expression, FunctionCall, Identifier, Literal, Operation, OperatorKind,
    OrderItem, Query, SelectItem, Star
)
from sql_compiler.errors import ParseError
from sql_compiler.lexer import Token, TokenType, tokenize
from sql_compiler.types import AnsiSqlType


_COMPARISONS = {
    "=": OperatorKind.EQ,
    "<>": OperatorKind.NE,
    "!=": OperatorKind.NE,
    "<": OperatorKind.LT,
    "<=": OperatorKind.LE,
    ">": OperatorKind.GT,
    ">=": OperatorKind.GE,
}

_ADDITIVE = {"+": OperatorKind.PLUS, "-": OperatorKind.MINUS, "||": OperatorKind.CONCAT}
_MULTIPLICATIVE = {"*": OperatorKind.TIMES, "/": OperatorKind.DIVIDE, "%": OperatorKind.MODULO}

_TYPED_LITERALS = {
    "DATE": AnsiSqlType.DATE,
    "TIME": AnsiSqlType.TIME,
    "TIMESTAMP": AnsiSqlType.TIMESTAMP,
}

_CLAUSE_STARTERS = ("FROM", "WHERE", "GROUP", "HAVING", "ORDER", "LIMIT", "OFFSET")


class SemanticSqlParser:
    """Parser for one semantic SQL statement or expression."""

    def __init__(self, text: str):
        self.text = text
        self.tokens: List[Token] = tokenize(text)
        self.pos = 0

    # token helpers

    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 1) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.type != TokenType.EOF:
            self.pos += 1
        return token

    def error(self, expected: str, token: Optional[Token] = None) -> ParseError:
        token = token or self.current()
        return ParseError(f"Unexpected {token.describe()}", token.line, token.column, expected)

    def expect_keyword(self, word: str) -> Token:
        token = self.current()
        if not token.is_keyword(word):
            raise self.error(word)
        return self.advance()

    def expect_symbol(self, symbol: str) -> Token:
        token = self.current()
        if not token.is_symbol(symbol):
            raise self.error(f"'{symbol}'")
        return self.advance()

    def accept_keyword(self, *words: str) -> Optional[Token]:
        if self.current().is_keyword(*words):
            return self.advance()
        return None

    def accept_symbol(self, *symbols: str) -> Optional[Token]:
        if self.current().is_symbol(*symbols):
            return self.advance()
        return None

    def expect_end(self) -> None:
        self.accept_symbol(";")
        if self.current().type != TokenType.EOF:
            raise self.error("end of input")

    # statements

    def parse_query(self) -> Query:
        self.expect_keyword("SELECT")
        distinct = bool(self.accept_keyword("DISTINCT"))
        if not distinct:
            self.accept_keyword("ALL")

        select_items = [self.parse_select_item()]
        while self.accept_symbol(","):
            select_items.append(self.parse_select_item())

        from_models = None
        if self.accept_keyword("FROM"):
            from_models = self.parse_from()

        where = None
        if self.accept_keyword("WHERE"):
            where = self.parse_expr()

        group_by: List[Expression] = []
        if self.accept_keyword("GROUP"):
            self.expect_keyword("BY")
            group_by.append(self.parse_expr())
            while self.accept_symbol(","):
                group_by.append(self.parse_expr())

        having = None
        if self.accept_keyword("HAVING"):
            having = self.parse_expr()

        order_by: List[OrderItem] = []
        if self.accept_keyword("ORDER"):
            self.expect_keyword("BY")
            order_by.append(self.parse_order_item())
            while self.accept_symbol(","):
                order_by.append(self.parse_order_item())

        limit = offset = None
        if self.accept_keyword("LIMIT"):
            limit = self.parse_count("LIMIT")
            if self.accept_keyword("OFFSET"):
                offset = self.parse_count("OFFSET")
        elif self.accept_keyword("OFFSET"):
            offset = self.parse_count("OFFSET")

        self.expect_end()
        return Query(
            select_items=tuple(select_items),
            distinct=distinct,
            from_models=from_models,
            where=where,
            group_by=tuple(group_by),
            having=having,
            order_by=tuple(order_by),
            limit=limit,
            offset=offset
        )

    def parse_select_item(self) -> SelectItem:
        token = self.current()
        if token.is_symbol("*"):
            self.advance()
            return SelectItem(Star())
        if token.type == TokenType.EOF or token.is_keyword(*_CLAUSE_STARTERS):
            raise self.error("a select item")

        expr = self.parse_expr()
        if self.accept_keyword("AS"):
            alias_token = self.current()
            if alias_token.type not in (TokenType.IDENTIFIER, TokenType.QUOTED_IDENTIFIER):
                raise self.error("an alias")
            self.advance()
            return SelectItem(expr, alias_token.value, alias_token.type == TokenType.QUOTED_IDENTIFIER)
        if self.current().type in (TokenType.IDENTIFIER, TokenType.QUOTED_IDENTIFIER):
            alias_token = self.advance()
            return SelectItem(expr, alias_token.value, alias_token.type == TokenType.QUOTED_IDENTIFIER)
        return SelectItem(expr)

    def parse_from(self) -> Optional[Tuple[str, ...]]:
        if self.current().type == TokenType.PARAMETER:
            self.advance()
            return None
        names = [self.parse_name()]
        while self.accept_symbol(","):
            names.append(self.parse_name())
        return tuple(names)

    def parse_name(self) -> str:
        token = self.current()
        if token.type not in (TokenType.IDENTIFIER, TokenType.QUOTED_IDENTIFIER):
            raise self.error("a semantic model name or '?'")
        self.advance()
        return token.value

    def parse_order_item(self) -> OrderItem:
        expr = self.parse_expr()
        descending = False
        if self.accept_keyword("DESC"):
            descending = True
        else:
            self.accept_keyword("ASC")
        nulls = None
        if self.current().is_word("NULLS"):
            self.advance()
            token = self.current()
            if not token.is_word("FIRST", "LAST"):
                raise self.error("FIRST or LAST")
            nulls = self.advance().value.upper()
        return OrderItem(expr, descending, nulls)

    def parse_count(self, clause: str) -> int:
        token = self.current()
        if token.type != TokenType.NUMBER or not token.value.isdigit():
            raise self.error(f"a non-negative integer after {clause}")
        self.advance()
        return int(token.value)

    # expressions, loosest binding first

    def parse_expr(self, allow_and: bool = True) -> Expression:
        return self.parse_or(allow_and)

    def parse_or(self, allow_and: bool = True) -> Expression:
        left = self.parse_and(allow_and)
        while self.accept_keyword("OR"):
            right = self.parse_and(allow_and)
            left = Operation(OperatorKind.OR, (left, right))
        return left

    def parse_and(self, allow_and: bool = True) -> Expression:
        left = self.parse_not(allow_and)
        # Inside a BETWEEN lower bound AND separates the bounds
        while allow_and and self.accept_keyword("AND"):
            right = self.parse_not(allow_and)
            left = Operation(OperatorKind.AND, (left, right))
        return left

    def parse_not(self, allow_and: bool = True) -> Expression:
        if self.accept_keyword("NOT"):
            return Operation(OperatorKind.NOT, (self.parse_not(allow_and),))
        return self.parse_predicate()

    def parse_predicate(self) -> Expression:
        left = self.parse_additive()
        while True:
            token = self.current()
            if token.type == TokenType.OPERATOR and token.value in _COMPARISONS:
                self.advance()
                left = Operation(_COMPARISONS[token.value], (left, self.parse_additive()))
                continue

            negated = False
            if token.is_keyword("NOT") and self.peek().is_keyword("BETWEEN", "IN", "LIKE"):
                self.advance()
                negated = True
                token = self.current()

            if token.is_keyword("BETWEEN"):
                self.advance()
                lower = self.parse_or(allow_and=False)
                self.expect_keyword("AND")
                upper = self.parse_additive()
                op = OperatorKind.NOT_BETWEEN if negated else OperatorKind.BETWEEN
                left = Operation(op, (left, lower, upper))
            elif token.is_keyword("IN"):
                self.advance()
                self.expect_symbol("(")
                items = [self.parse_expr()]
                while self.accept_symbol(","):
                    items.append(self.parse_expr())
                self.expect_symbol(")")
                op = OperatorKind.NOT_IN if negated else OperatorKind.IN
                left = Operation(op, (left, *items))
            elif token.is_keyword("LIKE"):
                self.advance()
                op = OperatorKind.NOT_LIKE if negated else OperatorKind.LIKE
                left = Operation(op, (left, self.parse_additive()))
            elif token.is_keyword("IS"):
                self.advance()
                is_not = bool(self.accept_keyword("NOT"))
                self.expect_keyword("NULL")
                op = OperatorKind.IS_NOT_NULL if is_not else OperatorKind.IS_NULL
                left = Operation(op, (left,))
            else:
                return left

    def parse_additive(self) -> Expression:
        left = self.parse_multiplicative()
        while True:
            token = self.current()
            if token.type == TokenType.OPERATOR and token.value in _ADDITIVE:
                self.advance()
                left = Operation(_ADDITIVE[token.value], (left, self.parse_multiplicative()))
            else:
                return left

    def parse_multiplicative(self) -> Expression:
        left = self.parse_unary()
        while True:
            token = self.current()
            if token.type == TokenType.OPERATOR and token.value in _MULTIPLICATIVE:
                self.advance()
                left = Operation(_MULTIPLICATIVE[token.value], (left, self.parse_unary()))
            else:
                return left

    def parse_unary(self) -> Expression:
        token = self.current()
        if token.is_symbol("-"):
            self.advance()
            return Operation(OperatorKind.NEGATE, (self.parse_unary(),))
        if token.is_symbol("+"):
            self.advance()
            return Operation(OperatorKind.POSITIVE, (self.parse_unary(),))
        return self.parse_primary()

    def parse_primary(self) -> Expression:
        token = self.current()

        if token.type == TokenType.NUMBER:
            self.advance()
            value = token.value
            if "e" in value.lower():
                return Literal(value, AnsiSqlType.DOUBLE)
            if "." in value:
                return Literal(value, AnsiSqlType.DECIMAL)
            return Literal(value, AnsiSqlType.INTEGER)

        if token.type == TokenType.STRING:
            self.advance()
            return Literal(token.value, AnsiSqlType.VARCHAR)

        if token.is_keyword("NULL"):
            self.advance()
            return Literal(None, AnsiSqlType.NULL)

        if token.is_keyword("TRUE", "FALSE"):
            self.advance()
            return Literal(token.value, AnsiSqlType.BOOLEAN)

        if token.is_symbol("("):
            self.advance()
            expr = self.parse_expr()
            self.expect_symbol(")")
            return expr

        if token.type == TokenType.IDENTIFIER:
            word = token.value.upper()
            if word in _TYPED_LITERALS and self.peek().type == TokenType.STRING:
                self.advance()
                text = self.advance().value
                return Literal(text, _TYPED_LITERALS[word])
            if self.peek().is_symbol("("):
                return self.parse_function_call()
            return self.parse_identifier()

        if token.type == TokenType.QUOTED_IDENTIFIER:
            return self.parse_identifier()

        raise self.error("an expression")

    def parse_function_call(self) -> Expression:
        name = self.advance().value
        self.expect_symbol("(")
        if self.accept_symbol(")"):
            return FunctionCall(name.upper(), ())
        distinct = bool(self.accept_keyword("DISTINCT"))
        if not distinct and self.current().is_symbol("*") and self.peek().is_symbol(")"):
            self.advance()
            self.advance()
            return FunctionCall(name.upper(), (Star(),))
        args = [self.parse_expr()]
        while self.accept_symbol(","):
            args.append(self.parse_expr())
        self.expect_symbol(")")
        return FunctionCall(name.upper(), tuple(args), distinct)

    def parse_identifier(self) -> Identifier:
        first = self.advance()
        parts = [first.value]
        quoted = first.type == TokenType.QUOTED_IDENTIFIER
        while self.current().is_symbol("."):
            self.advance()
            token = self.current()
            if token.type not in (TokenType.IDENTIFIER, TokenType.QUOTED_IDENTIFIER):
                raise self.error("an identifier after '.'")
            self.advance()
            parts.append(token.value)
            quoted = token.type == TokenType.QUOTED_IDENTIFIER
        return Identifier(tuple(parts), quoted, first.line, first.column)


def parse_semantic_sql(text: str) -> Query:
    """Parse a semantic SQL statement into a Query."""
    return SemanticSqlParser(text).parse_query()


def parse_expression(text: str) -> Expression:
    """Parse a standalone expression."""
    parser = SemanticSqlParser(text)
    if parser.current().type == TokenType.EOF:
        raise parser.error("an expression")
    expr = parser.parse_expr()
    if parser.current().type != TokenType.EOF:
        raise parser.error("end of expression")
    return expr
