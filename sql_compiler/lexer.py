"""
Lexer for semantic SQL.
Turns query text into tokens carrying 1-based line/column positions.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List

from sql_compiler.errors import ParseError


class TokenType(Enum):
    KEYWORD = "KEYWORD"
    IDENTIFIER = "IDENTIFIER"
    QUOTED_IDENTIFIER = "QUOTED_IDENTIFIER"
    STRING = "STRING"
    NUMBER = "NUMBER"
    OPERATOR = "OPERATOR"
    DELIMITER = "DELIMITER"
    PARAMETER = "PARAMETER"
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    line: int
    column: int

    def is_keyword(self, *words: str) -> bool:
        return self.type == TokenType.KEYWORD and self.value in words

    def is_word(self, *words: str) -> bool:
        """Keyword or unquoted identifier spelled like one of words."""
        return (self.type in (TokenType.KEYWORD, TokenType.IDENTIFIER)
                and self.value.upper() in words)

    def is_symbol(self, *symbols: str) -> bool:
        return self.type in (TokenType.OPERATOR, TokenType.DELIMITER) and self.value in symbols

    def describe(self) -> str:
        if self.type == TokenType.EOF:
            return "end of input"
        return f"'{self.value}'"


# Reserved words. DATE, TIME, TIMESTAMP, NULLS, FIRST and LAST stay plain
# identifiers so they remain usable as element names.
KEYWORDS = frozenset([
    'SELECT', 'DISTINCT', 'ALL', 'FROM', 'WHERE', 'GROUP', 'BY', 'HAVING',
    'ORDER', 'ASC', 'DESC', 'LIMIT', 'OFFSET', 'AS', 'AND', 'OR', 'NOT',
    'BETWEEN', 'IN', 'LIKE', 'IS', 'NULL', 'TRUE', 'FALSE',
])

_PATTERNS = [
    ('WHITESPACE', r'\s+'),
    ('LINE_COMMENT', r'--[^\n]*'),
    ('BLOCK_COMMENT', r'/\*.*?\*/'),
    ('STRING', r"'(?:[^']|'')*'"),
    ('DOUBLE_QUOTED', r'"(?:[^"]|"")*"'),
    ('BACKTICK_QUOTED', r'`(?:[^`]|``)*`'),
    ('NUMBER', r'(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?'),
    ('IDENTIFIER', r'[A-Za-z_][A-Za-z0-9_$]*'),
    ('OPERATOR', r'<>|!=|<=|>=|\|\||[=<>+\-*/%]'),
    ('DELIMITER', r'[(),;.]'),
    ('PARAMETER', r'\?'),
]

_MASTER = re.compile('|'.join(f'(?P<{name}>{pattern})' for name, pattern in _PATTERNS), re.DOTALL)


class Lexer:
    """Regex driven tokenizer."""

    def __init__(self, text: str):
        self.text = text

    def _position(self, offset: int):
        line = self.text.count('\n', 0, offset) + 1
        line_start = self.text.rfind('\n', 0, offset) + 1
        return line, offset - line_start + 1

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        pos = 0
        while pos < len(self.text):
            match = _MASTER.match(self.text, pos)
            if match is None:
                line, column = self._position(pos)
                char = self.text[pos]
                if char in "'\"`":
                    raise ParseError(f"Unterminated quoted text starting with {char}",
                                     line, column, f"closing {char}")
                raise ParseError(f"Unexpected character '{char}'", line, column, "a token")

            kind = match.lastgroup
            raw = match.group(kind)
            line, column = self._position(pos)
            pos = match.end()

            if kind in ('WHITESPACE', 'LINE_COMMENT', 'BLOCK_COMMENT'):
                continue
            if kind == 'STRING':
                tokens.append(Token(TokenType.STRING, raw[1:-1].replace("''", "'"), line, column))
            elif kind == 'DOUBLE_QUOTED':
                tokens.append(Token(TokenType.QUOTED_IDENTIFIER, raw[1:-1].replace('""', '"'), line, column))
            elif kind == 'BACKTICK_QUOTED':
                tokens.append(Token(TokenType.QUOTED_IDENTIFIER, raw[1:-1].replace('``', '`'), line, column))
            elif kind == 'IDENTIFIER':
                if raw.upper() in KEYWORDS:
                    tokens.append(Token(TokenType.KEYWORD, raw.upper(), line, column))
                else:
                    tokens.append(Token(TokenType.IDENTIFIER, raw, line, column))
            else:
                tokens.append(Token(TokenType[kind], raw, line, column))

        line, column = self._position(len(self.text))
        tokens.append(Token(TokenType.EOF, "", line, column))
        return tokens


def tokenize(text: str) -> List[Token]:
    return Lexer(text).tokenize()
