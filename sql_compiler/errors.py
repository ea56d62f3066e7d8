"""
Error kinds raised while compiling and executing semantic SQL.
"""

from typing import List, Optional, Sequence

from semantic_catalog.errors import SemanticError, ValidationError


class ParseError(SemanticError):
    """Semantic SQL is not valid for the accepted grammar."""

    def __init__(self, message: str, line: int, column: int, expected: Optional[str] = None):
        location = f"line {line}, column {column}"
        text = f"{message} at {location}"
        if expected:
            text += f" (expected {expected})"
        super().__init__(text)
        self.line = line
        self.column = column
        self.expected = expected


class ResolutionError(SemanticError):
    """An identifier is unknown or ambiguous across the active semantic models."""

    def __init__(self, message: str, identifier: str, candidates: Sequence[str] = ()):
        super().__init__(message)
        self.identifier = identifier
        self.candidates: List[str] = list(candidates)


class UnparseError(SemanticError):
    """A node or operator has no rendering rule for the active dialect."""


class UnknownDialectError(SemanticError):
    """No dialect adapter is registered under the requested key."""

    def __init__(self, key: str, known: Sequence[str] = ()):
        super().__init__(f"Unknown SQL dialect '{key}'. Known dialects: {', '.join(known)}")
        self.key = key


class ExecutionError(SemanticError):
    """The database failed to run a query, or no connection was available."""

    def __init__(self, message: str, sql: Optional[str] = None):
        super().__init__(message)
        self.sql = sql


__all__ = [
    'SemanticError',
    'ValidationError',
    'ParseError',
    'ResolutionError',
    'UnparseError',
    'UnknownDialectError',
    'ExecutionError'
]
