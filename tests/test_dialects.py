"""
Tests for dialect adapters.
"""

import pytest
from semantic_catalog.models import AggregationType, TimeGranularity
from sql_compiler.ast_nodes import OperatorKind
from sql_compiler.dialects import (
    DialectAdapter, available_dialects, date_trunc, get_dialect, register_dialect
)
from sql_compiler.errors import UnknownDialectError, UnparseError
from sql_compiler.lexer import TokenType, tokenize
from sql_compiler.types import AnsiSqlType


class TestRegistry:
    """Test dialect lookup."""

    def test_known_dialects(self):
        """Test the built-in keys."""
        assert {"postgresql", "mysql", "duckdb", "oracle"} <= set(available_dialects())
        assert get_dialect("PostgreSQL") is get_dialect("postgres")
        assert get_dialect("mysql").key == "mysql"

    def test_unknown_dialect(self):
        """Test that unknown keys fail immediately."""
        with pytest.raises(UnknownDialectError) as exc_info:
            get_dialect("sybase")
        assert exc_info.value.key == "sybase"
        assert "postgresql" in str(exc_info.value)

    def test_register_dialect(self):
        """Test registering an extra dialect."""
        register_dialect("ansi_test", lambda: DialectAdapter(
            key="ansi_test", quote_char='"', granularity=date_trunc, type_names={}
        ))
        assert get_dialect("ansi_test").key == "ansi_test"

    def test_missing_operator_rule(self):
        """Test that an incomplete operator table is rejected at construction."""
        with pytest.raises(UnparseError) as exc_info:
            DialectAdapter(key="broken", quote_char='"', granularity=date_trunc,
                           type_names={}, operators={})
        assert "BETWEEN" in str(exc_info.value)

    def test_missing_aggregation_rule(self):
        """Test that an incomplete aggregation table is rejected at construction."""
        with pytest.raises(UnparseError):
            DialectAdapter(key="broken", quote_char='"', granularity=date_trunc,
                           type_names={}, aggregations={})


class TestQuoting:
    """Test identifier quoting."""

    @pytest.mark.parametrize("dialect, name", [
        ("postgresql", 'we"ird'),
        ("postgresql", "Mixed Case"),
        ("mysql", "back`tick"),
        ("oracle", '"'),
        ("duckdb", "plain"),
    ])
    def test_quote_round_trip(self, dialect, name):
        """Test that quoted names lex back to the original name."""
        quoted = get_dialect(dialect).quote_identifier(name)
        tokens = tokenize(quoted)
        assert tokens[0].type == TokenType.QUOTED_IDENTIFIER
        assert tokens[0].value == name
        assert tokens[1].type == TokenType.EOF

    def test_escaping(self):
        """Test that the quote character is doubled."""
        assert get_dialect("postgresql").quote_identifier('a"b') == '"a""b"'
        assert get_dialect("mysql").quote_identifier("a`b") == "`a``b`"

    def test_quote_only_when_needed(self):
        """Test identifier() leaves plain names alone."""
        postgres = get_dialect("postgresql")
        assert postgres.identifier("order_date") == "order_date"
        assert postgres.identifier("Order_Date") == '"Order_Date"'
        assert postgres.identifier("order") == '"order"'
        assert get_dialect("mysql").identifier("Order_Date") == "Order_Date"


class TestRendering:
    """Test dialect-specific rendering."""

    def test_time_granularity(self):
        """Test time bucketing per dialect."""
        assert get_dialect("postgresql").apply_time_granularity("created_at", TimeGranularity.MONTH) == \
            "DATE_TRUNC('month', created_at)"
        assert get_dialect("oracle").apply_time_granularity("created_at", TimeGranularity.QUARTER) == \
            "TRUNC(created_at, 'Q')"
        assert get_dialect("mysql").apply_time_granularity("created_at", TimeGranularity.MONTH) == \
            "DATE_FORMAT(created_at, '%Y-%m-01')"
        with pytest.raises(ValueError):
            get_dialect("postgresql").apply_time_granularity(" ", TimeGranularity.DAY)

    def test_aggregations(self):
        """Test aggregation rules."""
        postgres = get_dialect("postgresql")
        assert postgres.render_aggregation(AggregationType.COUNT_DISTINCT, "x") == "COUNT(DISTINCT x)"
        assert postgres.render_aggregation(AggregationType.SUM_BOOLEAN, "x") == \
            "SUM(CASE WHEN x THEN 1 ELSE 0 END)"
        assert postgres.render_aggregation(AggregationType.NONE, "x") == "x"
        assert postgres.render_aggregation(AggregationType.MEDIAN, "x") == \
            "PERCENTILE_CONT(0.5) WITHIN GROUP (ORDER BY x)"
        assert get_dialect("duckdb").render_aggregation(AggregationType.MEDIAN, "x") == "MEDIAN(x)"
        with pytest.raises(UnparseError):
            get_dialect("mysql").render_aggregation(AggregationType.MEDIAN, "x")

    def test_literals(self):
        """Test literal formatting by type."""
        postgres = get_dialect("postgresql")
        assert postgres.render_literal("it's", AnsiSqlType.VARCHAR) == "'it''s'"
        assert postgres.render_literal("42", AnsiSqlType.INTEGER) == "42"
        assert postgres.render_literal("2024-01-01", AnsiSqlType.DATE) == "DATE '2024-01-01'"
        assert postgres.render_literal(None, AnsiSqlType.NULL) == "NULL"
        assert postgres.render_literal("TRUE", AnsiSqlType.BOOLEAN) == "TRUE"
        assert get_dialect("oracle").render_literal("FALSE", AnsiSqlType.BOOLEAN) == "0"

    def test_limits(self):
        """Test LIMIT/OFFSET syntax."""
        assert get_dialect("postgresql").render_limit(10, 5) == ["LIMIT 10", "OFFSET 5"]
        assert get_dialect("oracle").render_limit(10, 5) == ["OFFSET 5 ROWS", "FETCH NEXT 10 ROWS ONLY"]
        assert get_dialect("mysql").render_limit(None, 5) == ["LIMIT 5, 18446744073709551615"]
        assert get_dialect("postgresql").render_limit(None, None) == []

    def test_table_alias(self):
        """Test table alias syntax."""
        assert get_dialect("postgresql").table_alias("(SELECT 1)", "t") == "(SELECT 1) AS t"
        assert get_dialect("oracle").table_alias("(SELECT 1)", "t") == "(SELECT 1) t"

    def test_with_operator_copies(self):
        """Test replacing one operator rule."""
        postgres = get_dialect("postgresql")
        custom = postgres.with_operator(OperatorKind.CONCAT, lambda dialect, operands: "X")
        assert custom.operators[OperatorKind.CONCAT] is not postgres.operators[OperatorKind.CONCAT]
        assert custom.key == "postgresql"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
