"""
Tests for the compiler entry point.
"""

import pytest
from semantic_catalog.catalog import create_sample_models, create_sample_registry
from semantic_catalog.errors import ValidationError
from semantic_catalog.models import AggregationType, Measure, SemanticModel
from sql_compiler.compiler import SemanticSqlCompiler, generate_sql
from sql_compiler.errors import ParseError, ResolutionError, UnknownDialectError, UnparseError


E2E_QUERY = (
    "SELECT order_date, total_revenue FROM orders "
    "WHERE total_revenue BETWEEN 100 AND 200 OR is_promo AND has_discount"
)


class TestEndToEnd:
    """Test compiling semantic SQL to dialect SQL."""

    def test_orders_revenue_postgres(self):
        """Test the revenue-by-day scenario with a mixed BETWEEN filter."""
        assert generate_sql(E2E_QUERY, create_sample_models(), dialect="postgresql") == (
            "SELECT DATE_TRUNC('day', order_date) AS order_date, SUM(revenue_amount) AS total_revenue\n"
            "FROM (SELECT * FROM orders) AS orders\n"
            "GROUP BY DATE_TRUNC('day', order_date)\n"
            "HAVING (SUM(revenue_amount) BETWEEN 100 AND 200) OR (is_promo AND has_discount)"
        )

    def test_explicit_group_by_matches_implicit(self):
        """Test that grouping by the time dimension by name gives the same SQL."""
        models = create_sample_models()
        assert generate_sql(E2E_QUERY + " GROUP BY order_date", models) == generate_sql(E2E_QUERY, models)

    def test_orders_revenue_oracle(self):
        """Test the same scenario on Oracle."""
        sql = generate_sql(E2E_QUERY + " LIMIT 10", create_sample_models(), dialect="oracle")
        assert sql.startswith("SELECT TRUNC(order_date, 'DD') AS order_date")
        assert "FROM (SELECT * FROM orders) orders\n" in sql
        assert sql.endswith("FETCH NEXT 10 ROWS ONLY")

    def test_metadata(self):
        """Test the compile result metadata."""
        compiler = SemanticSqlCompiler("duckdb", provider=create_sample_registry())
        result = compiler.compile_sql("SELECT status, total_revenue AS revenue, MAX(total_revenue) FROM ?")
        assert result["metadata"] == {
            "models_used": ["orders"],
            "output_columns": ["status", "revenue", "MAX(revenue_amount)"],
            "dialect": "duckdb"
        }

    def test_models_argument_overrides_provider(self):
        """Test that explicit models replace the provider's."""
        visits = SemanticModel(
            name="visits",
            model="SELECT * FROM visits",
            measures=[Measure(name="visit_count", agg=AggregationType.COUNT, expr="visit_id")]
        )
        compiler = SemanticSqlCompiler("postgresql", provider=create_sample_registry())
        assert compiler.generate_sql("SELECT visit_count", [visits]) == (
            "SELECT COUNT(visit_id) AS visit_count\n"
            "FROM (SELECT * FROM visits) AS visits"
        )
        with pytest.raises(ResolutionError):
            compiler.generate_sql("SELECT total_revenue", [visits])

    def test_default_dialect(self):
        """Test that the configured default dialect is used."""
        assert SemanticSqlCompiler().dialect.key == "postgresql"


class TestErrors:
    """Test that failures surface as typed errors."""

    def test_unresolved_identifier(self):
        """Test the error for an unknown identifier."""
        with pytest.raises(ResolutionError) as exc_info:
            generate_sql("SELECT order_date, revenue FROM orders", create_sample_models())
        assert exc_info.value.identifier == "revenue"

    def test_parse_error(self):
        """Test a syntax error."""
        with pytest.raises(ParseError):
            generate_sql("SELECT FROM", create_sample_models())

    def test_unknown_dialect(self):
        """Test an unsupported dialect."""
        with pytest.raises(UnknownDialectError):
            generate_sql("SELECT status", create_sample_models(), dialect="informix")

    def test_no_models(self):
        """Test compiling with an empty model set."""
        with pytest.raises(ResolutionError):
            SemanticSqlCompiler("postgresql").compile_sql("SELECT status")

    def test_invalid_model_mapping(self):
        """Test that a malformed model mapping fails with the semantic ValidationError."""
        with pytest.raises(ValidationError):
            generate_sql("SELECT visit_count", [{
                "name": "visits",
                "measures": [{"name": "visit_count", "agg": "count", "expr": "visit_id"}]
            }])

    def test_mysql_median(self):
        """Test that MySQL cannot render a median measure."""
        latency = SemanticModel(
            name="requests",
            model="SELECT * FROM requests",
            measures=[Measure(name="median_latency", agg=AggregationType.MEDIAN, expr="latency_ms")]
        )
        assert generate_sql("SELECT median_latency", [latency], dialect="duckdb") == (
            "SELECT MEDIAN(latency_ms) AS median_latency\n"
            "FROM (SELECT * FROM requests) AS requests"
        )
        with pytest.raises(UnparseError):
            generate_sql("SELECT median_latency", [latency], dialect="mysql")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
