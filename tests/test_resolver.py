"""
Tests for semantic resolution against one or more models.
"""

import pytest
from semantic_catalog.models import (
    Defaults, Dimension, DimensionType, Entity, EntityType, Measure, SemanticModel,
    TimeGranularity, TypeParams
)
from semantic_catalog.catalog import create_sample_models
from sql_compiler.ast_nodes import Aggregation, Physical, TimeBucket
from sql_compiler.compiler import generate_sql
from sql_compiler.errors import ResolutionError
from sql_compiler.parser import parse_semantic_sql
from sql_compiler.resolver import SemanticResolver


def compile_pg(semantic_sql: str, models=None) -> str:
    return generate_sql(semantic_sql, models or create_sample_models(), dialect="postgresql")


def region_model(name: str, expr: str = "region", with_default: bool = False) -> SemanticModel:
    dimensions = [Dimension(name="region", expr=expr)]
    defaults = Defaults()
    if with_default:
        dimensions.append(Dimension(
            name="event_date",
            type=DimensionType.TIME,
            type_params=TypeParams(time_granularity=TimeGranularity.DAY)
        ))
        defaults = Defaults(agg_time_dimension="event_date")
    return SemanticModel(
        name=name,
        model=f"SELECT * FROM {name}_events",
        defaults=defaults,
        dimensions=dimensions,
        measures=[Measure(name=f"{name}_count", agg="count", expr="event_id")]
    )


class TestElementResolution:
    """Test how identifiers become physical SQL."""

    def test_measure_and_time_dimension(self):
        """Test aggregation and time bucketing with implicit grouping."""
        assert compile_pg("SELECT order_date, total_revenue FROM orders") == (
            "SELECT DATE_TRUNC('day', order_date) AS order_date, SUM(revenue_amount) AS total_revenue\n"
            "FROM (SELECT * FROM orders) AS orders\n"
            "GROUP BY DATE_TRUNC('day', order_date)"
        )

    def test_resolved_node_kinds(self):
        """Test the resolved tree carries element references."""
        resolved = SemanticResolver(create_sample_models()).resolve(
            parse_semantic_sql("SELECT order_date, total_revenue FROM orders")
        )
        bucket, total = (item.expr for item in resolved.select_items)
        assert isinstance(bucket, TimeBucket) and bucket.granularity == TimeGranularity.DAY
        assert isinstance(total, Aggregation) and total.argument == Physical("revenue_amount", total.source)
        assert total.source.element == "total_revenue"
        assert resolved.models_used == ("orders",)

    def test_count_distinct(self):
        """Test count_distinct measures."""
        assert compile_pg("SELECT unique_customers FROM orders") == (
            "SELECT COUNT(DISTINCT customer_id) AS unique_customers\n"
            "FROM (SELECT * FROM orders) AS orders"
        )

    def test_alias_and_expression(self):
        """Test element lookup by alias with a physical expression."""
        assert compile_pg("SELECT name, country FROM customers") == (
            "SELECT full_name AS customer_name, UPPER(country_code) AS country\n"
            "FROM (SELECT * FROM customers) AS customers"
        )

    def test_case_insensitive_names(self):
        """Test that unquoted names match regardless of case."""
        assert compile_pg("SELECT STATUS FROM orders") == (
            "SELECT status\n"
            "FROM (SELECT * FROM orders) AS orders"
        )

    def test_explicit_alias_wins(self):
        """Test that an explicit alias replaces the element name."""
        assert compile_pg("SELECT total_revenue AS revenue FROM orders") == (
            "SELECT SUM(revenue_amount) AS revenue\n"
            "FROM (SELECT * FROM orders) AS orders"
        )

    def test_aggregate_over_measure(self):
        """Test that an explicit aggregate uses the raw measure expression."""
        assert compile_pg("SELECT MAX(total_revenue) FROM orders") == (
            "SELECT MAX(revenue_amount)\n"
            "FROM (SELECT * FROM orders) AS orders"
        )

    def test_metric_time(self):
        """Test metric_time resolves to the measure's time dimension."""
        assert compile_pg("SELECT metric_time, order_count FROM ?") == (
            "SELECT DATE_TRUNC('day', order_date) AS metric_time, COUNT(order_id) AS order_count\n"
            "FROM (SELECT * FROM orders) AS orders\n"
            "GROUP BY DATE_TRUNC('day', order_date)"
        )

    def test_metric_time_without_any_default(self):
        """Test metric_time with nothing to resolve it to."""
        with pytest.raises(ResolutionError) as exc_info:
            compile_pg("SELECT metric_time FROM customers")
        assert exc_info.value.identifier == "metric_time"


class TestClauses:
    """Test WHERE, HAVING, GROUP BY and ORDER BY handling."""

    def test_measure_filter_moves_to_having(self):
        """Test that WHERE conjuncts over measures become HAVING."""
        assert compile_pg(
            "SELECT status, total_revenue FROM orders "
            "WHERE status = 'shipped' AND total_revenue > 100"
        ) == (
            "SELECT status, SUM(revenue_amount) AS total_revenue\n"
            "FROM (SELECT * FROM orders) AS orders\n"
            "WHERE status = 'shipped'\n"
            "GROUP BY status\n"
            "HAVING SUM(revenue_amount) > 100"
        )

    def test_order_by_select_alias(self):
        """Test that ORDER BY can name a select alias."""
        assert compile_pg(
            "SELECT status, total_revenue AS revenue FROM orders ORDER BY revenue DESC LIMIT 3"
        ) == (
            "SELECT status, SUM(revenue_amount) AS revenue\n"
            "FROM (SELECT * FROM orders) AS orders\n"
            "GROUP BY status\n"
            "ORDER BY SUM(revenue_amount) DESC\n"
            "LIMIT 3"
        )

    def test_explicit_group_by(self):
        """Test that an explicit GROUP BY is kept."""
        assert compile_pg(
            "SELECT status, order_count FROM orders GROUP BY status HAVING order_count >= 2"
        ) == (
            "SELECT status, COUNT(order_id) AS order_count\n"
            "FROM (SELECT * FROM orders) AS orders\n"
            "GROUP BY status\n"
            "HAVING COUNT(order_id) >= 2"
        )

    def test_enum_values_checked(self):
        """Test that literals must belong to a dimension's enum values."""
        with pytest.raises(ResolutionError) as exc_info:
            compile_pg("SELECT order_count FROM orders WHERE status IN ('shipped', 'returned')")
        assert exc_info.value.identifier == "returned"
        assert exc_info.value.candidates == ["pending", "shipped", "cancelled"]

        with pytest.raises(ResolutionError):
            compile_pg("SELECT order_count FROM orders WHERE 'lost' = status")

    def test_select_star_rejected(self):
        """Test that SELECT * is not supported."""
        with pytest.raises(ResolutionError) as exc_info:
            compile_pg("SELECT * FROM orders")
        assert exc_info.value.identifier == "*"


class TestModelSelection:
    """Test active models, ambiguity and joins."""

    def test_unresolved_identifier(self):
        """Test that the error names exactly the unknown identifier."""
        with pytest.raises(ResolutionError) as exc_info:
            compile_pg("SELECT order_date, revenue FROM orders")
        assert exc_info.value.identifier == "revenue"
        assert exc_info.value.candidates == ["orders"]
        assert "'revenue'" in str(exc_info.value)

    def test_unknown_model(self):
        """Test FROM with a model that does not exist."""
        with pytest.raises(ResolutionError) as exc_info:
            compile_pg("SELECT status FROM shipments")
        assert exc_info.value.identifier == "shipments"
        assert exc_info.value.candidates == ["orders", "customers", "account_balances"]

    def test_from_restricts_models(self):
        """Test that FROM limits which models are searched."""
        with pytest.raises(ResolutionError):
            compile_pg("SELECT country FROM orders")

    def test_ambiguous_identifier(self):
        """Test a name that resolves differently in two models."""
        models = [region_model("web", "geo_region"), region_model("app", "region_code")]
        with pytest.raises(ResolutionError) as exc_info:
            compile_pg("SELECT region", models)
        assert exc_info.value.identifier == "region"
        assert exc_info.value.candidates == ["web", "app"]

        assert compile_pg("SELECT app.region", models) == (
            "SELECT region_code AS region\n"
            "FROM (SELECT * FROM app_events) AS app"
        )

    def test_identical_resolutions_prefer_default_time(self):
        """Test the tie-break for a name resolving the same way in several models."""
        models = [region_model("web"), region_model("app", with_default=True)]
        resolved = SemanticResolver(models).resolve(parse_semantic_sql("SELECT region"))
        assert resolved.models_used == ("app",)

        models = [region_model("web"), region_model("app")]
        resolved = SemanticResolver(models).resolve(parse_semantic_sql("SELECT region"))
        assert resolved.models_used == ("web",)

    def test_join_on_shared_entity(self):
        """Test joining two models on a shared entity."""
        assert compile_pg("SELECT country, total_revenue FROM orders, customers") == (
            "SELECT customers.country AS country, SUM(orders.total_revenue) AS total_revenue\n"
            "FROM (SELECT revenue_amount AS total_revenue, customer_id AS customer "
            "FROM (SELECT * FROM orders) AS __base) AS orders\n"
            "LEFT JOIN (SELECT UPPER(country_code) AS country, customer_id AS customer "
            "FROM (SELECT * FROM customers) AS __base) AS customers "
            "ON orders.customer = customers.customer\n"
            "GROUP BY customers.country"
        )

    def test_no_join_path(self):
        """Test models that share no entity."""
        island = SemanticModel(
            name="weather",
            model="SELECT * FROM weather",
            dimensions=[Dimension(name="temperature")]
        )
        models = create_sample_models() + [island]
        with pytest.raises(ResolutionError) as exc_info:
            compile_pg("SELECT total_revenue, temperature FROM orders, weather", models)
        assert exc_info.value.identifier == "weather"
        assert exc_info.value.candidates == ["orders"]

    def test_non_additive_measure_flag(self):
        """Test that a non-additive measure only aggregates flagged rows."""
        sql = compile_pg("SELECT customer, closing_balance FROM account_balances")
        assert sql == (
            "SELECT customer_id AS customer, "
            "SUM(CASE WHEN account_balances.__nad_closing_balance = 1 THEN balance END) AS closing_balance\n"
            "FROM (SELECT __base.*, CASE WHEN ROW_NUMBER() OVER "
            "(PARTITION BY account_id, customer_id, balance_date ORDER BY balance_date) = 1 "
            "AND balance_date = MAX(balance_date) OVER (PARTITION BY account_id, customer_id) "
            "THEN 1 ELSE 0 END AS __nad_closing_balance "
            "FROM (SELECT * FROM account_balances) AS __base) AS account_balances\n"
            "GROUP BY customer_id"
        )

    def test_non_additive_filter_applies_before_window(self):
        """Test that a row filter on the measure's model runs inside its sub-query."""
        sql = compile_pg(
            "SELECT closing_balance FROM account_balances WHERE balance_date = '2024-01-01'"
        )
        assert sql == (
            "SELECT SUM(CASE WHEN account_balances.__nad_closing_balance = 1 THEN balance END) "
            "AS closing_balance\n"
            "FROM (SELECT __base.*, CASE WHEN ROW_NUMBER() OVER "
            "(PARTITION BY account_id, customer_id, balance_date ORDER BY balance_date) = 1 "
            "AND balance_date = MAX(balance_date) OVER (PARTITION BY account_id) "
            "THEN 1 ELSE 0 END AS __nad_closing_balance "
            "FROM (SELECT * FROM account_balances) AS __base "
            "WHERE DATE_TRUNC('day', balance_date) = '2024-01-01') AS account_balances"
        )

    def test_non_additive_window_per_group(self):
        """Test that the MIN/MAX window is taken within each output group."""
        sql = compile_pg("SELECT balance_date, closing_balance FROM account_balances")
        assert "MAX(balance_date) OVER (PARTITION BY account_id, DATE_TRUNC('day', balance_date))" in sql
        assert sql.endswith("GROUP BY DATE_TRUNC('day', balance_date)")

    def test_filter_outside_non_additive_model_stays_outer(self):
        """Test that filters on models without keep flags remain in the outer WHERE."""
        sql = compile_pg("SELECT total_revenue FROM orders WHERE status = 'shipped'")
        assert sql == (
            "SELECT SUM(revenue_amount) AS total_revenue\n"
            "FROM (SELECT * FROM orders) AS orders\n"
            "WHERE status = 'shipped'"
        )


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
