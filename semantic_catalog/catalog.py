# semantic_catalog/catalog.py - SAMPLE MODELS

from typing import List

from semantic_catalog.models import (
    Entity, Dimension, Measure, SemanticModel, Defaults, TypeParams,
    NonAdditiveDimension, AggregationType, DimensionType, EntityType,
    TimeGranularity, WindowChoice
)
from semantic_catalog.registry import SemanticModelRegistry


def create_orders_model() -> SemanticModel:
    """Orders fact model: one row per order."""
    return SemanticModel(
        name="orders",
        description="Customer orders",
        model="SELECT * FROM orders",
        defaults=Defaults(agg_time_dimension="order_date"),
        entities=[
            Entity(name="order_id", type=EntityType.PRIMARY, description="Order identifier"),
            Entity(name="customer", type=EntityType.FOREIGN, expr="customer_id",
                   description="Customer who placed the order"),
        ],
        dimensions=[
            Dimension(
                name="order_date",
                description="Order date",
                type=DimensionType.TIME,
                type_params=TypeParams(time_granularity=TimeGranularity.DAY),
                data_type="date"
            ),
            Dimension(name="status", description="Order status",
                      enum_values=["pending", "shipped", "cancelled"]),
            Dimension(name="is_promo", description="Ordered during a promotion", data_type="bool"),
            Dimension(name="has_discount", description="A discount code was used", data_type="bool"),
        ],
        measures=[
            Measure(
                name="total_revenue",
                description="Total revenue",
                agg=AggregationType.SUM,
                expr="revenue_amount",
                data_type="numeric"
            ),
            Measure(
                name="order_count",
                description="Number of orders",
                agg=AggregationType.COUNT,
                expr="order_id"
            ),
            Measure(
                name="unique_customers",
                description="Distinct customers",
                agg=AggregationType.COUNT_DISTINCT,
                expr="customer_id"
            ),
        ]
    )


def create_customers_model() -> SemanticModel:
    """Customer dimension model."""
    return SemanticModel(
        name="customers",
        description="Customer reference data",
        model="SELECT * FROM customers",
        entities=[
            Entity(name="customer", type=EntityType.PRIMARY, expr="customer_id"),
        ],
        dimensions=[
            Dimension(name="country", description="Customer country", expr="UPPER(country_code)"),
            Dimension(name="customer_name", description="Customer name", expr="full_name",
                      alias="name"),
        ]
    )


def create_balances_model() -> SemanticModel:
    """Daily account balance snapshots. Balances must not be summed over time."""
    return SemanticModel(
        name="account_balances",
        description="Daily account balance snapshots",
        model="SELECT * FROM account_balances",
        defaults=Defaults(agg_time_dimension="balance_date"),
        entities=[
            Entity(name="account", type=EntityType.PRIMARY, expr="account_id"),
            Entity(name="customer", type=EntityType.FOREIGN, expr="customer_id"),
        ],
        dimensions=[
            Dimension(
                name="balance_date",
                type=DimensionType.TIME,
                type_params=TypeParams(time_granularity=TimeGranularity.DAY)
            ),
        ],
        measures=[
            Measure(
                name="closing_balance",
                description="Balance at the end of the period",
                agg=AggregationType.SUM,
                expr="balance",
                non_additive_dimension=NonAdditiveDimension(
                    name="balance_date",
                    window_choice=WindowChoice.MAX,
                    window_groupings=["account"]
                )
            ),
        ]
    )


def create_sample_models() -> List[SemanticModel]:
    return [create_orders_model(), create_customers_model(), create_balances_model()]


def create_sample_registry() -> SemanticModelRegistry:
    return SemanticModelRegistry(create_sample_models())
