"""
Semantic catalog package - the single source of truth for business logic.
Defines semantic models (entities, dimensions, measures), their validation,
loading, caching and presentation views.
"""

from semantic_catalog.errors import SemanticError, ValidationError

from semantic_catalog.models import (
    EntityType,
    DimensionType,
    TimeGranularity,
    AggregationType,
    WindowChoice,
    Element,
    Entity,
    EnumValue,
    TypeParams,
    Dimension,
    NonAdditiveDimension,
    Measure,
    Defaults,
    SemanticModel,
    validate_semantic_model,
    build_semantic_model
)

from semantic_catalog.registry import (
    SemanticModelProvider,
    SemanticModelRegistry,
    validate_semantic_models
)

from semantic_catalog.cache import SemanticModelCache, CachedModelProvider
from semantic_catalog.loader import load_semantic_models
from semantic_catalog.views import SemanticModelView, EntityView, DimensionView, MeasureView

__all__ = [
    'SemanticError',
    'ValidationError',
    'EntityType',
    'DimensionType',
    'TimeGranularity',
    'AggregationType',
    'WindowChoice',
    'Element',
    'Entity',
    'EnumValue',
    'TypeParams',
    'Dimension',
    'NonAdditiveDimension',
    'Measure',
    'Defaults',
    'SemanticModel',
    'validate_semantic_model',
    'build_semantic_model',
    'SemanticModelProvider',
    'SemanticModelRegistry',
    'validate_semantic_models',
    'SemanticModelCache',
    'CachedModelProvider',
    'load_semantic_models',
    'SemanticModelView',
    'EntityView',
    'DimensionView',
    'MeasureView'
]

__version__ = "1.0.0"
