"""
Presentation views of semantic models.
A thin projection for listing models to users and agents: physical details
(the base statement and element expressions) are left out.
"""

from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from semantic_catalog.models import Dimension, Entity, Measure, SemanticModel


# native type name -> ANSI type name, usually DialectAdapter.to_ansi_sql_type
TypeMapper = Callable[[str], object]


def _ansi_name(data_type: Optional[str], type_mapper: Optional[TypeMapper]) -> Optional[str]:
    if data_type is None or type_mapper is None:
        return data_type
    mapped = type_mapper(data_type)
    return getattr(mapped, "value", mapped)


class EntityView(BaseModel):
    name: str
    description: Optional[str] = None
    alias: Optional[str] = None
    type: str
    data_type: Optional[str] = None

    @classmethod
    def from_entity(cls, entity: Entity, type_mapper: Optional[TypeMapper] = None) -> "EntityView":
        return cls(
            name=entity.name,
            description=entity.description or None,
            alias=entity.alias,
            type=entity.type.value,
            data_type=_ansi_name(entity.data_type, type_mapper)
        )


class DimensionView(BaseModel):
    name: str
    description: Optional[str] = None
    alias: Optional[str] = None
    type: str
    time_granularity: Optional[str] = None
    enum_values: Optional[List[str]] = None
    data_type: Optional[str] = None

    @classmethod
    def from_dimension(cls, dimension: Dimension,
                       type_mapper: Optional[TypeMapper] = None) -> "DimensionView":
        return cls(
            name=dimension.name,
            description=dimension.description or None,
            alias=dimension.alias,
            type=dimension.type.value,
            time_granularity=dimension.granularity.value if dimension.granularity else None,
            enum_values=dimension.allowed_values() or None,
            data_type=_ansi_name(dimension.data_type, type_mapper)
        )


class MeasureView(BaseModel):
    name: str
    description: Optional[str] = None
    alias: Optional[str] = None
    agg: str
    non_additive_dimension: Optional[str] = None
    agg_time_dimension: Optional[str] = None
    data_type: Optional[str] = None

    @classmethod
    def from_measure(cls, measure: Measure, type_mapper: Optional[TypeMapper] = None) -> "MeasureView":
        nad = measure.non_additive_dimension
        return cls(
            name=measure.name,
            description=measure.description or None,
            alias=measure.alias,
            agg=measure.agg.value,
            non_additive_dimension=nad.name if nad else None,
            agg_time_dimension=measure.agg_time_dimension,
            data_type=_ansi_name(measure.data_type, type_mapper)
        )


class SemanticModelView(BaseModel):
    """What a user sees of a semantic model."""
    name: str
    description: Optional[str] = None
    alias: Optional[str] = None
    tags: Optional[List[str]] = None
    agg_time_dimension: Optional[str] = None
    entities: List[EntityView] = Field(default_factory=list)
    dimensions: List[DimensionView] = Field(default_factory=list)
    measures: List[MeasureView] = Field(default_factory=list)

    @classmethod
    def from_model(cls, model: SemanticModel,
                   type_mapper: Optional[TypeMapper] = None) -> "SemanticModelView":
        return cls(
            name=model.name,
            description=model.description or None,
            alias=model.alias,
            tags=list(model.tags) or None,
            agg_time_dimension=model.defaults.agg_time_dimension,
            entities=[EntityView.from_entity(e, type_mapper) for e in model.entities],
            dimensions=[DimensionView.from_dimension(d, type_mapper) for d in model.dimensions],
            measures=[MeasureView.from_measure(m, type_mapper) for m in model.measures]
        )

    def to_json(self) -> str:
        """Serialize without empty fields."""
        return self.model_dump_json(exclude_none=True)
