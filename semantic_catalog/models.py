"""
Semantic Model definitions
Defines the structure of our semantic layer - the single source of truth.
A semantic model is a business-level view (entities, dimensions, measures)
over one base SELECT statement. Models are validated when they are built
and are never mutated afterwards.
"""

import re
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from semantic_catalog.errors import ValidationError


class EntityType(str, Enum):
    """Key roles an entity can play inside its model."""
    PRIMARY = "primary"
    UNIQUE = "unique"
    FOREIGN = "foreign"


class DimensionType(str, Enum):
    """Dimensions are either plain attributes or time-typed."""
    CATEGORICAL = "categorical"
    TIME = "time"


class TimeGranularity(str, Enum):
    """Calendar units a time dimension can be bucketed to."""
    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class AggregationType(str, Enum):
    """Supported aggregation types for measures."""
    NONE = "none"
    SUM = "sum"
    MAX = "max"
    MIN = "min"
    AVG = "avg"
    COUNT = "count"
    MEDIAN = "median"
    COUNT_DISTINCT = "count_distinct"
    SUM_BOOLEAN = "sum_boolean"


class WindowChoice(str, Enum):
    """Which edge of a non-additive dimension a measure keeps."""
    MIN = "min"
    MAX = "max"


class Element(BaseModel):
    """
    Fields shared by entities, dimensions and measures.
    `expr` is the physical SQL expression over the model's base statement;
    when it is missing the element name itself is the column.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique name of the element within its model")
    description: str = Field("", description="Human-readable description")
    alias: Optional[str] = Field(None, description="Alternative name usable in semantic SQL")
    expr: Optional[str] = Field(None, description="Physical SQL expression. If None, uses name.")
    data_type: Optional[str] = Field(None, description="Native database type name")

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("name must not be blank")
        return v

    @property
    def physical_expr(self) -> str:
        """Get the SQL expression this element stands for."""
        if self.expr and self.expr.strip():
            return self.expr.strip()
        return self.name

    def matches(self, identifier: str, case_sensitive: bool = False) -> bool:
        """Check whether an identifier names this element (by name or alias)."""
        names = [self.name] + ([self.alias] if self.alias else [])
        if case_sensitive:
            return identifier in names
        return identifier.lower() in (n.lower() for n in names)


class Entity(Element):
    """
    An entity is a key of the model's rows (primary, unique or foreign).
    Models sharing an entity name can be joined on it.
    """
    type: EntityType = Field(..., description="Key role of the entity")


class EnumValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: Optional[str] = None


class TypeParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    time_granularity: TimeGranularity = Field(..., description="Bucket size for the time dimension")


class Dimension(Element):
    """
    A dimension is an attribute usable for grouping and filtering.
    Dimensions are the 'by' in 'revenue by country'.
    """
    type: DimensionType = Field(DimensionType.CATEGORICAL, description="categorical or time")
    enum_values: List[EnumValue] = Field(
        default_factory=list,
        description="Closed set of allowed literal values"
    )
    type_params: Optional[TypeParams] = Field(None, description="Only for time dimensions")

    @field_validator("enum_values", mode="before")
    @classmethod
    def _coerce_enum_values(cls, v: Any) -> Any:
        if v is None:
            return []
        return [{"value": item} if isinstance(item, str) else item for item in v]

    @property
    def is_time(self) -> bool:
        return self.type == DimensionType.TIME

    @property
    def granularity(self) -> Optional[TimeGranularity]:
        return self.type_params.time_granularity if self.type_params else None

    def allowed_values(self) -> List[str]:
        return [ev.value for ev in self.enum_values]


class NonAdditiveDimension(BaseModel):
    """
    Marks a dimension across which a measure must not be summed (e.g. balances).
    With a window_choice only the MIN/MAX value of that dimension per
    window_groupings (entity names) is kept.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    window_choice: Optional[WindowChoice] = None
    window_groupings: List[str] = Field(default_factory=list)


class Measure(Element):
    """
    A measure is a business quantity with a declared aggregation.
    Measures are the 'what' in 'show me revenue'.
    """
    agg: AggregationType = Field(AggregationType.NONE, description="Aggregation type")
    non_additive_dimension: Optional[NonAdditiveDimension] = Field(
        None,
        description="Dimension this measure must not be summed across"
    )
    agg_time_dimension: Optional[str] = Field(
        None,
        description="Name of the time dimension used to bucket this measure"
    )

    @field_validator("non_additive_dimension", mode="before")
    @classmethod
    def _coerce_non_additive(cls, v: Any) -> Any:
        if isinstance(v, str):
            return {"name": v}
        return v

    @property
    def is_aggregated(self) -> bool:
        return self.agg != AggregationType.NONE


class Defaults(BaseModel):
    model_config = ConfigDict(frozen=True)

    agg_time_dimension: Optional[str] = Field(
        None,
        description="Default time dimension for measures without their own"
    )


_TRAILING_SEMICOLON = re.compile(r".*;\s*$", re.DOTALL)


class SemanticModel(BaseModel):
    """
    A named collection of entities, dimensions and measures over one base
    SELECT statement. Validated on construction.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique name of the semantic model")
    description: str = Field("", description="Human-readable description")
    alias: Optional[str] = Field(None, description="Alternative name usable as a qualifier")
    model: str = Field(..., description="Base SELECT statement the elements are defined over")
    tags: List[str] = Field(default_factory=list)
    defaults: Defaults = Field(default_factory=Defaults)
    entities: List[Entity] = Field(default_factory=list)
    dimensions: List[Dimension] = Field(default_factory=list)
    measures: List[Measure] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_structure(self) -> "SemanticModel":
        validate_semantic_model(self)
        return self

    def elements(self) -> Iterator[Element]:
        """Iterate entities, dimensions and measures in declaration order."""
        yield from self.entities
        yield from self.dimensions
        yield from self.measures

    def find_element(self, identifier: str, case_sensitive: bool = False) -> Optional[Element]:
        """Find an element by exact name first, then by alias."""
        for element in self.elements():
            if element.name == identifier:
                return element
        for element in self.elements():
            if element.matches(identifier, case_sensitive):
                return element
        return None

    def get_dimension(self, name: str) -> Dimension:
        for dimension in self.dimensions:
            if dimension.name == name:
                return dimension
        raise ValueError(f"Dimension '{name}' not found in semantic model '{self.name}'")

    def get_entity(self, name: str) -> Entity:
        for entity in self.entities:
            if entity.name == name:
                return entity
        raise ValueError(f"Entity '{name}' not found in semantic model '{self.name}'")

    def matches(self, qualifier: str, case_sensitive: bool = False) -> bool:
        """Check whether a qualifier names this model (by name or alias)."""
        names = [self.name] + ([self.alias] if self.alias else [])
        if case_sensitive:
            return qualifier in names
        return qualifier.lower() in (n.lower() for n in names)


def _describe(model_name: Optional[str]) -> str:
    return f"the semantic model '{model_name}'" if model_name else "the semantic model"


def validate_semantic_model(model: SemanticModel) -> None:
    """
    Check the structural invariants of one model.
    Raises ValidationError on the first violation; never mutates the model.
    """
    where = _describe(model.name)

    sql = model.model or ""
    if not sql.strip().upper().startswith("SELECT"):
        raise ValidationError(f"The model of {where} must be a SELECT statement", model.name)
    if _TRAILING_SEMICOLON.match(sql):
        raise ValidationError(
            f"The model of {where} must be a single SELECT statement without a trailing ';'",
            model.name
        )

    names = set()
    for kind, elements in (("entity", model.entities),
                           ("dimension", model.dimensions),
                           ("measure", model.measures)):
        for element in elements:
            if element.name in names:
                raise ValidationError(
                    f"There is duplicate name in {where}: {kind} '{element.name}'",
                    model.name
                )
            names.add(element.name)

    primaries = [e.name for e in model.entities if e.type == EntityType.PRIMARY]
    if len(primaries) > 1:
        raise ValidationError(
            f"There can be at most one primary entity in {where}, found {primaries}",
            model.name
        )

    dimensions: Dict[str, Dimension] = {d.name: d for d in model.dimensions}
    entity_names = {e.name for e in model.entities}

    for dimension in model.dimensions:
        if dimension.is_time:
            if dimension.granularity is None:
                raise ValidationError(
                    f"Time dimension '{dimension.name}' in {where} requires type_params.time_granularity",
                    model.name
                )
            if dimension.enum_values:
                raise ValidationError(
                    f"Time dimension '{dimension.name}' in {where} cannot declare enum values",
                    model.name
                )
        elif dimension.type_params is not None:
            raise ValidationError(
                f"Categorical dimension '{dimension.name}' in {where} cannot declare type_params",
                model.name
            )

    default_time = model.defaults.agg_time_dimension
    if default_time:
        _require_time_dimension(dimensions, default_time, f"agg_time_dimension of defaults", where, model.name)

    for measure in model.measures:
        if measure.agg_time_dimension:
            _require_time_dimension(
                dimensions, measure.agg_time_dimension,
                f"agg_time_dimension of measure '{measure.name}'", where, model.name
            )
        nad = measure.non_additive_dimension
        if nad is not None:
            if nad.name not in dimensions:
                raise ValidationError(
                    f"The non_additive_dimension '{nad.name}' of measure '{measure.name}' "
                    f"does not exist in the dimensions of {where}",
                    model.name
                )
            missing = [g for g in nad.window_groupings if g not in entity_names]
            if missing:
                raise ValidationError(
                    f"The window_groupings {missing} of measure '{measure.name}' "
                    f"are not entities of {where}",
                    model.name
                )


def _require_time_dimension(dimensions: Dict[str, Dimension], name: str, role: str,
                            where: str, model_name: str) -> None:
    dimension = dimensions.get(name)
    if dimension is None or not dimension.is_time:
        raise ValidationError(
            f"The '{name}' of the {role} does not exist or type is not time in the dimensions of {where}",
            model_name
        )


SemanticModelLike = Union[SemanticModel, Dict[str, Any]]


def build_semantic_model(data: SemanticModelLike) -> SemanticModel:
    """
    Build a SemanticModel from a mapping.
    Field and type problems are reported as ValidationError naming the model.
    """
    if isinstance(data, SemanticModel):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError(f"A semantic model must be a mapping, got {type(data).__name__}")
    name = data.get("name")
    try:
        return SemanticModel(**data)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"Invalid semantic model '{name}': {problems}", name) from e
