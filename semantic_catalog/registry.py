"""
Semantic model registry.
Holds a validated, read-only set of semantic models and hands it to the compiler.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence

from semantic_catalog.errors import ValidationError
from semantic_catalog.models import (
    SemanticModel, SemanticModelLike, build_semantic_model, validate_semantic_model
)


logger = logging.getLogger(__name__)


class SemanticModelProvider(ABC):
    """Anything that can supply the active set of semantic models."""

    @abstractmethod
    def get_semantic_models(self) -> List[SemanticModel]:
        ...


def validate_semantic_models(models: Sequence[SemanticModel]) -> None:
    """
    Validate a set of semantic models as a whole.
    Checks each model on its own and that no two models share a name.
    Never mutates the models.
    """
    seen = set()
    for model in models:
        validate_semantic_model(model)
        if model.name in seen:
            raise ValidationError(
                f"There is duplicate semantic model name: '{model.name}'",
                model.name
            )
        seen.add(model.name)


def _coerce(models: Iterable[SemanticModelLike]) -> List[SemanticModel]:
    return [build_semantic_model(model) for model in models]


class SemanticModelRegistry(SemanticModelProvider):
    """
    Immutable registry of semantic models.
    Validated once at construction; share it freely between compile calls.
    Reloading means building a new registry with with_models().
    """

    def __init__(self, models: Iterable[SemanticModelLike] = ()):
        models = _coerce(models)
        validate_semantic_models(models)
        self._models = tuple(models)
        self._by_name: Dict[str, SemanticModel] = {m.name: m for m in self._models}
        logger.debug(f"Registered {len(self._models)} semantic models: {list(self._by_name)}")

    def get_semantic_models(self) -> List[SemanticModel]:
        return list(self._models)

    def get_model(self, name: str) -> SemanticModel:
        """Get a model by name or alias."""
        if name in self._by_name:
            return self._by_name[name]
        for model in self._models:
            if model.matches(name):
                return model
        raise ValueError(f"Semantic model '{name}' not found")

    def find_model(self, name: str) -> Optional[SemanticModel]:
        try:
            return self.get_model(name)
        except ValueError:
            return None

    def with_models(self, models: Iterable[SemanticModelLike]) -> "SemanticModelRegistry":
        """Return a new registry holding the given models."""
        return SemanticModelRegistry(models)

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self):
        return iter(self._models)

    def __contains__(self, name: str) -> bool:
        return self.find_model(name) is not None
