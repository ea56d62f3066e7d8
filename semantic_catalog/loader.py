"""
Load semantic models from YAML schema files.

Schema files list their models under a top-level `semantic_models:` key:

    semantic_models:
      - name: orders
        model: SELECT * FROM orders
        defaults:
          agg_time_dimension: order_date
        dimensions:
          - name: order_date
            type: time
            type_params:
              time_granularity: day
        measures:
          - name: total_revenue
            agg: sum
            expr: revenue_amount
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

import yaml

from semantic_catalog.errors import ValidationError
from semantic_catalog.models import SemanticModel, build_semantic_model


logger = logging.getLogger(__name__)

SEMANTIC_MODELS_KEY = "semantic_models"

Source = Union[str, os.PathLike, Mapping[str, Any]]


def _read_document(source: Source) -> Any:
    if isinstance(source, Mapping):
        return source
    if isinstance(source, os.PathLike) or (isinstance(source, str) and "\n" not in source
                                           and source.endswith((".yaml", ".yml"))):
        path = Path(source)
        logger.info(f"Loading semantic models from {path}")
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    else:
        text = source
    try:
        return yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid semantic model YAML: {e}") from e


def load_semantic_models(source: Source) -> List[SemanticModel]:
    """
    Build semantic models from a schema file path, YAML text or an already
    parsed mapping. Structural problems surface as ValidationError.
    """
    document = _read_document(source)
    if not isinstance(document, Mapping):
        raise ValidationError("A semantic model document must be a mapping")

    entries = document.get(SEMANTIC_MODELS_KEY) or []
    if not isinstance(entries, list):
        raise ValidationError(f"'{SEMANTIC_MODELS_KEY}' must be a list")

    models = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ValidationError(f"Semantic model #{index + 1} must be a mapping")
        models.append(_build_model(entry))

    logger.debug(f"Loaded {len(models)} semantic models")
    return models


def _build_model(entry: Mapping[str, Any]) -> SemanticModel:
    return build_semantic_model(_normalize(entry))


def _normalize(entry: Mapping[str, Any]) -> Dict[str, Any]:
    # YAML lists written as `key:` with no items load as None
    data = dict(entry)
    for key in ("entities", "dimensions", "measures", "tags"):
        if data.get(key) is None:
            data.pop(key, None)
    if data.get("defaults") is None:
        data.pop("defaults", None)
    return data
