"""
Semantic model cache.
Keeps the models loaded from each project's schema files, keyed by project id
and relative file path. The cache is an ordinary object owned by its caller;
nothing about it is global.
"""

import logging
import threading
from collections import OrderedDict
from typing import Dict, List, Optional

from semantic_catalog.models import SemanticModel
from semantic_catalog.registry import SemanticModelProvider, validate_semantic_models


logger = logging.getLogger(__name__)


class SemanticModelCache:
    """Thread-safe project -> file path -> models map."""

    def __init__(self):
        self._projects: Dict[str, "OrderedDict[str, List[SemanticModel]]"] = {}
        self._lock = threading.Lock()

    def add(self, project_id: str, relative_path: str, models: List[SemanticModel]) -> None:
        """Insert or replace the models of one file."""
        with self._lock:
            files = self._projects.setdefault(project_id, OrderedDict())
            files[relative_path] = list(models)
        logger.debug(f"Cached {len(models)} semantic models for {project_id}:{relative_path}")

    def get(self, project_id: str, relative_path: str) -> Optional[List[SemanticModel]]:
        with self._lock:
            files = self._projects.get(project_id)
            if files is None or relative_path not in files:
                return None
            return list(files[relative_path])

    def get_project(self, project_id: str) -> Dict[str, List[SemanticModel]]:
        """Get a snapshot of every cached file of a project."""
        with self._lock:
            files = self._projects.get(project_id, OrderedDict())
            return OrderedDict((path, list(models)) for path, models in files.items())

    def models(self, project_id: str) -> List[SemanticModel]:
        """All models of a project, in file insertion order."""
        with self._lock:
            files = self._projects.get(project_id, OrderedDict())
            return [model for models in files.values() for model in models]

    def remove(self, project_id: str, relative_path: Optional[str] = None) -> None:
        """Evict one file, or the whole project when no path is given."""
        with self._lock:
            if relative_path is None:
                self._projects.pop(project_id, None)
                return
            files = self._projects.get(project_id)
            if files is not None:
                files.pop(relative_path, None)
                if not files:
                    del self._projects[project_id]

    def clear(self) -> None:
        with self._lock:
            self._projects.clear()

    def __contains__(self, project_id: str) -> bool:
        with self._lock:
            return project_id in self._projects


class CachedModelProvider(SemanticModelProvider):
    """Expose one project's cached models as the active model set."""

    def __init__(self, cache: SemanticModelCache, project_id: str):
        self.cache = cache
        self.project_id = project_id

    def get_semantic_models(self) -> List[SemanticModel]:
        models = self.cache.models(self.project_id)
        validate_semantic_models(models)
        return models
