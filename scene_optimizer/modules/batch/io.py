"""Scene supplier / sink collaborators for batch runs.

Real importers and exporters live outside this package; they only need to
provide ``import_scene(path)`` and ``export_scene(path, graph)``.
``InMemorySceneStore`` implements both and is what the demo CLI and the
tests use.
"""

from __future__ import annotations

import logging
from pathlib import PurePath
from typing import Dict, List, Protocol, runtime_checkable

from scene_optimizer.shared.errors import SceneIOError, SceneNotFoundError
from scene_optimizer.modules.scene_graph import SceneGraph

log = logging.getLogger(__name__)


@runtime_checkable
class SceneSupplier(Protocol):
    def import_scene(self, path: str) -> SceneGraph: ...


@runtime_checkable
class SceneSink(Protocol):
    def export_scene(self, path: str, graph: SceneGraph) -> None: ...


class InMemorySceneStore:
    """Scenes keyed by normalised path. Intermediate "directories" need no creation."""

    def __init__(self, scenes: Dict[str, SceneGraph] | None = None) -> None:
        self._scenes: Dict[str, SceneGraph] = {}
        for path, graph in (scenes or {}).items():
            self._scenes[self._key(path)] = graph

    @staticmethod
    def _key(path: str) -> str:
        return PurePath(path).as_posix()

    def paths(self) -> List[str]:
        return list(self._scenes)

    def __contains__(self, path: str) -> bool:
        return self._key(path) in self._scenes

    def import_scene(self, path: str) -> SceneGraph:
        key = self._key(path)
        if key not in self._scenes:
            raise SceneNotFoundError(f"no scene at {path}")
        return self._scenes[key].copy()

    def export_scene(self, path: str, graph: SceneGraph) -> None:
        if graph is None:
            raise SceneIOError(f"nothing to export to {path}")
        self._scenes[self._key(path)] = graph.copy()
        log.debug("[io] exported %s -> %s", graph.name, path)
