"""
#WHERE
    Entry point for optimizing one scene. Called by main.py, by
    modules/batch/coordinator.py (once per batch item) and by tests.

#WHAT
    Scene in, optimized scene out: instances -> flatten -> transforms ->
    meshes/LOD -> materials -> textures. Each pass is gated by its toggle in
    OptimizationSettings and consumes the previous pass's output graph.

#INPUT
    SceneGraph, OptimizationSettings.

#OUTPUT
    PipelineResult: new graph, per-pass OptimizationResult list, before /
    after SceneStatistics.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Callable, Dict, List, Tuple

from scene_optimizer.shared.constants import (
    DEFAULT_INSTANCE_THRESHOLD,
    DEFAULT_LOD_LEVELS,
    DEFAULT_MATERIAL_THRESHOLD,
    DEFAULT_MAX_FLATTEN_DEPTH,
    DEFAULT_MAX_TEXTURE_SIZE,
    DEFAULT_SHADER_COMPLEXITY,
    DEFAULT_TARGET_DRAW_CALLS,
    DEFAULT_TARGET_MEMORY_MB,
    DEFAULT_TARGET_POLYGONS,
)
from scene_optimizer.shared.errors import InvalidArgumentError, require
from scene_optimizer.shared.mem_profile import tracemalloc_snapshot
from scene_optimizer.modules.scene_graph import SceneGraph
from scene_optimizer.modules.optimization import (
    HierarchyFlattener,
    InstanceOptimizer,
    MaterialMerger,
    MeshOptimizer,
    OptimizationResult,
    SceneStatistics,
    TextureOptimizer,
    TransformOptimizer,
)

log = logging.getLogger(__name__)


@dataclass
class OptimizationSettings:
    optimize_instances: bool = True
    flatten_hierarchy: bool = True
    optimize_transforms: bool = True
    optimize_meshes: bool = True
    optimize_materials: bool = True
    optimize_textures: bool = True
    instance_similarity_threshold: float = DEFAULT_INSTANCE_THRESHOLD
    max_flatten_depth: int = DEFAULT_MAX_FLATTEN_DEPTH
    target_polygon_count: int = DEFAULT_TARGET_POLYGONS
    lod_levels: int = DEFAULT_LOD_LEVELS
    target_memory_usage_mb: int = DEFAULT_TARGET_MEMORY_MB
    target_draw_call_count: int = DEFAULT_TARGET_DRAW_CALLS
    material_similarity_threshold: float = DEFAULT_MATERIAL_THRESHOLD
    max_texture_size: int = DEFAULT_MAX_TEXTURE_SIZE
    shader_complexity: float = DEFAULT_SHADER_COMPLEXITY

    def validate(self) -> None:
        if not 0.0 <= self.instance_similarity_threshold <= 1.0:
            raise InvalidArgumentError("instance_similarity_threshold must be in [0, 1]")
        if not 0.0 <= self.material_similarity_threshold <= 1.0:
            raise InvalidArgumentError("material_similarity_threshold must be in [0, 1]")
        if not 0.0 <= self.shader_complexity <= 1.0:
            raise InvalidArgumentError("shader_complexity must be in [0, 1]")
        if self.max_flatten_depth < 0:
            raise InvalidArgumentError("max_flatten_depth must be >= 0")
        for name in ("target_polygon_count", "lod_levels", "target_memory_usage_mb",
                     "target_draw_call_count", "max_texture_size"):
            if getattr(self, name) <= 0:
                raise InvalidArgumentError(f"{name} must be > 0")

    @property
    def enabled_passes(self) -> List[str]:
        toggles = (
            ("instances", self.optimize_instances),
            ("flatten", self.flatten_hierarchy),
            ("transforms", self.optimize_transforms),
            ("meshes", self.optimize_meshes),
            ("materials", self.optimize_materials),
            ("textures", self.optimize_textures),
        )
        return [name for name, on in toggles if on]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptimizationSettings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            log.warning("[settings] ignoring unknown keys: %s", sorted(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class PipelineResult:
    graph: SceneGraph
    passes: List[OptimizationResult] = field(default_factory=list)
    before: SceneStatistics = field(default_factory=SceneStatistics)
    after: SceneStatistics = field(default_factory=SceneStatistics)
    elapsed_ms: float = 0.0

    def summary(self) -> Dict[str, Any]:
        return {
            "scene": self.graph.name,
            "passes": {p.pass_name: p.changes for p in self.passes},
            "before": self.before.to_dict(),
            "after": self.after.to_dict(),
            "elapsed_ms": round(self.elapsed_ms, 1),
        }


PassFn = Callable[[SceneGraph], Tuple[SceneGraph, OptimizationResult]]


class OptimizationPipeline:
    """SceneGraph -> optimized SceneGraph. The input graph is never modified."""

    def __init__(self, settings: OptimizationSettings | None = None) -> None:
        self.settings = settings or OptimizationSettings()

    def _passes(self, settings: OptimizationSettings) -> List[Tuple[str, PassFn]]:
        table: Dict[str, PassFn] = {
            "instances": InstanceOptimizer(settings.instance_similarity_threshold).optimize,
            "flatten": HierarchyFlattener(settings.max_flatten_depth).flatten,
            "transforms": TransformOptimizer().optimize,
            "meshes": MeshOptimizer(settings.target_polygon_count, settings.lod_levels).optimize,
            "materials": MaterialMerger(settings.material_similarity_threshold,
                                        settings.shader_complexity).optimize,
            "textures": TextureOptimizer(settings.max_texture_size,
                                         settings.target_memory_usage_mb).optimize,
        }
        return [(name, table[name]) for name in settings.enabled_passes]

    def run(self, graph: SceneGraph, settings: OptimizationSettings | None = None) -> PipelineResult:
        require(graph, "graph")
        graph.validate()
        settings = settings or self.settings
        require(settings, "settings")
        settings.validate()
        passes = self._passes(settings)

        t0 = time.perf_counter()
        log.info("[pipeline] %s: %d passes enabled (%s)",
                 graph.name, len(passes), ", ".join(n for n, _ in passes) or "none")
        result = PipelineResult(
            graph=graph.copy(),
            before=SceneStatistics.collect(graph, settings.target_draw_call_count),
        )
        for name, apply in passes:
            with tracemalloc_snapshot(f"{graph.name} {name}"):
                result.graph, outcome = apply(result.graph)
            result.passes.append(outcome)

        result.graph.validate()
        result.after = SceneStatistics.collect(result.graph, settings.target_draw_call_count)
        result.elapsed_ms = (time.perf_counter() - t0) * 1000

        if not result.after.within_draw_call_budget:
            log.warning("[pipeline] %s: %d draw calls, target %d",
                        graph.name, result.after.estimated_draw_calls, settings.target_draw_call_count)
        log.info("[pipeline] %s: nodes %d -> %d, draw calls %d -> %d (%.1f ms)",
                 graph.name, result.before.node_count, result.after.node_count,
                 result.before.estimated_draw_calls, result.after.estimated_draw_calls,
                 result.elapsed_ms)
        return result
