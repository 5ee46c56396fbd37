"""
#WHERE
    Returned by every optimization pass and collected by pipeline.py.

#WHAT
    Per-pass outcome record and whole-scene statistics used to compare a
    graph before and after optimization.

#INPUT / #OUTPUT
    OptimizationResult, SceneStatistics.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict

from scene_optimizer.modules.scene_graph import SceneGraph


@dataclass(slots=True)
class OptimizationResult:
    pass_name: str
    nodes_before: int = 0
    nodes_after: int = 0
    changes: int = 0
    elapsed_ms: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return self.changes > 0


@dataclass(slots=True)
class SceneStatistics:
    node_count: int = 0
    mesh_node_count: int = 0
    rendered_polygons: int = 0
    material_count: int = 0
    texture_memory_bytes: int = 0
    max_depth: int = 0
    estimated_draw_calls: int = 0
    target_draw_calls: int = 0

    @property
    def within_draw_call_budget(self) -> bool:
        return self.estimated_draw_calls <= self.target_draw_calls

    @classmethod
    def collect(cls, graph: SceneGraph, target_draw_calls: int = 0) -> "SceneStatistics":
        stats = cls(target_draw_calls=target_draw_calls)
        for handle, depth in graph.walk():
            node = graph.nodes[handle]
            stats.node_count += 1
            stats.max_depth = max(stats.max_depth, depth)
            if node.mesh is not None:
                stats.mesh_node_count += 1
                stats.rendered_polygons += graph.meshes[node.mesh].polygon_count
        # one draw call per mesh + material submission
        stats.estimated_draw_calls = stats.mesh_node_count
        stats.material_count = len(graph.materials)
        stats.texture_memory_bytes = sum(t.byte_size for t in graph.textures.values())
        return stats

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["within_draw_call_budget"] = self.within_draw_call_budget
        return out
