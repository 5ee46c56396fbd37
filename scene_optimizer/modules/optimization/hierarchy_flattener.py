"""
#WHERE
    Second pass of pipeline.OptimizationPipeline.

#WHAT
    Bounds the depth of mesh-bearing nodes. Every node whose children sit at
    ``max_depth`` becomes a collapse point: all mesh-bearing descendants are
    re-parented directly under it with the product of the transforms between
    them baked in, and the transform-only nodes in between are discarded.

    World placement of every surviving mesh node is preserved. With
    ``max_depth == 0`` the root itself is the collapse point, so meshes end
    up at depth 1; the root is never removed.

#INPUT
    SceneGraph, max_depth >= 0.

#OUTPUT
    (new SceneGraph, OptimizationResult).
"""

from __future__ import annotations

import logging
import time
from typing import Tuple

from scene_optimizer.shared.constants import DEFAULT_MAX_FLATTEN_DEPTH
from scene_optimizer.shared.errors import InvalidArgumentError, require
from scene_optimizer.modules.scene_graph import SceneGraph
from .models import OptimizationResult

log = logging.getLogger(__name__)


class HierarchyFlattener:

    def __init__(self, max_depth: int = DEFAULT_MAX_FLATTEN_DEPTH) -> None:
        if max_depth < 0:
            raise InvalidArgumentError(f"max_depth must be >= 0, got {max_depth}")
        self.max_depth = max_depth

    def flatten(self, graph: SceneGraph) -> Tuple[SceneGraph, OptimizationResult]:
        require(graph, "graph")
        t0 = time.perf_counter()
        out = graph.copy()
        result = OptimizationResult("flatten", nodes_before=graph.node_count())

        collapse_depth = max(self.max_depth - 1, 0)
        targets = [h for h, d in out.walk() if d == collapse_depth]
        promoted = discarded = 0
        for target in targets:
            p, d = self._collapse(out, target)
            promoted += p
            discarded += d

        result.nodes_after = out.node_count()
        result.changes = promoted + discarded
        result.details = {"promoted": promoted, "discarded": discarded, "max_depth": self.max_depth}
        result.elapsed_ms = (time.perf_counter() - t0) * 1000
        log.info("[flatten] %s: %d mesh nodes promoted, %d nodes discarded (max depth %d)",
                 graph.name, promoted, discarded, self.max_depth)
        return out, result

    @staticmethod
    def _collapse(graph: SceneGraph, target: int) -> Tuple[int, int]:
        descendants = [h for h, _ in graph.walk(target)][1:]
        if not descendants:
            return 0, 0
        mesh_nodes = [h for h in descendants if graph.nodes[h].mesh is not None]
        # relative transforms must be taken before any link is rewritten
        baked = {h: graph.relative_transform(target, h) for h in mesh_nodes}
        direct = set(graph.nodes[target].children)

        promoted = 0
        for h in mesh_nodes:
            node = graph.nodes[h]
            if h not in direct or node.children:
                promoted += 1
            node.transform = baked[h]
            node.children = []
            node.parent = target
        graph.nodes[target].children = list(mesh_nodes)

        keep = set(mesh_nodes)
        dropped = [h for h in descendants if h not in keep]
        for h in dropped:
            del graph.nodes[h]
        return promoted, len(dropped)
