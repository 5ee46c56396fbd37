"""
#WHERE
    Third pass of pipeline.OptimizationPipeline.

#WHAT
    Two local rewrites, repeated until nothing changes:

    * snap: a transform within 1e-4 of identity (element-wise) becomes the
      exact identity;
    * fold: a transform-only node (no mesh) pushes its transform into all of
      its children when every ``parent @ child`` keeps the decomposed scale
      equal to the product of scales within 1e-3. The node is reset to
      identity.

    Running the pass again on its own output changes nothing.

#INPUT
    SceneGraph.

#OUTPUT
    (new SceneGraph, OptimizationResult).
"""

from __future__ import annotations

import logging
import time
from typing import Tuple

from scene_optimizer.shared.errors import require
from scene_optimizer.shared.transforms import identity, is_identity, is_near_identity, preserves_scale
from scene_optimizer.modules.scene_graph import SceneGraph
from .models import OptimizationResult

log = logging.getLogger(__name__)


class TransformOptimizer:

    def _snap(self, graph: SceneGraph, handle: int) -> bool:
        node = graph.nodes[handle]
        if not is_identity(node.transform) and is_near_identity(node.transform):
            node.transform = identity()
            return True
        return False

    def _fold(self, graph: SceneGraph, handle: int) -> bool:
        node = graph.nodes[handle]
        if node.mesh is not None or not node.children or is_identity(node.transform):
            return False
        children = [graph.nodes[c] for c in node.children]
        if not all(preserves_scale(node.transform, c.transform) for c in children):
            return False
        for child in children:
            child.transform = node.transform @ child.transform
        node.transform = identity()
        return True

    def optimize(self, graph: SceneGraph) -> Tuple[SceneGraph, OptimizationResult]:
        require(graph, "graph")
        t0 = time.perf_counter()
        out = graph.copy()
        result = OptimizationResult("transforms", nodes_before=graph.node_count())
        snapped = folded = sweeps = 0

        for sweeps in range(1, result.nodes_before + 2):
            changed = False
            for handle, _ in list(out.walk()):
                if self._snap(out, handle):
                    snapped += 1
                    changed = True
                if self._fold(out, handle):
                    folded += 1
                    changed = True
            if not changed:
                break

        result.nodes_after = out.node_count()
        result.changes = snapped + folded
        result.details = {"snapped": snapped, "folded": folded, "sweeps": sweeps}
        result.elapsed_ms = (time.perf_counter() - t0) * 1000
        log.info("[transforms] %s: %d snapped, %d folded in %d sweeps",
                 graph.name, snapped, folded, sweeps)
        return out, result
