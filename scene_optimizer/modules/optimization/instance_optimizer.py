"""
#WHERE
    First pass of pipeline.OptimizationPipeline; also usable on its own.

#WHAT
    Collapses groups of nodes that draw the same mesh with the same material
    at (nearly) the same world placement into one representative instance
    node. The representative hangs under the root with bounds in world
    space and a local transform that cancels the root's own transform.

#INPUT
    SceneGraph, similarity threshold in [0, 1].

#OUTPUT
    (new SceneGraph, OptimizationResult). The input graph is left untouched.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Tuple

import numpy as np

from scene_optimizer.shared.constants import DEFAULT_INSTANCE_THRESHOLD, MERGED_NODE_PREFIX
from scene_optimizer.shared.errors import InvalidArgumentError, require
from scene_optimizer.shared.transforms import transform_box, transform_similarity
from scene_optimizer.modules.scene_graph import Bounds, Node, SceneGraph
from .models import OptimizationResult

log = logging.getLogger(__name__)


def instance_similarity(a: Node, world_a: np.ndarray, b: Node, world_b: np.ndarray) -> float:
    """0 on any mesh/material mismatch, else the binary world-transform similarity."""
    if a.mesh != b.mesh or a.material != b.material:
        return 0.0
    return transform_similarity(world_a, world_b)


class InstanceOptimizer:

    def __init__(self, similarity_threshold: float = DEFAULT_INSTANCE_THRESHOLD) -> None:
        if not 0.0 <= similarity_threshold <= 1.0:
            raise InvalidArgumentError(
                f"instance similarity threshold must be in [0, 1], got {similarity_threshold}"
            )
        self.similarity_threshold = similarity_threshold

    def find_groups(self, graph: SceneGraph) -> List[List[int]]:
        """Greedy anchor grouping over mesh+material nodes in depth-first order."""
        candidates = [
            h for h, _ in graph.walk()
            if h != graph.root and graph.nodes[h].mesh is not None and graph.nodes[h].material is not None
        ]
        world = {h: graph.world_transform(h) for h in candidates}
        processed = set()
        groups = []
        for i, anchor in enumerate(candidates):
            if anchor in processed:
                continue
            a = graph.nodes[anchor]
            group = [anchor]
            for other in candidates[i + 1:]:
                if other in processed:
                    continue
                b = graph.nodes[other]
                # mismatched mesh/material never merge, even at threshold 0
                if a.mesh != b.mesh or a.material != b.material:
                    continue
                if instance_similarity(a, world[anchor], b, world[other]) >= self.similarity_threshold:
                    group.append(other)
                    processed.add(other)
            if len(group) > 1:
                processed.add(anchor)
                groups.append(group)
        return groups

    def optimize(self, graph: SceneGraph) -> Tuple[SceneGraph, OptimizationResult]:
        require(graph, "graph")
        t0 = time.perf_counter()
        out = graph.copy()
        result = OptimizationResult("instances", nodes_before=graph.node_count())
        groups = self.find_groups(out)
        if not groups:
            result.nodes_after = result.nodes_before
            return out, result

        removed = {h for g in groups for h in g}
        representatives = [self._representative(out, g) for g in groups]
        self._rehome_orphans(out, removed)

        order = [h for h, _ in out.walk() if h in removed]
        for h in order:
            if out.nodes[h].parent not in removed:
                out.detach(h)
        for h in order:
            del out.nodes[h]
        for rep in representatives:
            out.add_node(rep, out.root)

        result.nodes_after = out.node_count()
        result.changes = len(groups)
        result.details = {
            "groups": [[graph.nodes[h].name for h in g] for g in groups],
            "removed_nodes": len(removed),
        }
        result.elapsed_ms = (time.perf_counter() - t0) * 1000
        log.info("[instances] %s: %d groups merged, %d nodes removed",
                 graph.name, len(groups), len(removed))
        return out, result

    @staticmethod
    def _representative(graph: SceneGraph, group: List[int]) -> Node:
        first = graph.nodes[group[0]]
        mesh = graph.meshes[first.mesh]
        bounds = None
        for h in group:
            center, size = transform_box(graph.world_transform(h), mesh.bounds.center, mesh.bounds.size)
            box = Bounds(center, size)
            bounds = box if bounds is None else bounds.union(box)
        return Node(
            name=f"{MERGED_NODE_PREFIX}{first.name}",
            # world-space bounds, so cancel whatever the root itself applies
            transform=np.linalg.inv(graph.world_transform(graph.root)),
            mesh=first.mesh,
            material=first.material,
            is_instance=True,
            prototype=first.mesh,
            bounds=bounds,
        )

    @staticmethod
    def _rehome_orphans(graph: SceneGraph, removed: set) -> None:
        """Move surviving children of removed nodes to the nearest surviving ancestor.

        Transforms are composed so the children keep their world placement.
        """
        moves: Dict[int, Tuple[int, np.ndarray]] = {}
        for h in removed:
            ancestor = graph.nodes[h].parent
            while ancestor in removed:
                ancestor = graph.nodes[ancestor].parent
            for child in graph.nodes[h].children:
                if child not in removed:
                    moves[child] = (ancestor, graph.relative_transform(ancestor, child))
        for child, (ancestor, tf) in moves.items():
            graph.nodes[child].transform = tf
            graph.attach(child, ancestor)
