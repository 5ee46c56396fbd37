"""
#WHERE
    Called by scene_analyzer.SceneAnalyzer (fan-out worker) and tests.

#WHAT
    Single depth-first pass over the node tree collecting structural counts,
    depths, the node-type histogram, and candidate nodes for removal,
    merging and instancing.

#INPUT
    SceneGraph (read-only).

#OUTPUT
    HierarchyMetrics.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List

from scene_optimizer.shared.constants import DEEP_NODE_DEPTH, HIGH_CHILD_COUNT
from scene_optimizer.shared.errors import require
from scene_optimizer.shared.transforms import (
    has_non_uniform_scale,
    has_rotation,
    is_near_identity,
    transform_similarity,
)
from scene_optimizer.modules.scene_graph import SceneGraph
from .models import HierarchyMetrics

log = logging.getLogger(__name__)


class HierarchyAnalyzer:
    """Structural metrics for one scene graph."""

    def __init__(self, similarity_threshold: float = 1.0) -> None:
        self.similarity_threshold = similarity_threshold

    def analyze(self, graph: SceneGraph) -> HierarchyMetrics:
        require(graph, "graph")
        metrics = HierarchyMetrics()
        if graph.root is None:
            return metrics

        histogram: Counter = Counter()
        prototypes: Counter = Counter()
        intermediate_children = 0

        for handle, depth in graph.walk():
            node = graph.nodes[handle]
            n_children = len(node.children)
            metrics.total_nodes += 1
            metrics.node_depths[handle] = depth
            metrics.child_counts[handle] = n_children
            metrics.max_depth = max(metrics.max_depth, depth)
            histogram[node.node_type] += 1

            if n_children == 0:
                metrics.leaf_nodes += 1
                if node.is_empty:
                    metrics.removable_nodes.append(handle)
            else:
                metrics.intermediate_nodes += 1
                intermediate_children += n_children
            if node.is_empty:
                metrics.empty_nodes += 1
            if n_children == 1 and is_near_identity(node.transform):
                metrics.mergeable_nodes.append(handle)
            if n_children > HIGH_CHILD_COUNT:
                metrics.high_child_count_nodes.append(handle)
            if depth > DEEP_NODE_DEPTH:
                metrics.deep_nodes.append(handle)

            if not is_near_identity(node.transform):
                metrics.non_identity_transforms += 1
                if has_non_uniform_scale(node.transform):
                    metrics.non_uniform_scales += 1
                if has_rotation(node.transform):
                    metrics.rotated_transforms += 1
            if node.is_instance:
                metrics.instance_count += 1
                prototypes[node.prototype or node.mesh or node.name] += 1

            if n_children > 1:
                metrics.instanceable_groups.extend(self._sibling_groups(graph, node.children))

        if metrics.intermediate_nodes:
            metrics.average_children = intermediate_children / metrics.intermediate_nodes
        metrics.type_histogram = dict(histogram)
        metrics.prototype_counts = dict(prototypes)

        log.debug(
            "[hierarchy] %s: %d nodes, depth %d, %d removable, %d instanceable groups",
            graph.name, metrics.total_nodes, metrics.max_depth,
            len(metrics.removable_nodes), len(metrics.instanceable_groups),
        )
        return metrics

    def _sibling_groups(self, graph: SceneGraph, siblings: List[int]) -> List[List[int]]:
        """Greedy anchor grouping of siblings sharing mesh, material and placement."""
        candidates = [h for h in siblings
                      if graph.nodes[h].mesh is not None and graph.nodes[h].material is not None]
        processed: Dict[int, bool] = {}
        groups: List[List[int]] = []
        for i, anchor in enumerate(candidates):
            if processed.get(anchor):
                continue
            a = graph.nodes[anchor]
            group = [anchor]
            for other in candidates[i + 1:]:
                if processed.get(other):
                    continue
                b = graph.nodes[other]
                if a.mesh != b.mesh or a.material != b.material:
                    continue
                if transform_similarity(a.transform, b.transform) >= self.similarity_threshold:
                    group.append(other)
                    processed[other] = True
            if len(group) > 1:
                processed[anchor] = True
                groups.append(group)
        return groups
