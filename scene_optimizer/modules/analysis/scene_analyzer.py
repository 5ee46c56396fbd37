"""
#WHERE
    Called by main.py, the pipeline statistics step and tests.

#WHAT
    Validates the graph, then fans the hierarchy, mesh and material analyzers
    out over it on a thread pool, joins their metrics and scores the result.

#INPUT
    SceneGraph.

#OUTPUT
    AnalysisResults.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor

from scene_optimizer.shared.errors import require
from scene_optimizer.modules.scene_graph import SceneGraph
from .hierarchy_analyzer import HierarchyAnalyzer
from .material_analyzer import MaterialAnalyzer
from .mesh_analyzer import MeshAnalyzer
from .models import AnalysisResults
from .recommendations import build_recommendations, optimization_score

log = logging.getLogger(__name__)


class SceneAnalyzer:
    """Runs the three analyzers concurrently and merges their output."""

    def __init__(self, hierarchy: HierarchyAnalyzer | None = None,
                 meshes: MeshAnalyzer | None = None,
                 materials: MaterialAnalyzer | None = None,
                 max_workers: int = 3) -> None:
        self.hierarchy = hierarchy or HierarchyAnalyzer()
        self.meshes = meshes or MeshAnalyzer()
        self.materials = materials or MaterialAnalyzer()
        self.max_workers = max_workers

    def analyze(self, graph: SceneGraph) -> AnalysisResults:
        require(graph, "graph")
        graph.validate()
        t0 = time.perf_counter()
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            f_hier = pool.submit(self.hierarchy.analyze, graph)
            f_mesh = pool.submit(self.meshes.analyze, graph)
            f_mat = pool.submit(self.materials.analyze, graph)
            # .result() re-raises a worker's exception in the caller
            hierarchy, meshes, materials = f_hier.result(), f_mesh.result(), f_mat.result()

        score = optimization_score(
            polygons=meshes.total_polygons,
            depth=hierarchy.max_depth,
            materials=materials.material_count,
            textures=materials.unique_texture_count,
            memory_bytes=meshes.memory_bytes + materials.texture_memory_bytes,
        )
        results = AnalysisResults(
            scene_name=graph.name,
            hierarchy=hierarchy,
            meshes=meshes,
            materials=materials,
            optimization_score=score,
            recommendations=build_recommendations(hierarchy, meshes, materials),
        )
        log.info("[analyze] %s: score %d, %d recommendations (%.1f ms)",
                 graph.name, score, len(results.recommendations),
                 (time.perf_counter() - t0) * 1000)
        return results
