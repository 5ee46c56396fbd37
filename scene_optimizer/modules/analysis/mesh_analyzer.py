"""
#WHERE
    Called by scene_analyzer.SceneAnalyzer (fan-out worker) and tests.

#WHAT
    Per-mesh polygon/vertex counts, vertex density over the bounding-box
    surface area, and UV checks (overlap, seams, layout), aggregated into
    scene-wide MeshMetrics.

    Density uses the bounding-box surface area ``2(sx·sy + sy·sz + sz·sx)``
    as a stand-in for true mesh area. Flat or thin meshes therefore read as
    denser than they are.

#INPUT
    SceneGraph (read-only) or a single Mesh.

#OUTPUT
    MeshMetrics / MeshAnalysis.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np

from scene_optimizer.shared.constants import (
    HIGH_DENSITY_THRESHOLD,
    HIGH_POLY_THRESHOLD,
    UV_GRID_SIZE,
    UV_MAX_AREA,
    UV_MIN_AREA,
    UV_SEAM_THRESHOLD,
)
from scene_optimizer.shared.errors import require
from scene_optimizer.modules.scene_graph import Mesh, SceneGraph
from .models import MeshAnalysis, MeshMetrics

log = logging.getLogger(__name__)


# ── UV checks ────────────────────────────────────────────────────────────

def uv_bounds(uvs: np.ndarray) -> Tuple[float, float, float, float]:
    if len(uvs) == 0:
        return (0.0, 0.0, 0.0, 0.0)
    lo, hi = uvs.min(axis=0), uvs.max(axis=0)
    return (float(lo[0]), float(lo[1]), float(hi[0]), float(hi[1]))


def has_overlapping_uvs(uvs: np.ndarray, grid: int = UV_GRID_SIZE) -> bool:
    """True when two UVs fall into the same cell of a ``grid`` × ``grid`` bucket grid."""
    if len(uvs) < 2:
        return False
    buckets = np.trunc(uvs * grid).astype(np.int64)
    return len(np.unique(buckets, axis=0)) < len(buckets)


def has_uv_seams(mesh: Mesh, threshold: float = UV_SEAM_THRESHOLD) -> bool:
    """True when any triangle edge spans more than *threshold* in UV space."""
    if not mesh.has_uvs or mesh.polygon_count == 0:
        return False
    corners = mesh.uvs[mesh.triangles]                      # (T, 3, 2)
    edges = corners - np.roll(corners, -1, axis=1)
    return bool(np.any(np.linalg.norm(edges, axis=2) > threshold))


def has_proper_uv_layout(uvs: np.ndarray) -> bool:
    if len(uvs) == 0:
        return False
    if np.any(uvs < 0.0) or np.any(uvs > 1.0):
        return False
    umin, vmin, umax, vmax = uv_bounds(uvs)
    area = (umax - umin) * (vmax - vmin)
    return UV_MIN_AREA <= area <= UV_MAX_AREA


# ── Analyzer ─────────────────────────────────────────────────────────────

class MeshAnalyzer:

    def analyze_mesh(self, mesh: Mesh) -> MeshAnalysis:
        require(mesh, "mesh")
        area = mesh.bounds.surface_area
        result = MeshAnalysis(
            name=mesh.name,
            polygon_count=mesh.polygon_count,
            vertex_count=mesh.vertex_count,
            surface_area=area,
            vertex_density=mesh.vertex_count / area if area > 0 else 0.0,
            memory_bytes=mesh.memory_bytes,
        )
        result.is_high_poly = result.polygon_count > HIGH_POLY_THRESHOLD
        result.is_high_density = result.vertex_density > HIGH_DENSITY_THRESHOLD

        if not mesh.has_uvs:
            result.issues.append("mesh has no UV coordinates")
        else:
            result.uv_bounds = uv_bounds(mesh.uvs)
            result.has_overlapping_uvs = has_overlapping_uvs(mesh.uvs)
            result.has_uv_seams = has_uv_seams(mesh)
            result.has_proper_uv_layout = has_proper_uv_layout(mesh.uvs)
            if result.has_overlapping_uvs:
                result.issues.append("overlapping UVs")
            if result.has_uv_seams:
                result.issues.append("UV seams detected")
            if not result.has_proper_uv_layout:
                result.issues.append("UVs outside [0,1] or poorly utilised UV space")
        if result.is_high_poly:
            result.issues.append(f"high polygon count ({result.polygon_count})")
        if result.is_high_density:
            result.issues.append(f"high vertex density ({result.vertex_density:.1f}/unit²)")
        return result

    def analyze(self, graph: SceneGraph) -> MeshMetrics:
        require(graph, "graph")
        metrics = MeshMetrics()
        densities = []
        for mesh in graph.meshes.values():
            result = self.analyze_mesh(mesh)
            metrics.per_mesh[mesh.name] = result
            metrics.mesh_count += 1
            metrics.total_polygons += result.polygon_count
            metrics.total_vertices += result.vertex_count
            metrics.memory_bytes += result.memory_bytes
            if result.surface_area > 0:
                densities.append(result.vertex_density)
            if result.is_high_poly:
                metrics.high_poly_meshes.append(mesh.name)
            if result.is_high_density:
                metrics.high_density_meshes.append(mesh.name)
            if mesh.has_uvs and (result.has_overlapping_uvs or not result.has_proper_uv_layout):
                metrics.problematic_uv_meshes.append(mesh.name)
        if densities:
            metrics.average_density = float(np.mean(densities))

        log.debug("[meshes] %s: %d meshes, %d polygons, %d high-poly",
                  graph.name, metrics.mesh_count, metrics.total_polygons,
                  len(metrics.high_poly_meshes))
        return metrics
