"""
#WHERE
    Fourth pass of pipeline.OptimizationPipeline (``optimize_scene_meshes``);
    simplify / generate_lods / merge_meshes / weld_vertices are public helpers.

#WHAT
    Polygon reduction by greedy shortest-edge collapse, LOD chain
    generation, mesh concatenation and vertex welding.

    Simplification collapses the currently shortest edge into one of its
    endpoints. A vertex holding a bounding-box extreme is never the one
    collapsed away. If collapses run out before the target is met,
    trailing triangles are dropped. Unreferenced vertices are compacted away
    and the original bounds are kept on the result.

#INPUT
    Mesh / list of Mesh, polygon targets, LOD factors.

#OUTPUT
    Mesh, List[Mesh], (SceneGraph, OptimizationResult).
"""

from __future__ import annotations

import heapq
import logging
import time
from typing import Dict, List, Sequence, Tuple

import numpy as np

from scene_optimizer.shared.constants import DEFAULT_LOD_FACTOR, LOD_SUFFIX
from scene_optimizer.shared.errors import InvalidArgumentError, require
from scene_optimizer.modules.scene_graph import Bounds, Mesh, SceneGraph
from .models import OptimizationResult

log = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────────────

def _compact(mesh: Mesh, triangles: np.ndarray, name: str | None = None) -> Mesh:
    """Rebuild *mesh* from *triangles*, dropping vertices nothing references."""
    flat = triangles.reshape(-1)
    used = np.unique(flat)
    remap = np.full(mesh.vertex_count, -1, dtype=np.int64)
    remap[used] = np.arange(len(used))

    def pick(attr: np.ndarray) -> np.ndarray:
        return attr[used] if len(attr) else attr

    return Mesh(
        name=name or mesh.name,
        vertices=mesh.vertices[used],
        indices=remap[flat],
        uvs=pick(mesh.uvs),
        normals=pick(mesh.normals),
        tangents=pick(mesh.tangents),
        bounds=mesh.bounds.copy(),
    )


def _extreme_vertices(vertices: np.ndarray) -> set:
    if len(vertices) == 0:
        return set()
    return set(np.argmin(vertices, axis=0).tolist()) | set(np.argmax(vertices, axis=0).tolist())


def _edge_length(vertices: np.ndarray, a: int, b: int) -> float:
    return float(np.linalg.norm(vertices[a] - vertices[b]))


# ── Simplification ───────────────────────────────────────────────────────

def simplify(mesh: Mesh, target_polygon_count: int) -> Mesh:
    """Reduce *mesh* to at most ``min(target, original)`` triangles."""
    require(mesh, "mesh")
    if target_polygon_count < 0:
        raise InvalidArgumentError(f"target polygon count must be >= 0, got {target_polygon_count}")
    if mesh.polygon_count <= target_polygon_count:
        return mesh

    tris = mesh.triangles.copy()
    alive = np.ones(len(tris), dtype=bool)
    alive_count = len(tris)
    verts = mesh.vertices
    protected = _extreme_vertices(verts)

    parent = list(range(mesh.vertex_count))

    def find(v: int) -> int:
        while parent[v] != v:
            parent[v] = parent[parent[v]]
            v = parent[v]
        return v

    incident: Dict[int, set] = {}
    heap: List[Tuple[float, int, int]] = []
    seen_edges = set()
    for t, (a, b, c) in enumerate(tris.tolist()):
        for v in (a, b, c):
            incident.setdefault(v, set()).add(t)
        for u, w in ((a, b), (b, c), (c, a)):
            key = (min(u, w), max(u, w))
            if u != w and key not in seen_edges:
                seen_edges.add(key)
                heap.append((_edge_length(verts, u, w), key[0], key[1]))
    heapq.heapify(heap)

    while alive_count > target_polygon_count and heap:
        length, a, b = heapq.heappop(heap)
        ra, rb = find(a), find(b)
        if ra == rb:
            continue
        current = _edge_length(verts, ra, rb)
        if current > length + 1e-12:
            heapq.heappush(heap, (current, ra, rb))
            continue
        if rb in protected and ra in protected:
            continue
        keep, gone = ra, rb
        if gone in protected:
            keep, gone = gone, keep
        parent[gone] = keep
        for t in incident.pop(gone, set()):
            if not alive[t]:
                continue
            row = tris[t]
            row[row == gone] = keep
            if len(set(row.tolist())) < 3:
                alive[t] = False
                alive_count -= 1
            else:
                incident.setdefault(keep, set()).add(t)

    remaining = tris[alive]
    if len(remaining) > target_polygon_count:
        remaining = remaining[:target_polygon_count]
    return _compact(mesh, remaining)


def generate_lods(mesh: Mesh, levels: int, factors: Sequence[float]) -> List[Mesh]:
    """Chain of ``levels`` meshes, level i reducing level i-1 by ``factors[i]``.

    Level 0 reduces the source mesh itself. Each factor must be in (0, 1].
    """
    require(mesh, "mesh")
    if levels <= 0:
        raise InvalidArgumentError(f"LOD levels must be > 0, got {levels}")
    if len(factors) != levels:
        raise InvalidArgumentError(f"expected {levels} reduction factors, got {len(factors)}")
    if any(not 0.0 < f <= 1.0 for f in factors):
        raise InvalidArgumentError(f"reduction factors must be in (0, 1], got {list(factors)}")

    lods: List[Mesh] = []
    previous = mesh
    for i, factor in enumerate(factors):
        reduced = simplify(previous, int(previous.polygon_count * factor))
        lod = Mesh(
            name=f"{mesh.name}{LOD_SUFFIX}{i}",
            vertices=reduced.vertices,
            indices=reduced.indices,
            uvs=reduced.uvs,
            normals=reduced.normals,
            tangents=reduced.tangents,
            bounds=reduced.bounds.copy(),
        )
        lods.append(lod)
        previous = lod
    return lods


def merge_meshes(meshes: Sequence[Mesh], name: str | None = None) -> Mesh:
    """Concatenate *meshes* into one; attributes survive only if every source has them."""
    if meshes is None or len(meshes) == 0:
        raise InvalidArgumentError("merge_meshes needs at least one mesh")
    if len(meshes) == 1:
        return meshes[0]

    offsets = np.cumsum([0] + [m.vertex_count for m in meshes[:-1]])
    indices = np.concatenate([m.indices + off for m, off in zip(meshes, offsets)])

    def stack(attr: str, width: int) -> np.ndarray:
        parts = [getattr(m, attr) for m in meshes]
        if all(len(p) == m.vertex_count for p, m in zip(parts, meshes)):
            return np.vstack(parts) if parts else np.zeros((0, width))
        return np.zeros((0, width))

    bounds: Bounds = meshes[0].bounds.copy()
    for m in meshes[1:]:
        bounds = bounds.union(m.bounds)
    return Mesh(
        name=name or "+".join(m.name for m in meshes),
        vertices=np.vstack([m.vertices for m in meshes]),
        indices=indices,
        uvs=stack("uvs", 2),
        normals=stack("normals", 3),
        tangents=stack("tangents", 4),
        bounds=bounds,
    )


def weld_vertices(mesh: Mesh) -> Mesh:
    """Merge vertices whose position and attributes are identical."""
    require(mesh, "mesh")
    if mesh.vertex_count == 0:
        return mesh
    columns = [mesh.vertices] + [a for a in (mesh.uvs, mesh.normals, mesh.tangents) if len(a)]
    key = np.hstack(columns)
    _, first, inverse = np.unique(key, axis=0, return_index=True, return_inverse=True)
    if len(first) == mesh.vertex_count:
        return mesh
    inverse = inverse.reshape(-1)

    def pick(attr: np.ndarray) -> np.ndarray:
        return attr[first] if len(attr) else attr

    return Mesh(
        name=mesh.name,
        vertices=mesh.vertices[first],
        indices=inverse[mesh.indices],
        uvs=pick(mesh.uvs),
        normals=pick(mesh.normals),
        tangents=pick(mesh.tangents),
        bounds=mesh.bounds.copy(),
    )


# ── Scene pass ───────────────────────────────────────────────────────────

class MeshOptimizer:
    """Welds, simplifies over-budget meshes and registers LOD chains."""

    def __init__(self, target_polygon_count: int, lod_levels: int) -> None:
        if target_polygon_count <= 0:
            raise InvalidArgumentError(f"target polygon count must be > 0, got {target_polygon_count}")
        if lod_levels <= 0:
            raise InvalidArgumentError(f"LOD levels must be > 0, got {lod_levels}")
        self.target_polygon_count = target_polygon_count
        self.lod_levels = lod_levels

    def lod_factors(self) -> List[float]:
        return [1.0] + [DEFAULT_LOD_FACTOR] * (self.lod_levels - 1)

    def optimize(self, graph: SceneGraph) -> Tuple[SceneGraph, OptimizationResult]:
        require(graph, "graph")
        t0 = time.perf_counter()
        out = graph.copy()
        result = OptimizationResult("meshes", nodes_before=graph.node_count())
        used = list(dict.fromkeys(out.nodes[h].mesh for h in out.mesh_nodes()))
        polygons_before = sum(out.meshes[m].polygon_count for m in used)
        simplified = 0

        for name in used:
            mesh = weld_vertices(out.meshes[name])
            if mesh.polygon_count > self.target_polygon_count:
                mesh = simplify(mesh, self.target_polygon_count)
                simplified += 1
            out.meshes[name] = mesh
            if self.lod_levels > 1:
                chain = generate_lods(mesh, self.lod_levels, self.lod_factors())[1:]
                for lod in chain:
                    out.meshes[lod.name] = lod
                out.lods[name] = [lod.name for lod in chain]

        polygons_after = sum(out.meshes[m].polygon_count for m in used)
        result.nodes_after = out.node_count()
        result.changes = simplified + sum(len(v) for k, v in out.lods.items() if k in used)
        result.details = {
            "simplified": simplified,
            "polygons_before": polygons_before,
            "polygons_after": polygons_after,
            "lod_chains": {k: list(v) for k, v in out.lods.items()},
        }
        result.elapsed_ms = (time.perf_counter() - t0) * 1000
        log.info("[meshes] %s: %d simplified, polygons %d -> %d, %d LOD levels",
                 graph.name, simplified, polygons_before, polygons_after, self.lod_levels)
        return out, result
