"""
#WHERE
    Produced by hierarchy_analyzer.py, mesh_analyzer.py, material_analyzer.py
    and recommendations.py; joined by scene_analyzer.py; read by main.py.

#WHAT
    Read-only metric snapshots and ranked optimization recommendations.
    A new set is built on every analysis call.

#INPUT
    Counts and flags computed from a SceneGraph.

#OUTPUT
    HierarchyMetrics, MeshAnalysis, MeshMetrics, MaterialAnalysis,
    RedundantMaterialGroup, MaterialMetrics, OptimizationRecommendation,
    AnalysisResults, Priority.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Tuple


class Priority(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3


# ── Hierarchy ────────────────────────────────────────────────────────────

@dataclass(slots=True)
class HierarchyMetrics:
    total_nodes: int = 0
    leaf_nodes: int = 0
    intermediate_nodes: int = 0
    max_depth: int = 0
    average_children: float = 0.0
    empty_nodes: int = 0
    node_depths: Dict[int, int] = field(default_factory=dict)
    child_counts: Dict[int, int] = field(default_factory=dict)
    type_histogram: Dict[str, int] = field(default_factory=dict)
    removable_nodes: List[int] = field(default_factory=list)
    mergeable_nodes: List[int] = field(default_factory=list)
    instanceable_groups: List[List[int]] = field(default_factory=list)
    # transform / instancing breakdown
    non_identity_transforms: int = 0
    non_uniform_scales: int = 0
    rotated_transforms: int = 0
    instance_count: int = 0
    prototype_counts: Dict[str, int] = field(default_factory=dict)
    high_child_count_nodes: List[int] = field(default_factory=list)
    deep_nodes: List[int] = field(default_factory=list)


# ── Meshes ───────────────────────────────────────────────────────────────

@dataclass(slots=True)
class MeshAnalysis:
    name: str
    polygon_count: int = 0
    vertex_count: int = 0
    surface_area: float = 0.0
    vertex_density: float = 0.0
    is_high_poly: bool = False
    is_high_density: bool = False
    has_overlapping_uvs: bool = False
    has_uv_seams: bool = False
    has_proper_uv_layout: bool = False
    uv_bounds: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)   # umin, vmin, umax, vmax
    memory_bytes: int = 0
    issues: List[str] = field(default_factory=list)


@dataclass(slots=True)
class MeshMetrics:
    mesh_count: int = 0
    total_polygons: int = 0
    total_vertices: int = 0
    average_density: float = 0.0
    memory_bytes: int = 0
    high_poly_meshes: List[str] = field(default_factory=list)
    high_density_meshes: List[str] = field(default_factory=list)
    problematic_uv_meshes: List[str] = field(default_factory=list)
    per_mesh: Dict[str, MeshAnalysis] = field(default_factory=dict)


# ── Materials ────────────────────────────────────────────────────────────

@dataclass(slots=True)
class MaterialAnalysis:
    name: str
    texture_count: int = 0
    texture_types: Dict[str, int] = field(default_factory=dict)
    texture_memory_bytes: int = 0
    has_excessive_textures: bool = False
    property_count: int = 0
    sampler_count: int = 0
    keyword_count: int = 0
    shader_complexity: int = 0
    variant_count: int = 1
    is_high_complexity: bool = False
    issues: List[str] = field(default_factory=list)


@dataclass(slots=True)
class RedundantMaterialGroup:
    group_name: str
    materials: List[str]
    similarity: float
    suggested_reference: str
    potential_savings_bytes: int = 0


@dataclass(slots=True)
class MaterialMetrics:
    material_count: int = 0
    unique_texture_count: int = 0
    texture_memory_bytes: int = 0
    high_res_texture_count: int = 0
    per_material: Dict[str, MaterialAnalysis] = field(default_factory=dict)
    redundant_groups: List[RedundantMaterialGroup] = field(default_factory=list)
    high_complexity_materials: List[str] = field(default_factory=list)


# ── Results ──────────────────────────────────────────────────────────────

@dataclass(slots=True)
class OptimizationRecommendation:
    title: str
    description: str
    category: str
    priority: Priority
    impact_score: float


@dataclass(slots=True)
class AnalysisResults:
    scene_name: str
    hierarchy: HierarchyMetrics
    meshes: MeshMetrics
    materials: MaterialMetrics
    optimization_score: int = 0
    recommendations: List[OptimizationRecommendation] = field(default_factory=list)

    @property
    def total_memory_bytes(self) -> int:
        return self.meshes.memory_bytes + self.materials.texture_memory_bytes

    def summary(self) -> Dict[str, object]:
        return {
            "scene": self.scene_name,
            "score": self.optimization_score,
            "nodes": self.hierarchy.total_nodes,
            "max_depth": self.hierarchy.max_depth,
            "polygons": self.meshes.total_polygons,
            "materials": self.materials.material_count,
            "textures": self.materials.unique_texture_count,
            "memory_mb": round(self.total_memory_bytes / 1024 / 1024, 2),
            "recommendations": [r.title for r in self.recommendations],
        }
