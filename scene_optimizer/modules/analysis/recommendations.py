"""
#WHERE
    Called by scene_analyzer.SceneAnalyzer after the analyzers have joined.

#WHAT
    Optimization-potential score (0..100) and threshold-driven
    recommendations ranked by priority, then impact.

#INPUT
    HierarchyMetrics, MeshMetrics, MaterialMetrics.

#OUTPUT
    int score, List[OptimizationRecommendation].
"""

from __future__ import annotations

from typing import List, Sequence

from scene_optimizer.shared.constants import (
    DEPTH_SCORE_TIERS,
    MATERIAL_SCORE_TIERS,
    MAX_SCORE,
    MEMORY_SCORE_TIERS,
    POLYGON_SCORE_TIERS,
    SCORE_TIER_POINTS,
    TEXTURE_SCORE_TIERS,
)
from .models import (
    HierarchyMetrics,
    MaterialMetrics,
    MeshMetrics,
    OptimizationRecommendation,
    Priority,
)

GB = 1024 ** 3


def tier_points(value: float, tiers: Sequence[float], points: Sequence[int] = SCORE_TIER_POINTS) -> int:
    """Points of the highest tier strictly exceeded by *value* (0 if none)."""
    earned = 0
    for threshold, pts in zip(tiers, points):
        if value > threshold:
            earned = pts
    return earned


def optimization_score(polygons: int, depth: int, materials: int, textures: int,
                       memory_bytes: int) -> int:
    total = (
        tier_points(polygons, POLYGON_SCORE_TIERS)
        + tier_points(depth, DEPTH_SCORE_TIERS)
        + tier_points(materials, MATERIAL_SCORE_TIERS)
        + tier_points(textures, TEXTURE_SCORE_TIERS)
        + tier_points(memory_bytes, MEMORY_SCORE_TIERS)
    )
    return min(total, MAX_SCORE)


def build_recommendations(hierarchy: HierarchyMetrics, meshes: MeshMetrics,
                          materials: MaterialMetrics) -> List[OptimizationRecommendation]:
    recs: List[OptimizationRecommendation] = []
    polygons = meshes.total_polygons
    memory = meshes.memory_bytes + materials.texture_memory_bytes

    if polygons > 1_000_000:
        recs.append(OptimizationRecommendation(
            "High Polygon Count",
            f"Scene has {polygons:,} polygons. Generate LODs and simplify distant meshes.",
            "mesh", Priority.CRITICAL, 90,
        ))
    elif polygons > 500_000:
        recs.append(OptimizationRecommendation(
            "Elevated Polygon Count",
            f"Scene has {polygons:,} polygons. Consider LODs for the largest meshes.",
            "mesh", Priority.HIGH, 70,
        ))
    if hierarchy.max_depth > 10:
        recs.append(OptimizationRecommendation(
            "Deep Hierarchy",
            f"Hierarchy is {hierarchy.max_depth} levels deep. Flatten transform-only groups.",
            "hierarchy", Priority.HIGH, 60,
        ))
    if materials.material_count > 100:
        recs.append(OptimizationRecommendation(
            "Excessive Materials",
            f"Scene uses {materials.material_count} materials. Merge similar materials "
            "to cut draw calls.",
            "material", Priority.MEDIUM, 50,
        ))
    if materials.high_res_texture_count > 10:
        recs.append(OptimizationRecommendation(
            "High Resolution Textures",
            f"{materials.high_res_texture_count} textures are 2048px or larger. "
            "Downsize or compress them.",
            "texture", Priority.MEDIUM, 40,
        ))
    if memory > GB:
        recs.append(OptimizationRecommendation(
            "High Memory Usage",
            f"Estimated memory use is {memory / GB:.2f} GB. Compress textures and reduce geometry.",
            "memory", Priority.CRITICAL, 95,
        ))

    recs.sort(key=lambda r: (r.priority, r.impact_score), reverse=True)
    return recs
