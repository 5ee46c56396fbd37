"""
Scene Analysis
==============
Hierarchy, mesh and material analyzers, the optimization-potential score and
ranked recommendations.

Example:
    from scene_optimizer.modules.analysis import SceneAnalyzer

    results = SceneAnalyzer().analyze(graph)
    print(results.optimization_score, [r.title for r in results.recommendations])
"""

from .models import (
    AnalysisResults,
    HierarchyMetrics,
    MaterialAnalysis,
    MaterialMetrics,
    MeshAnalysis,
    MeshMetrics,
    OptimizationRecommendation,
    Priority,
    RedundantMaterialGroup,
)
from .hierarchy_analyzer import HierarchyAnalyzer
from .mesh_analyzer import MeshAnalyzer
from .material_analyzer import MaterialAnalyzer, cluster_materials, material_similarity, texture_type
from .recommendations import build_recommendations, optimization_score
from .scene_analyzer import SceneAnalyzer

__all__ = [
    "AnalysisResults",
    "HierarchyMetrics",
    "MaterialAnalysis",
    "MaterialMetrics",
    "MeshAnalysis",
    "MeshMetrics",
    "OptimizationRecommendation",
    "Priority",
    "RedundantMaterialGroup",
    "HierarchyAnalyzer",
    "MeshAnalyzer",
    "MaterialAnalyzer",
    "cluster_materials",
    "material_similarity",
    "texture_type",
    "build_recommendations",
    "optimization_score",
    "SceneAnalyzer",
]
