"""
Scene Optimization
==================
Graph-rewriting passes. Every pass copies its input and returns
``(new_graph, OptimizationResult)``; the caller's graph is never modified.

Pass order used by the pipeline:
  1. InstanceOptimizer   - merge duplicate mesh/material placements
  2. HierarchyFlattener  - bound the depth of mesh nodes
  3. TransformOptimizer  - snap near-identity transforms, fold parents into children
  4. MeshOptimizer       - weld, simplify, generate LODs
  5. MaterialMerger      - simplify heavy shaders, merge near-identical materials
  6. TextureOptimizer    - downsize / compress textures

Example:
    from scene_optimizer.modules.optimization import HierarchyFlattener

    flat, result = HierarchyFlattener(max_depth=2).flatten(graph)
"""

from .models import OptimizationResult, SceneStatistics
from .instance_optimizer import InstanceOptimizer, instance_similarity
from .hierarchy_flattener import HierarchyFlattener
from .transform_optimizer import TransformOptimizer
from .mesh_simplifier import MeshOptimizer, generate_lods, merge_meshes, simplify, weld_vertices
from .material_optimizer import MaterialMerger, TextureOptimizer, simplify_shader

__all__ = [
    "OptimizationResult",
    "SceneStatistics",
    "InstanceOptimizer",
    "instance_similarity",
    "HierarchyFlattener",
    "TransformOptimizer",
    "MeshOptimizer",
    "generate_lods",
    "merge_meshes",
    "simplify",
    "weld_vertices",
    "MaterialMerger",
    "TextureOptimizer",
    "simplify_shader",
]
