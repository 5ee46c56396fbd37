"""
Scene Graph
===========
Arena-backed scene tree plus the mesh, material and texture value types the
analyzers and optimization passes operate on.

Example:
    from scene_optimizer.modules.scene_graph import SceneGraph, Node, make_cube

    graph = SceneGraph("Level01")
    root = graph.add_node(Node("Root"))
    graph.add_mesh(make_cube("Box"))
    graph.add_node(Node("Box", mesh="Box"), root)
"""

from .models import (
    Bounds,
    Material,
    Mesh,
    Node,
    PropertyValue,
    ScalarValue,
    Texture,
    TextureRef,
    VectorValue,
)
from .graph import SceneGraph
from .builders import build_demo_scene, make_cube, make_grid, make_pbr_material

__all__ = [
    "Bounds",
    "Material",
    "Mesh",
    "Node",
    "PropertyValue",
    "ScalarValue",
    "Texture",
    "TextureRef",
    "VectorValue",
    "SceneGraph",
    "build_demo_scene",
    "make_cube",
    "make_grid",
    "make_pbr_material",
]
