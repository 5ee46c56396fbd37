"""Procedural meshes and demo scenes.

Used by ``main.py`` and the batch demo to have something realistic to chew
on without a file importer, and by the tests as fixtures.

Usage::

    graph = build_demo_scene("Warehouse", crate_rows=4, seed=7)
"""

from __future__ import annotations

import logging

import numpy as np

from scene_optimizer.shared.transforms import compose, rotation_z, translation
from .graph import SceneGraph
from .models import Material, Mesh, Node, ScalarValue, Texture, TextureRef, VectorValue

log = logging.getLogger(__name__)


def make_grid(name: str, nx: int = 10, ny: int = 10, size: float = 1.0) -> Mesh:
    """Flat ``nx`` × ``ny`` quad grid in the XY plane, two triangles per cell."""
    xs = np.linspace(-size / 2, size / 2, nx + 1)
    ys = np.linspace(-size / 2, size / 2, ny + 1)
    gx, gy = np.meshgrid(xs, ys, indexing="xy")
    vertices = np.stack([gx.ravel(), gy.ravel(), np.zeros(gx.size)], axis=1)
    u = (gx.ravel() - xs[0]) / size
    v = (gy.ravel() - ys[0]) / size
    uvs = np.stack([u, v], axis=1) * 0.9 + 0.05   # keep the layout inside the valid area band
    normals = np.tile([0.0, 0.0, 1.0], (len(vertices), 1))

    tris = []
    row = nx + 1
    for j in range(ny):
        for i in range(nx):
            a = j * row + i
            b, c, d = a + 1, a + row, a + row + 1
            tris.extend((a, b, d, a, d, c))
    return Mesh(name, vertices, np.array(tris, dtype=np.int64), uvs=uvs, normals=normals)


def make_cube(name: str, size: float = 1.0) -> Mesh:
    h = size / 2.0
    vertices = np.array([
        [-h, -h, -h], [h, -h, -h], [h, h, -h], [-h, h, -h],
        [-h, -h, h], [h, -h, h], [h, h, h], [-h, h, h],
    ])
    indices = np.array([
        0, 2, 1, 0, 3, 2,  4, 5, 6, 4, 6, 7,
        0, 1, 5, 0, 5, 4,  2, 3, 7, 2, 7, 6,
        1, 2, 6, 1, 6, 5,  0, 4, 7, 0, 7, 3,
    ])
    uvs = np.array([
        [0.1, 0.1], [0.9, 0.1], [0.9, 0.9], [0.1, 0.9],
        [0.2, 0.2], [0.8, 0.2], [0.8, 0.8], [0.2, 0.8],
    ])
    return Mesh(name, vertices, indices, uvs=uvs)


def make_pbr_material(graph: SceneGraph, name: str, texture_size: int = 1024,
                      tint=(1.0, 1.0, 1.0, 1.0), shader: str = "Standard") -> Material:
    """Register albedo/normal textures for *name* and a material using them."""
    albedo = graph.add_texture(Texture(f"{name}_albedo", texture_size, texture_size, "RGBA"))
    normal = graph.add_texture(Texture(f"{name}_normal", texture_size, texture_size, "RGBA"))
    material = Material(
        name=name,
        shader=shader,
        properties={
            "_MainTex": TextureRef(albedo),
            "_BumpMap": TextureRef(normal),
            "_Color": VectorValue(tuple(tint)),
            "_Metallic": ScalarValue(0.0),
            "_Glossiness": ScalarValue(0.5),
        },
        keywords=frozenset({"_NORMALMAP"}),
    )
    graph.add_material(material)
    return material


def build_demo_scene(name: str = "DemoScene", crate_rows: int = 3, chain_depth: int = 6,
                     terrain_resolution: int = 64, seed: int = 0) -> SceneGraph:
    """Warehouse-like scene with repeated crates, a deep prop chain and a terrain grid.

    The crates duplicate mesh + material + transform in pairs, the prop chain
    nests transform-only groups, and two near-identical materials give the
    material pass something to merge.
    """
    rng = np.random.default_rng(seed)
    graph = SceneGraph(name=name)
    root = graph.add_node(Node("Root"))

    crate = graph.add_mesh(make_cube("Crate"))
    wood = make_pbr_material(graph, "Wood", texture_size=2048).name
    # same textures and properties as Wood under a different name
    wood_copy = Material("WoodCopy", "Standard", dict(graph.materials[wood].properties),
                         graph.materials[wood].keywords)
    graph.add_material(wood_copy)

    crates = graph.add_node(Node("Crates"), root)
    for row in range(crate_rows):
        offset = translation(row * 3.0, 0.0, 0.0)
        for dup in range(2):
            jitter = translation(*(rng.uniform(-0.01, 0.01, size=3)))
            graph.add_node(Node(f"Crate_{row}_{dup}", compose(offset, jitter), mesh=crate, material=wood),
                           crates)
        graph.add_node(
            Node(f"Crate_{row}_alt", compose(offset, translation(0.0, 0.0, 2.0)), mesh=crate,
                 material=wood_copy.name),
            crates,
        )

    terrain = graph.add_mesh(make_grid("Terrain", terrain_resolution, terrain_resolution, 50.0))
    ground = make_pbr_material(graph, "Ground", texture_size=4096).name
    graph.add_node(Node("Terrain", translation(0.0, 0.0, -0.5), mesh=terrain, material=ground), root)

    parent = graph.add_node(Node("Props", translation(0.0, 5.0, 0.0)), root)
    for level in range(chain_depth):
        parent = graph.add_node(
            Node(f"PropGroup_{level}", compose(translation(0.0, 0.0, 1.0), rotation_z(0.1))),
            parent,
        )
    lamp = graph.add_mesh(make_grid("Lamp", 8, 8, 0.5))
    metal = make_pbr_material(graph, "Metal", texture_size=512).name
    graph.add_node(Node("Lamp", mesh=lamp, material=metal), parent)
    graph.add_node(Node("EmptyMarker"), root)

    log.debug("[demo] built %s with %d nodes", name, graph.node_count())
    return graph
