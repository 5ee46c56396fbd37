"""Tests for the scene-graph data model: meshes, textures and the node arena."""

import numpy as np
import pytest

from scene_optimizer.modules.scene_graph import (
    Material,
    Mesh,
    Node,
    SceneGraph,
    Texture,
    TextureRef,
    build_demo_scene,
    make_cube,
)
from scene_optimizer.shared.errors import InvalidArgumentError, InvariantViolationError
from scene_optimizer.shared.transforms import scaling, translation


def quad(uvs=None):
    vertices = [(0, 0, 0), (1, 0, 0), (0, 1, 0), (1, 1, 0)]
    return Mesh("Quad", vertices, [0, 1, 2, 1, 3, 2], uvs=uvs)


class TestMesh:

    def test_counts(self):
        mesh = quad()
        assert mesh.polygon_count == 2
        assert mesh.vertex_count == 4

    def test_bounds_from_vertices(self):
        mesh = quad()
        np.testing.assert_allclose(mesh.bounds.center, [0.5, 0.5, 0.0])
        np.testing.assert_allclose(mesh.bounds.size, [1.0, 1.0, 0.0])

    def test_out_of_range_index_fails_validation(self):
        mesh = Mesh("Bad", [(0, 0, 0), (1, 0, 0), (0, 1, 0)], [0, 1, 3])
        with pytest.raises(InvariantViolationError, match="out of range"):
            mesh.validate()

    def test_index_count_must_be_triangles(self):
        mesh = Mesh("Bad", [(0, 0, 0), (1, 0, 0), (0, 1, 0)], [0, 1])
        with pytest.raises(InvariantViolationError, match="multiple of 3"):
            mesh.validate()

    def test_attribute_length_mismatch(self):
        mesh = quad(uvs=[(0, 0), (1, 0)])
        with pytest.raises(InvariantViolationError, match="uvs"):
            mesh.validate()

    def test_memory_estimate(self):
        mesh = quad(uvs=[(0, 0), (1, 0), (0, 1), (1, 1)])
        # 4 * 12 vertex + 4 * 8 uv + 6 * 4 index
        assert mesh.memory_bytes == 48 + 32 + 24


class TestTexture:

    @pytest.mark.parametrize("fmt,bpp", [("RGBA", 4), ("RGB", 3), ("RGBA16", 8), ("R8", 1), ("EXOTIC", 4)])
    def test_byte_size_by_format(self, fmt, bpp):
        assert Texture("t", 256, 128, fmt).byte_size == 256 * 128 * bpp

    def test_block_compressed_is_smaller(self):
        assert Texture("t", 1024, 1024, "BC7").byte_size < Texture("t", 1024, 1024, "RGBA").byte_size


class TestSceneGraph:

    def setup_method(self):
        self.graph = SceneGraph("Test")
        self.root = self.graph.add_node(Node("Root"))
        self.group = self.graph.add_node(Node("Group", translation(1, 0, 0)), self.root)
        self.graph.add_mesh(make_cube("Box"))
        self.box = self.graph.add_node(Node("Box", scaling(2.0), mesh="Box"), self.group)

    def test_single_root(self):
        with pytest.raises(InvalidArgumentError, match="already has a root"):
            self.graph.add_node(Node("Other"))

    def test_walk_depths(self):
        assert list(self.graph.walk()) == [(self.root, 0), (self.group, 1), (self.box, 2)]

    def test_world_transform_composes_ancestors(self):
        world = self.graph.world_transform(self.box)
        np.testing.assert_allclose(world, translation(1, 0, 0) @ scaling(2.0))

    def test_copy_is_independent(self):
        clone = self.graph.copy()
        clone.nodes[self.box].transform[0, 3] = 99.0
        clone.detach(self.box)
        assert self.graph.nodes[self.box].transform[0, 3] == 0.0
        assert self.box in self.graph.nodes[self.group].children

    def test_remove_subtree(self):
        removed = self.graph.remove_subtree(self.group)
        assert removed == 2
        assert self.graph.node_count() == 1
        assert self.box not in self.graph.nodes

    def test_validate_unknown_mesh(self):
        self.graph.add_node(Node("Ghost", mesh="Missing"), self.root)
        with pytest.raises(InvariantViolationError, match="unknown mesh"):
            self.graph.validate()

    def test_validate_unknown_texture(self):
        self.graph.add_material(Material("M", properties={"_MainTex": TextureRef("nope")}))
        with pytest.raises(InvariantViolationError, match="unknown texture"):
            self.graph.validate()

    def test_validate_detects_cycle(self):
        self.graph.nodes[self.box].children.append(self.root)
        with pytest.raises(InvariantViolationError):
            self.graph.validate()

    def test_walk_stops_on_cycle(self):
        self.graph.nodes[self.box].children.append(self.group)
        with pytest.raises(InvariantViolationError, match="reached twice"):
            list(self.graph.walk())

    def test_attach_under_own_descendant(self):
        with pytest.raises(InvalidArgumentError, match="own descendant"):
            self.graph.attach(self.group, self.box)
        assert self.graph.nodes[self.group].parent == self.root
        assert self.graph.nodes[self.box].children == []

    def test_attach_to_itself(self):
        with pytest.raises(InvalidArgumentError):
            self.graph.attach(self.box, self.box)

    def test_empty_graph_is_valid(self):
        SceneGraph("Empty").validate()

    def test_demo_scene_is_valid(self):
        graph = build_demo_scene(crate_rows=2, chain_depth=3, terrain_resolution=8)
        graph.validate()
        assert graph.find("Terrain") is not None
        assert graph.depth_of(graph.find("Lamp")) == 2 + 3
